"""Application configuration and environment settings"""
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    # SoundCloud OAuth application
    SOUNDCLOUD_CLIENT_ID: str = Field("", description="SoundCloud application client ID")
    SOUNDCLOUD_CLIENT_SECRET: str = Field("", description="SoundCloud application client secret")
    SOUNDCLOUD_REDIRECT_URI: str = Field("http://localhost:8080/callback", description="OAuth redirect URI")
    SOUNDCLOUD_API_URL: str = Field("https://api.soundcloud.com", description="SoundCloud API base URL")
    SOUNDCLOUD_TOKEN_URL: str = Field("https://api.soundcloud.com/oauth2/token", description="OAuth token endpoint")

    # Bootstrap credentials, only used when nothing is stored yet
    SOUNDCLOUD_ACCESS_TOKEN: Optional[str] = Field(None, description="Initial access token")
    SOUNDCLOUD_REFRESH_TOKEN: Optional[str] = Field(None, description="Initial refresh token")
    SOUNDCLOUD_AUTH_CODE: Optional[str] = Field(None, description="Authorization code to exchange on startup")

    DATABASE_URL: str = Field("sqlite:///soundwrapped.db", description="SQLAlchemy database URL")

    # Fetching control
    MAX_PAGES: int = Field(10, description="Upper bound on pages followed per paginated resource")
    PAGE_SIZE: int = Field(50, description="Items requested per page")
    REQUEST_TIMEOUT_SECONDS: float = Field(15, description="Timeout for a single HTTP call")
    SYNC_DELAY_SECONDS: float = Field(0.5, description="Pause between top-level source fetches")
    CANDIDATE_DELAY_SECONDS: float = Field(0.2, description="Pause between followed-user fetches")
    USER_AGENT: str = Field("SoundWrapped/1.0", description="User-Agent sent upstream")

    # Token lifecycle
    TOKEN_REFRESH_MARGIN_SECONDS: int = Field(300, description="Refresh when expiry is this close")
    TOKEN_REFRESH_INTERVAL_SECONDS: int = Field(3600, description="Background refresh check interval")
    TOKEN_REFRESH_ENABLED: bool = Field(True, description="Run the background refresh timer")

    # Report
    REPORT_WINDOW_DAYS: int = Field(365, description="Days of in-app activity covered by a report")
    OUTPUT_DIR: str = Field("/output", description="Directory for generated reports")

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True
    )

settings = Settings()

# Fields never written to logs
SECRET_FIELDS = {
    'SOUNDCLOUD_CLIENT_SECRET',
    'SOUNDCLOUD_ACCESS_TOKEN',
    'SOUNDCLOUD_REFRESH_TOKEN',
    'SOUNDCLOUD_AUTH_CODE',
    'DATABASE_URL',
}

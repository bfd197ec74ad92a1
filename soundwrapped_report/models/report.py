"""Report model definition"""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ReportModel(BaseModel):
    """Base for report sections: snake_case in Python, camelCase when dumped with ``by_alias``"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProfileSection(ReportModel):
    user_id: Optional[str] = None
    username: str = "Unknown"
    full_name: Optional[str] = None
    followers: int = 0
    following: int = 0
    tracks_uploaded: int = 0
    playlists_created: int = 0
    account_age_years: int = 0


class RankedTrack(ReportModel):
    rank: int
    track_id: str
    title: str
    artist: str = "Unknown Artist"
    play_count: int = 0


class RankedArtist(ReportModel):
    rank: int
    artist: str
    track_count: int = 0


class RankedPlaylist(ReportModel):
    rank: int
    title: str
    likes_count: int = 0


class RepostedTrack(ReportModel):
    title: str
    reposts: int = 0


class ApiStats(ReportModel):
    """Figures derived from the upstream API snapshot"""
    total_tracks_available: int = 0
    tracks_fetched: int = 0
    total_likes_on_profile: int = 0
    likes_fetched: int = 0
    playlists_fetched: int = 0
    followers_fetched: int = 0
    following_fetched: int = 0
    total_listening_hours: float = 0.0
    peak_year: Optional[int] = None
    peak_year_likes: int = 0
    top_playlists: List[RankedPlaylist] = Field(default_factory=list)
    top_reposted_tracks: List[RepostedTrack] = Field(default_factory=list)
    top_artists_by_hours: List[str] = Field(default_factory=list)
    artist_listening_hours: Dict[str, float] = Field(default_factory=dict)
    fun_fact: str = ""
    follow_ratio_fact: Optional[str] = None
    newest_follower: Optional[str] = None


class MostPlayedTrack(ReportModel):
    track_id: str
    title: Optional[str] = None
    play_count: int = 0


class TrackedStats(ReportModel):
    """In-app activity recorded by the tracking intake"""
    in_app_plays: int = 0
    in_app_likes: int = 0
    in_app_reposts: int = 0
    in_app_shares: int = 0
    in_app_listening_hours: float = 0.0
    books_equivalent: float = 0.0
    most_played_tracks: List[MostPlayedTrack] = Field(default_factory=list)
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    note: str = "These stats only reflect activity tracked in-app, not platform-wide activity"


class GenreCount(ReportModel):
    genre: str
    track_count: int = 0
    listening_ms: int = 0
    listening_hours: float = 0.0


class GenreAnalysis(ReportModel):
    total_genres_discovered: int = 0
    top_genres_by_track_count: List[GenreCount] = Field(default_factory=list)
    top_genres_by_listening_time: List[GenreCount] = Field(default_factory=list)
    genre_distribution: Dict[str, float] = Field(default_factory=dict)
    all_genres: List[str] = Field(default_factory=list)
    top_genres: List[str] = Field(default_factory=list)


class HourBucket(ReportModel):
    hour: int
    hour_label: str
    play_count: int = 0
    listening_ms: int = 0
    listening_hours: float = 0.0


class DayBucket(ReportModel):
    day: str
    day_label: str
    play_count: int = 0
    listening_ms: int = 0
    listening_hours: float = 0.0


class ListeningPatterns(ReportModel):
    has_data: bool = False
    message: Optional[str] = "Not enough listening data to analyze patterns"
    total_plays: int = 0
    peak_hour: Optional[int] = None
    peak_hour_label: str = "N/A"
    peak_day: str = "N/A"
    peak_day_label: str = "N/A"
    listening_persona: Optional[str] = None
    hour_distribution: List[HourBucket] = Field(default_factory=list)
    day_distribution: List[DayBucket] = Field(default_factory=list)


class DoppelgangerMatch(ReportModel):
    user_id: str
    username: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    similarity_percentage: int = 0
    composite_score: float = 0.0
    shared_tracks: int = 0
    shared_artists: int = 0
    shared_genres: int = 0


class Doppelganger(ReportModel):
    found: bool = False
    message: Optional[str] = None
    match: Optional[DoppelgangerMatch] = None
    total_compared: int = 0


class Report(ReportModel):
    """
    Year-in-review report. Recomputed from scratch on every request, never persisted.

    Every section has a default so a degraded source leaves a zero/empty section
    in place rather than a missing key; ``notes`` explains which sources degraded.
    """
    profile: ProfileSection = Field(default_factory=ProfileSection)
    api_stats: ApiStats = Field(default_factory=ApiStats)
    tracked_stats: TrackedStats = Field(default_factory=TrackedStats)
    genre_analysis: GenreAnalysis = Field(default_factory=GenreAnalysis)
    listening_patterns: ListeningPatterns = Field(default_factory=ListeningPatterns)
    doppelganger: Doppelganger = Field(default_factory=Doppelganger)
    top_tracks: List[RankedTrack] = Field(default_factory=list)
    top_artists: List[RankedArtist] = Field(default_factory=list)
    stories: List[str] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)
    generated_at: Optional[datetime] = None

"""Credential value object"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

@dataclass(frozen=True)
class Credential:
    """Access/refresh token pair and the absolute time the access token expires"""
    access_token: str
    refresh_token: Optional[str]
    expires_at: Optional[datetime] = None

    @classmethod
    def issue(cls, access_token: str, refresh_token: Optional[str],
              expires_in_seconds: Optional[int], now: datetime) -> 'Credential':
        """Build a credential from a relative ``expires_in`` as returned by the token endpoint"""
        expires_at = None
        if expires_in_seconds is not None:
            expires_at = now + timedelta(seconds=int(expires_in_seconds))
        return cls(access_token=access_token, refresh_token=refresh_token, expires_at=expires_at)

    def expires_within(self, margin: timedelta, now: datetime) -> bool:
        """True when the expiry is unknown or falls inside ``margin`` of ``now``"""
        if self.expires_at is None:
            return True
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at - now <= margin

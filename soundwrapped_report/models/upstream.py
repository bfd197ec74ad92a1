"""Tagged records for upstream SoundCloud data, decoded once at the API boundary"""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Optional, Set

logger = logging.getLogger(__name__)

# SoundCloud createdAt example: "2013/03/23 14:58:27 +0000"
SOUNDCLOUD_DATETIME_FORMAT = "%Y/%m/%d %H:%M:%S %z"

GENRE_VARIATIONS = {
    "hip-hop": "hip hop",
    "hiphop": "hip hop",
    "r&b": "rnb",
    "r and b": "rnb",
    "edm": "electronic dance music",
    "d&b": "drum and bass",
    "drum&bass": "drum and bass",
}


@dataclass(frozen=True)
class ExternalTrack:
    """Snapshot of an upstream track at fetch time"""
    id: str
    title: str
    artist_name: Optional[str]
    duration_ms: int = 0
    playback_count: int = 0
    likes_count: int = 0
    reposts_count: int = 0
    genre_tags: FrozenSet[str] = field(default_factory=frozenset)
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ExternalUser:
    """Snapshot of an upstream user (the subject's profile, a follower or a followed user)"""
    id: str
    username: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    followers_count: int = 0
    following_count: int = 0
    public_favorites_count: int = 0
    track_count: int = 0
    playlist_count: int = 0
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ExternalPlaylist:
    """Snapshot of an upstream playlist"""
    id: str
    title: str
    likes_count: int = 0
    track_count: int = 0
    duration_ms: int = 0
    created_at: Optional[datetime] = None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a SoundCloud or ISO-8601 timestamp into a timezone-aware UTC datetime"""
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.strptime(value, SOUNDCLOUD_DATETIME_FORMAT)
        except ValueError:
            try:
                dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
            except ValueError:
                logger.warning(f"Could not parse timestamp value: {value}")
                return None
    else:
        logger.warning(f"Unexpected type for timestamp: {type(value)}")
        return None
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_genre(genre: Optional[str]) -> str:
    """Lower-case a genre tag and fold common spelling variants together"""
    if not genre or not genre.strip():
        return ""
    normalized = genre.lower().strip()
    normalized = re.sub(r"^genre[\s-]*", "", normalized)
    normalized = re.sub(r"[\s-]*music$", "", normalized)
    return GENRE_VARIATIONS.get(normalized, normalized)


def extract_genre_tags(raw: Dict[str, Any]) -> Set[str]:
    """Collect genre tags from ``genre``, ``genre_family`` and the comma-separated ``tag_list``"""
    genres: Set[str] = set()
    for key in ('genre', 'genre_family'):
        value = raw.get(key)
        if isinstance(value, str):
            normalized = normalize_genre(value)
            if normalized:
                genres.add(normalized)
    tag_list = raw.get('tag_list')
    if isinstance(tag_list, str):
        for tag in tag_list.split(','):
            normalized = normalize_genre(tag)
            if normalized:
                genres.add(normalized)
    return genres


def _id(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if not text or text == 'null':
        return None
    return text


def _count(value: Any) -> int:
    """Non-negative integer, 0 when absent or not numeric"""
    if value is None or isinstance(value, bool):
        return 0
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def decode_track(raw: Any) -> Optional[ExternalTrack]:
    """
    Decode a track entity. Returns None for items that are not well-formed records.

    Liked items shaped ``{"track": {...}}`` are unwrapped first.
    """
    if not isinstance(raw, dict):
        return None
    if isinstance(raw.get('track'), dict):
        raw = raw['track']
    track_id = _id(raw.get('id'))
    if track_id is None:
        return None

    artist_name = None
    user = raw.get('user')
    if isinstance(user, dict):
        artist_name = _text(user.get('username'))

    likes = raw.get('likes_count')
    if likes is None:
        likes = raw.get('favoritings_count')

    return ExternalTrack(
        id=track_id,
        title=_text(raw.get('title')) or "Unknown Track",
        artist_name=artist_name,
        duration_ms=_count(raw.get('duration')),
        playback_count=_count(raw.get('playback_count')),
        likes_count=_count(likes),
        reposts_count=_count(raw.get('reposts_count')),
        genre_tags=frozenset(extract_genre_tags(raw)),
        created_at=parse_timestamp(raw.get('created_at')),
    )


def decode_user(raw: Any) -> Optional[ExternalUser]:
    """Decode a user entity. Returns None for items that are not well-formed records."""
    if not isinstance(raw, dict):
        return None
    user_id = _id(raw.get('id'))
    if user_id is None:
        return None
    return ExternalUser(
        id=user_id,
        username=_text(raw.get('username')) or "Unknown",
        full_name=_text(raw.get('full_name')),
        avatar_url=_text(raw.get('avatar_url')),
        followers_count=_count(raw.get('followers_count')),
        following_count=_count(raw.get('followings_count')),
        public_favorites_count=_count(raw.get('public_favorites_count')),
        track_count=_count(raw.get('track_count')),
        playlist_count=_count(raw.get('playlist_count')),
        created_at=parse_timestamp(raw.get('created_at')),
    )


def decode_playlist(raw: Any) -> Optional[ExternalPlaylist]:
    """Decode a playlist entity. Returns None for items that are not well-formed records."""
    if not isinstance(raw, dict):
        return None
    playlist_id = _id(raw.get('id'))
    if playlist_id is None:
        return None
    return ExternalPlaylist(
        id=playlist_id,
        title=_text(raw.get('title')) or "Untitled Playlist",
        likes_count=_count(raw.get('likes_count')),
        track_count=_count(raw.get('track_count')),
        duration_ms=_count(raw.get('duration')),
        created_at=parse_timestamp(raw.get('created_at')),
    )

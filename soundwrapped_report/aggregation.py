"""Aggregations that turn fetched collections and tracked activity into report figures"""
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Protocol, Sequence, TypeVar

from soundwrapped_report.models.report import DayBucket, HourBucket, ListeningPatterns
from soundwrapped_report.models.upstream import ExternalTrack, ExternalUser

T = TypeVar('T')
K = TypeVar('K', bound=Hashable)

MS_PER_HOUR = 3_600_000
# A 300-page book read at 50 pages/hour
HOURS_PER_BOOK = 300 / 50

DAY_NAMES = ["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY"]


class PlayEvent(Protocol):
    """Anything with a timestamp and a play duration, e.g. a TrackedActivity row"""
    created_at: datetime
    play_duration_ms: Optional[int]


class Persona(str, enum.Enum):
    EARLY_BIRD = "Early Bird"
    AFTERNOON_LISTENER = "Afternoon Listener"
    EVENING_VIBES = "Evening Vibes"
    NIGHT_OWL = "Night Owl"


def top_n(items: Iterable[T], key: Callable[[T], float], n: int) -> List[T]:
    """Stable descending sort by ``key``, first ``n``; equal keys keep their input order"""
    if n <= 0:
        return []
    return sorted(items, key=key, reverse=True)[:n]


def ms_to_hours(ms: int) -> float:
    return ms / MS_PER_HOUR


def total_listening_hours(durations_ms: Iterable[int]) -> float:
    return ms_to_hours(sum(durations_ms))


def books_equivalent(listening_hours: float) -> float:
    """How many books could have been read in the same time"""
    return listening_hours / HOURS_PER_BOOK


def peak_bucket(counts: Sequence[int]) -> Optional[int]:
    """
    Index of the largest count. Ties go to the lowest index, so the result never
    depends on iteration order. None when every count is zero.
    """
    best: Optional[int] = None
    for index, count in enumerate(counts):
        if count > 0 and (best is None or count > counts[best]):
            best = index
    return best


def peak_key(counts: Dict[int, int]) -> Optional[int]:
    """Key with the largest count; ties go to the lowest key"""
    best: Optional[int] = None
    for key in sorted(counts):
        if counts[key] > 0 and (best is None or counts[key] > counts[best]):
            best = key
    return best


@dataclass
class Histogram:
    """Play counts and summed durations per bucket"""
    size: int
    counts: List[int] = field(init=False)
    durations_ms: List[int] = field(init=False)

    def __post_init__(self):
        self.counts = [0] * self.size
        self.durations_ms = [0] * self.size

    def add(self, bucket: int, duration_ms: Optional[int]) -> None:
        self.counts[bucket] += 1
        self.durations_ms[bucket] += duration_ms or 0

    @property
    def peak(self) -> Optional[int]:
        return peak_bucket(self.counts)


def hour_histogram(plays: Iterable[PlayEvent]) -> Histogram:
    histogram = Histogram(24)
    for play in plays:
        histogram.add(play.created_at.hour, play.play_duration_ms)
    return histogram


def day_histogram(plays: Iterable[PlayEvent]) -> Histogram:
    """Monday is bucket 0"""
    histogram = Histogram(7)
    for play in plays:
        histogram.add(play.created_at.weekday(), play.play_duration_ms)
    return histogram


def classify_persona(peak_hour: int) -> Persona:
    if 6 <= peak_hour < 12:
        return Persona.EARLY_BIRD
    if 12 <= peak_hour < 18:
        return Persona.AFTERNOON_LISTENER
    if 18 <= peak_hour < 24:
        return Persona.EVENING_VIBES
    return Persona.NIGHT_OWL


def format_hour(hour: int) -> str:
    if hour == 0:
        return "12 AM"
    if hour < 12:
        return f"{hour} AM"
    if hour == 12:
        return "12 PM"
    return f"{hour - 12} PM"


def analyze_listening_patterns(plays: Sequence[PlayEvent]) -> ListeningPatterns:
    """Hour-of-day and day-of-week distribution of PLAY events, their peaks and the persona"""
    if not plays:
        return ListeningPatterns()

    hours = hour_histogram(plays)
    days = day_histogram(plays)
    peak_hour = hours.peak
    peak_day = days.peak

    return ListeningPatterns(
        has_data=True,
        message=None,
        total_plays=len(plays),
        peak_hour=peak_hour,
        peak_hour_label=format_hour(peak_hour) if peak_hour is not None else "N/A",
        peak_day=DAY_NAMES[peak_day] if peak_day is not None else "N/A",
        peak_day_label=DAY_NAMES[peak_day].capitalize() if peak_day is not None else "N/A",
        listening_persona=classify_persona(peak_hour).value if peak_hour is not None else None,
        hour_distribution=[
            HourBucket(
                hour=hour,
                hour_label=format_hour(hour),
                play_count=hours.counts[hour],
                listening_ms=hours.durations_ms[hour],
                listening_hours=ms_to_hours(hours.durations_ms[hour])
            )
            for hour in range(24)
        ],
        day_distribution=[
            DayBucket(
                day=name,
                day_label=name.capitalize(),
                play_count=days.counts[index],
                listening_ms=days.durations_ms[index],
                listening_hours=ms_to_hours(days.durations_ms[index])
            )
            for index, name in enumerate(DAY_NAMES)
        ]
    )


def count_years(timestamps: Iterable[Optional[datetime]]) -> Dict[int, int]:
    """Occurrences per calendar year; missing timestamps are skipped"""
    years: Dict[int, int] = {}
    for timestamp in timestamps:
        if timestamp is not None:
            years[timestamp.year] = years.get(timestamp.year, 0) + 1
    return years


def count_artists(tracks: Iterable[ExternalTrack]) -> Dict[str, int]:
    """Tracks per artist, in first-seen order"""
    counts: Dict[str, int] = {}
    for track in tracks:
        if track.artist_name:
            counts[track.artist_name] = counts.get(track.artist_name, 0) + 1
    return counts


def artist_listening_ms(tracks: Iterable[ExternalTrack]) -> Dict[str, int]:
    """Summed track duration per artist, in first-seen order"""
    totals: Dict[str, int] = {}
    for track in tracks:
        if track.artist_name:
            totals[track.artist_name] = totals.get(track.artist_name, 0) + track.duration_ms
    return totals


def top_keys(values: Dict[K, float], n: int) -> List[K]:
    return [key for key, _ in top_n(values.items(), lambda item: item[1], n)]


def account_age_years(created_at: Optional[datetime], now: datetime) -> int:
    if created_at is None:
        return 0
    return max(0, now.year - created_at.year)


def fun_fact(followers: int) -> str:
    return "You're pretty famous!" if followers > 1000 else "Every star starts small"


def follow_ratio_fact(followers: int, following: int) -> Optional[str]:
    if following == 0:
        if followers > 0:
            return "You have followers but aren't following anyone, true influencer vibes!"
        return None
    ratio = followers / following
    if ratio > 1.0:
        return f"You have {ratio:.1f} times more followers than people you follow!"
    return None


def newest_follower(followers: Iterable[ExternalUser]) -> Optional[ExternalUser]:
    """Follower with the latest account creation time; the first one listed wins a tie"""
    newest: Optional[ExternalUser] = None
    for follower in followers:
        if follower.created_at is None:
            continue
        if newest is None or follower.created_at > newest.created_at:
            newest = follower
    return newest

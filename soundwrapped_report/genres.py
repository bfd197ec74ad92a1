"""Genre analysis over a user's tracks"""
from typing import Dict, Sequence

from soundwrapped_report.aggregation import ms_to_hours, top_n
from soundwrapped_report.models.report import GenreAnalysis, GenreCount
from soundwrapped_report.models.upstream import ExternalTrack

TOP_GENRES_LIMIT = 10
SUMMARY_GENRES_LIMIT = 5


def analyze_genres(tracks: Sequence[ExternalTrack]) -> GenreAnalysis:
    """
    Count tracks and listening time per genre tag.

    Tags are visited in sorted order per track, so genres with equal totals are
    ranked the same way on every run.
    """
    counts: Dict[str, int] = {}
    listening_ms: Dict[str, int] = {}
    for track in tracks:
        for genre in sorted(track.genre_tags):
            counts[genre] = counts.get(genre, 0) + 1
            listening_ms[genre] = listening_ms.get(genre, 0) + track.duration_ms

    def entry(genre: str) -> GenreCount:
        return GenreCount(
            genre=genre,
            track_count=counts[genre],
            listening_ms=listening_ms[genre],
            listening_hours=ms_to_hours(listening_ms[genre])
        )

    by_count = [entry(genre) for genre in top_n(counts, lambda g: counts[g], TOP_GENRES_LIMIT)]
    by_time = [entry(genre) for genre in top_n(listening_ms, lambda g: listening_ms[g], TOP_GENRES_LIMIT)]

    distribution: Dict[str, float] = {}
    if tracks:
        distribution = {genre: count * 100.0 / len(tracks) for genre, count in counts.items()}

    return GenreAnalysis(
        total_genres_discovered=len(counts),
        top_genres_by_track_count=by_count,
        top_genres_by_listening_time=by_time,
        genre_distribution=distribution,
        all_genres=sorted(counts),
        top_genres=[genre.genre for genre in by_time[:SUMMARY_GENRES_LIMIT]]
    )

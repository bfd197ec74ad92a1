import pytest

from soundwrapped_report.genres import analyze_genres
from soundwrapped_report.models.upstream import ExternalTrack


def track(track_id, genres, duration_ms):
    return ExternalTrack(id=track_id, title=track_id, artist_name="a",
                         duration_ms=duration_ms, genre_tags=frozenset(genres))


def test_analyze_genres():
    tracks = [
        track("1", ["house", "deep house"], 3_600_000),
        track("2", ["house"], 600_000),
        track("3", ["ambient"], 7_200_000),
        track("4", [], 1_000),
    ]

    analysis = analyze_genres(tracks)

    assert analysis.total_genres_discovered == 3
    assert [g.genre for g in analysis.top_genres_by_track_count] == ["house", "deep house", "ambient"]
    assert [g.genre for g in analysis.top_genres_by_listening_time] == ["ambient", "house", "deep house"]
    assert analysis.top_genres_by_listening_time[0].listening_hours == pytest.approx(2.0)
    assert analysis.genre_distribution["house"] == pytest.approx(50.0)
    assert analysis.all_genres == ["ambient", "deep house", "house"]
    assert analysis.top_genres == ["ambient", "house", "deep house"]


def test_no_tracks():
    analysis = analyze_genres([])

    assert analysis.total_genres_discovered == 0
    assert analysis.genre_distribution == {}
    assert analysis.top_genres == []

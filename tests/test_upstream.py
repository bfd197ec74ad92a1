from dataclasses import fields
from datetime import datetime, timezone

import pytest

from soundwrapped_report.models.upstream import (
    decode_playlist,
    decode_track,
    decode_user,
    extract_genre_tags,
    normalize_genre,
    parse_timestamp,
)


def test_parse_soundcloud_timestamp():
    assert parse_timestamp("2013/03/23 14:58:27 +0000") == datetime(2013, 3, 23, 14, 58, 27, tzinfo=timezone.utc)


def test_parse_iso_timestamp():
    assert parse_timestamp("2024-02-01T10:00:00Z") == datetime(2024, 2, 1, 10, tzinfo=timezone.utc)
    assert parse_timestamp("2024-02-01T12:00:00+02:00") == datetime(2024, 2, 1, 10, tzinfo=timezone.utc)


@pytest.mark.parametrize("value", [None, "", "yesterday", 12345])
def test_unparseable_timestamps(value):
    assert parse_timestamp(value) is None


@pytest.mark.parametrize("raw, expected", [
    ("Hip-Hop", "hip hop"),
    ("  R&B ", "rnb"),
    ("Electronic Music", "electronic"),
    ("", ""),
    (None, ""),
])
def test_normalize_genre(raw, expected):
    assert normalize_genre(raw) == expected


def test_extract_genre_tags():
    raw = {"genre": "Hip-Hop", "genre_family": "hiphop", "tag_list": "chill, EDM,,lofi"}

    assert extract_genre_tags(raw) == {"hip hop", "chill", "electronic dance music", "lofi"}


def test_decode_track():
    track = decode_track({
        "id": 123,
        "title": "Song",
        "user": {"username": "artist"},
        "duration": 215000,
        "playback_count": 40,
        "favoritings_count": 7,
        "reposts_count": "3",
        "genre": "House",
        "created_at": "2023/05/01 10:00:00 +0000",
    })

    assert track.id == "123"
    assert track.artist_name == "artist"
    assert track.duration_ms == 215000
    assert track.likes_count == 7
    assert track.reposts_count == 3
    assert track.genre_tags == frozenset({"house"})
    assert track.created_at.year == 2023


def test_decode_track_unwraps_like_items():
    track = decode_track({"created_at": "2024/01/01 00:00:00 +0000", "track": {"id": 5, "title": "Liked"}})

    assert track.id == "5"
    assert track.title == "Liked"
    assert track.artist_name is None


@pytest.mark.parametrize("raw", [None, "text", [], {"title": "no id"}, {"id": None}])
def test_decode_track_rejects_malformed(raw):
    assert decode_track(raw) is None


def test_decode_user_maps_followings_count():
    user = decode_user({"id": 7, "username": "someone", "followers_count": 10, "followings_count": 4})

    assert user.id == "7"
    assert user.followers_count == 10
    assert user.following_count == 4


def test_decode_user_keeps_only_report_fields():
    user = decode_user({"id": 7, "username": "someone", "reposts_count": 9, "comments_count": 2,
                        "playlist_count": 3, "avatar_url": "https://img.test/a.jpg"})

    assert {f.name for f in fields(user)} == {
        "id", "username", "full_name", "avatar_url", "followers_count", "following_count",
        "public_favorites_count", "track_count", "playlist_count", "created_at",
    }
    assert user.playlist_count == 3
    assert user.avatar_url == "https://img.test/a.jpg"


def test_decode_user_defaults_negative_and_bad_counts():
    user = decode_user({"id": "7", "followers_count": -3, "track_count": "many"})

    assert user.username == "Unknown"
    assert user.followers_count == 0
    assert user.track_count == 0


def test_decode_playlist():
    playlist = decode_playlist({"id": 9, "title": "Mix", "likes_count": 12, "track_count": 20})

    assert playlist.id == "9"
    assert playlist.likes_count == 12
    assert decode_playlist({"title": "No id"}) is None

import pytest

from soundwrapped_report.models.upstream import ExternalTrack, ExternalUser
from soundwrapped_report.similarity import SimilarityMatcher, TasteProfile, jaccard, score


def track(track_id, artist="Artist", genres=()):
    return ExternalTrack(id=track_id, title=f"Track {track_id}", artist_name=artist,
                         genre_tags=frozenset(genres))


def user(user_id, username=None):
    return ExternalUser(id=user_id, username=username or f"user{user_id}")


@pytest.mark.parametrize("a, b", [
    ({1, 2, 3}, {2, 3, 4}),
    ({1}, {2}),
    ({"x", "y"}, {"x", "y"}),
    (set(), {1}),
])
def test_jaccard_is_symmetric_and_bounded(a, b):
    assert jaccard(a, b) == jaccard(b, a)
    assert 0.0 <= jaccard(a, b) <= 1.0


def test_jaccard_values():
    assert jaccard({1, 2}, {1, 2}) == 1.0
    assert jaccard({1, 2}, {3, 4}) == 0.0
    assert jaccard({1, 2, 3}, {2, 3, 4}) == pytest.approx(0.5)
    assert jaccard(set(), set()) == 1.0
    assert jaccard(set(), {1}) == 0.0


def test_taste_profile_lowercases_artists():
    profile = TasteProfile.from_tracks([track("1", "Alpha", ["house"]), track("2", "ALPHA")])

    assert profile.artists == frozenset({"alpha"})
    assert profile.track_ids == frozenset({"1", "2"})
    assert profile.genres == frozenset({"house"})


def test_score_renormalises_over_subject_dimensions():
    subject = TasteProfile(frozenset({"1"}), frozenset({"alpha"}), frozenset())
    candidate = TasteProfile(frozenset({"1"}), frozenset({"alpha"}), frozenset({"house"}))

    result = score(subject, "42", candidate)

    assert result.genre_similarity == 0.0
    assert result.composite_score == pytest.approx(1.0)
    assert result.shared_tracks == 1
    assert result.shared_artists == 1


def test_weighted_composite():
    subject = TasteProfile(frozenset({"1", "2"}), frozenset({"alpha"}), frozenset({"house"}))
    candidate = TasteProfile(frozenset({"3"}), frozenset({"alpha"}), frozenset({"techno"}))

    assert score(subject, "42", candidate).composite_score == pytest.approx(0.3)


def test_no_subject_tracks():
    result = SimilarityMatcher().find_best_match([], [user("1")], lambda _: [track("1")])

    assert result.found is False
    assert result.message == "Not enough tracks to compare taste"


def test_not_following_anyone():
    result = SimilarityMatcher().find_best_match([track("1")], [], lambda _: [])

    assert result.found is False
    assert result.message == "You're not following anyone yet"


def test_picks_highest_composite_and_skips_inaccessible():
    subject = [track("1", "Alpha", ["house"]), track("2", "Beta", ["techno"])]
    candidates = {
        "10": [track("9", "Gamma", ["jazz"])],
        "11": [],
        "12": [track("1", "Alpha", ["house"]), track("2", "Beta", ["techno"])],
        "13": [track("1", "Alpha", ["house"])],
    }
    followings = [user("10"), user("11"), user("12", "twin"), user("13")]

    result = SimilarityMatcher().find_best_match(subject, followings, lambda uid: candidates[uid])

    assert result.found is True
    assert result.match.username == "twin"
    assert result.match.similarity_percentage == 100
    assert result.total_compared == 3


def test_first_listed_wins_a_tie():
    subject = [track("1", "Alpha")]
    followings = [user("10", "first"), user("11", "second")]

    result = SimilarityMatcher().find_best_match(subject, followings, lambda _: [track("1", "Alpha")])

    assert result.match.username == "first"


def test_nobody_comparable():
    followings = [user("10"), user("11")]

    result = SimilarityMatcher().find_best_match([track("1")], followings, lambda _: [])

    assert result.found is False
    assert "privacy" in result.message
    assert result.total_compared == 0

"""Taste similarity between the user and the people they follow"""
import logging
from dataclasses import dataclass
from typing import AbstractSet, Callable, Iterable, List, Optional, Sequence

from soundwrapped_report.models.report import Doppelganger, DoppelgangerMatch
from soundwrapped_report.models.upstream import ExternalTrack, ExternalUser

logger = logging.getLogger(__name__)

TRACK_WEIGHT = 0.5
ARTIST_WEIGHT = 0.3
GENRE_WEIGHT = 0.2


def jaccard(a: AbstractSet, b: AbstractSet) -> float:
    """
    Intersection over union.

    1.0 when both sets are empty, 0.0 when exactly one of them is.
    """
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


@dataclass(frozen=True)
class TasteProfile:
    """Track ids, artist names (lower-cased) and genre tags drawn from a track collection"""
    track_ids: frozenset
    artists: frozenset
    genres: frozenset

    @classmethod
    def from_tracks(cls, tracks: Iterable[ExternalTrack]) -> 'TasteProfile':
        track_ids, artists, genres = set(), set(), set()
        for track in tracks:
            track_ids.add(track.id)
            if track.artist_name:
                artists.add(track.artist_name.lower())
            genres.update(track.genre_tags)
        return cls(frozenset(track_ids), frozenset(artists), frozenset(genres))

    @property
    def is_empty(self) -> bool:
        return not (self.track_ids or self.artists or self.genres)


@dataclass(frozen=True)
class SimilarityScore:
    candidate_user_id: str
    track_similarity: float
    artist_similarity: float
    genre_similarity: float
    composite_score: float
    shared_tracks: int = 0
    shared_artists: int = 0
    shared_genres: int = 0


def score(subject: TasteProfile, candidate_user_id: str, candidate: TasteProfile) -> SimilarityScore:
    """
    Weighted average of the per-dimension Jaccard scores (tracks 0.5, artists 0.3,
    genres 0.2), renormalised over the dimensions where the subject's set is non-empty.
    """
    track_similarity = jaccard(subject.track_ids, candidate.track_ids)
    artist_similarity = jaccard(subject.artists, candidate.artists)
    genre_similarity = jaccard(subject.genres, candidate.genres)

    weighted_sum = 0.0
    weights = 0.0
    for subject_set, similarity, weight in (
        (subject.track_ids, track_similarity, TRACK_WEIGHT),
        (subject.artists, artist_similarity, ARTIST_WEIGHT),
        (subject.genres, genre_similarity, GENRE_WEIGHT),
    ):
        if subject_set:
            weighted_sum += similarity * weight
            weights += weight

    return SimilarityScore(
        candidate_user_id=candidate_user_id,
        track_similarity=track_similarity,
        artist_similarity=artist_similarity,
        genre_similarity=genre_similarity,
        composite_score=weighted_sum / weights if weights > 0 else 0.0,
        shared_tracks=len(subject.track_ids & candidate.track_ids),
        shared_artists=len(subject.artists & candidate.artists),
        shared_genres=len(subject.genres & candidate.genres)
    )


class SimilarityMatcher:
    """
    Finds the followed user whose tracks look most like the subject's.

    Scores are recomputed on every call; nothing is cached between reports.
    """

    def find_best_match(self, subject_tracks: Sequence[ExternalTrack],
                        followings: Sequence[ExternalUser],
                        fetch_tracks: Callable[[str], Sequence[ExternalTrack]]) -> Doppelganger:
        """
        Args:
            subject_tracks: the user's own tracks
            followings: users the subject follows, in upstream order
            fetch_tracks: returns whatever tracks of a followed user are accessible
                (possibly none)

        Returns:
            The best match, or ``found=False`` with the reason none was found.
            Among equal scores the user listed first wins.
        """
        subject = TasteProfile.from_tracks(subject_tracks)
        if subject.is_empty:
            return Doppelganger(found=False, message="Not enough tracks to compare taste")
        if not followings:
            return Doppelganger(found=False, message="You're not following anyone yet")

        best: Optional[SimilarityScore] = None
        best_user: Optional[ExternalUser] = None
        compared: List[SimilarityScore] = []

        for user in followings:
            candidate_tracks = fetch_tracks(user.id)
            if not candidate_tracks:
                logger.debug(f"No accessible tracks for {user.username}; skipping")
                continue
            result = score(subject, user.id, TasteProfile.from_tracks(candidate_tracks))
            compared.append(result)
            if result.composite_score > 0 and (best is None or result.composite_score > best.composite_score):
                best, best_user = result, user

        logger.info(f"Compared taste with {len(compared)} of {len(followings)} followed users")
        if best is None or best_user is None:
            return Doppelganger(
                found=False,
                message="Could not compare taste with followed users (may be due to privacy settings)",
                total_compared=len(compared)
            )

        return Doppelganger(
            found=True,
            match=DoppelgangerMatch(
                user_id=best_user.id,
                username=best_user.username,
                full_name=best_user.full_name or best_user.username,
                avatar_url=best_user.avatar_url,
                similarity_percentage=round(best.composite_score * 100),
                composite_score=best.composite_score,
                shared_tracks=best.shared_tracks,
                shared_artists=best.shared_artists,
                shared_genres=best.shared_genres
            ),
            total_compared=len(compared)
        )

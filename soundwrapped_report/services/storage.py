"""Database storage service for tracked in-app activity"""
import logging
import datetime
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from soundwrapped_report.models.activity import ActivityIntake
from soundwrapped_report.models.db import ActivityType, TrackedActivity, utcnow

logger = logging.getLogger(__name__)


def _as_naive_utc(value: datetime.datetime) -> datetime.datetime:
    """Columns hold naive UTC; convert aware datetimes before comparing"""
    if value.tzinfo is not None:
        return value.astimezone(datetime.UTC).replace(tzinfo=None)
    return value


class ActivityStore:
    """
    Append-only log of in-app play/like/repost/share events.

    The only source of listening statistics: the upstream API has no listening history.
    There are deliberately no update or delete operations.
    """

    def __init__(self, session: Session):
        self.session = session

    def _append(self, user_id: str, track_id: str, activity_type: ActivityType,
                play_duration_ms: Optional[int] = None,
                created_at: Optional[datetime.datetime] = None) -> TrackedActivity:
        if not user_id or not track_id:
            raise ValueError("user_id and track_id are required")
        activity = TrackedActivity(
            user_id=str(user_id),
            track_id=str(track_id),
            activity_type=activity_type,
            play_duration_ms=play_duration_ms if activity_type == ActivityType.PLAY else None,
            created_at=_as_naive_utc(created_at) if created_at else utcnow()
        )
        try:
            self.session.add(activity)
            self.session.commit()
            logger.info(f"Tracked {activity_type.value} of track {track_id} for user {user_id}")
            return activity
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Database error tracking {activity_type.value} for user {user_id}: {e}")
            raise

    def record_play(self, user_id: str, track_id: str, duration_ms: Optional[int],
                    created_at: Optional[datetime.datetime] = None) -> TrackedActivity:
        """Track a play of ``duration_ms`` milliseconds"""
        if duration_ms is not None and duration_ms < 0:
            raise ValueError("duration_ms cannot be negative")
        return self._append(user_id, track_id, ActivityType.PLAY, duration_ms, created_at)

    def record_like(self, user_id: str, track_id: str,
                    created_at: Optional[datetime.datetime] = None) -> TrackedActivity:
        return self._append(user_id, track_id, ActivityType.LIKE, created_at=created_at)

    def record_repost(self, user_id: str, track_id: str,
                      created_at: Optional[datetime.datetime] = None) -> TrackedActivity:
        return self._append(user_id, track_id, ActivityType.REPOST, created_at=created_at)

    def record_share(self, user_id: str, track_id: str,
                     created_at: Optional[datetime.datetime] = None) -> TrackedActivity:
        return self._append(user_id, track_id, ActivityType.SHARE, created_at=created_at)

    def record_intake(self, payload: Dict[str, Any]) -> TrackedActivity:
        """
        Validate a tracking-intake payload ``{userId, trackId, activityType, durationMs?}``
        and append it.

        Raises:
            pydantic.ValidationError: the payload does not have the expected shape
        """
        intake = ActivityIntake.model_validate(payload)
        if intake.activity_type == ActivityType.PLAY:
            return self.record_play(intake.user_id, intake.track_id, intake.duration_ms)
        if intake.activity_type == ActivityType.LIKE:
            return self.record_like(intake.user_id, intake.track_id)
        if intake.activity_type == ActivityType.REPOST:
            return self.record_repost(intake.user_id, intake.track_id)
        return self.record_share(intake.user_id, intake.track_id)

    @contextmanager
    def _reading(self, description: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"Database error reading {description}: {e}")
            # Rollback in case of error during read
            self.session.rollback()
            raise

    def _in_range(self, query, user_id: str, start: datetime.datetime, end: datetime.datetime):
        return query.filter(
            TrackedActivity.user_id == str(user_id),
            TrackedActivity.created_at.between(_as_naive_utc(start), _as_naive_utc(end))
        )

    def count_by_type_in_range(self, user_id: str, activity_type: ActivityType,
                               start: datetime.datetime, end: datetime.datetime) -> int:
        with self._reading(f"{activity_type.value} count for user {user_id}"):
            query = self._in_range(self.session.query(func.count(TrackedActivity.id)), user_id, start, end)
            return query.filter(TrackedActivity.activity_type == activity_type).scalar() or 0

    def counts_by_type_in_range(self, user_id: str, start: datetime.datetime,
                                end: datetime.datetime) -> Dict[ActivityType, int]:
        """Event count per activity type; every type is present, zero when absent"""
        with self._reading(f"activity counts for user {user_id}"):
            query = self._in_range(
                self.session.query(TrackedActivity.activity_type, func.count(TrackedActivity.id)),
                user_id, start, end
            ).group_by(TrackedActivity.activity_type)
            counts = {activity_type: 0 for activity_type in ActivityType}
            for activity_type, count in query.all():
                counts[ActivityType(activity_type)] = count
            return counts

    def sum_duration_in_range(self, user_id: str, start: datetime.datetime,
                              end: datetime.datetime) -> int:
        """Total milliseconds played"""
        with self._reading(f"listening time for user {user_id}"):
            query = self._in_range(
                self.session.query(func.coalesce(func.sum(TrackedActivity.play_duration_ms), 0)),
                user_id, start, end
            ).filter(TrackedActivity.activity_type == ActivityType.PLAY)
            return int(query.scalar() or 0)

    def most_played_track_ids_in_range(self, user_id: str, start: datetime.datetime,
                                       end: datetime.datetime,
                                       limit: Optional[int] = None) -> List[Tuple[str, int]]:
        """(track_id, play count) pairs, most played first; equal counts ordered by track id"""
        with self._reading(f"most played tracks for user {user_id}"):
            play_count = func.count(TrackedActivity.id).label('play_count')
            query = self._in_range(
                self.session.query(TrackedActivity.track_id, play_count),
                user_id, start, end
            ).filter(
                TrackedActivity.activity_type == ActivityType.PLAY
            ).group_by(
                TrackedActivity.track_id
            ).order_by(play_count.desc(), TrackedActivity.track_id.asc())
            if limit is not None:
                query = query.limit(limit)
            return [(track_id, int(count)) for track_id, count in query.all()]

    def play_activities_in_range(self, user_id: str, start: datetime.datetime,
                                 end: datetime.datetime) -> List[TrackedActivity]:
        """PLAY events in chronological order"""
        with self._reading(f"plays for user {user_id}"):
            query = self._in_range(self.session.query(TrackedActivity), user_id, start, end)
            return query.filter(
                TrackedActivity.activity_type == ActivityType.PLAY
            ).order_by(TrackedActivity.created_at.asc(), TrackedActivity.id.asc()).all()

"""SQLAlchemy database models for the stored credential and tracked activity"""
import datetime
import enum

from sqlalchemy import Column, Integer, String, DateTime, BigInteger, Enum, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime.datetime:
    """Naive UTC timestamp, the form every DateTime column here is stored in"""
    return datetime.datetime.now(datetime.UTC).replace(tzinfo=None)


class ActivityType(str, enum.Enum):
    PLAY = "PLAY"
    LIKE = "LIKE"
    REPOST = "REPOST"
    SHARE = "SHARE"


class StoredCredential(Base):
    """
    The single OAuth credential of this deployment.
    Replaced wholesale on every refresh or code exchange.
    """
    __tablename__ = 'tokens'

    id = Column(Integer, primary_key=True)
    access_token = Column(String, nullable=False)
    refresh_token = Column(String, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=utcnow, nullable=False)


class TrackedActivity(Base):
    """
    In-app listening, like, repost and share events.
    Append-only: rows are inserted by the tracking intake and never updated or deleted,
    since the upstream API exposes no listening history.
    """
    __tablename__ = 'user_activities'
    __table_args__ = (
        Index('idx_user_track', 'user_id', 'track_id'),
        Index('idx_activity_type_date', 'activity_type', 'created_at'),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    track_id = Column(String, nullable=False)
    activity_type = Column(Enum(ActivityType, name='activity_type'), nullable=False)
    play_duration_ms = Column(BigInteger, nullable=True) # Only set for PLAY
    created_at = Column(DateTime, default=utcnow, nullable=False)

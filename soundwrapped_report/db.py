"""Database connection and session management"""
import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from sqlalchemy.exc import SQLAlchemyError

from soundwrapped_report.models.db import Base
from soundwrapped_report.config import settings

logger = logging.getLogger(__name__)

def _is_in_memory_sqlite(url: str) -> bool:
    return url.startswith('sqlite') and (url in ('sqlite://', 'sqlite:///') or ':memory:' in url)

class Database:
    """Database connection and session manager"""

    def __init__(self):
        """Initialize database manager state"""
        self._engine = None
        self._SessionLocal = None

    def init(self, url: Optional[str] = None) -> None:
        """
        Initialize database connection and create tables.

        Args:
            url: SQLAlchemy URL, defaults to DATABASE_URL from settings
        """
        url = url or settings.DATABASE_URL
        try:
            if _is_in_memory_sqlite(url):
                # One shared connection, so the refresh timer thread sees the same database
                self._engine = create_engine(
                    url,
                    connect_args={'check_same_thread': False},
                    poolclass=StaticPool
                )
            else:
                self._engine = create_engine(url)
            Base.metadata.create_all(self._engine)
            self._SessionLocal = sessionmaker(bind=self._engine, expire_on_commit=False)
            logger.info("Database initialized successfully")

        except SQLAlchemyError as e:
            logger.error(f"Database initialization failed: {e}")
            raise

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations"""
        if not self._SessionLocal:
            raise RuntimeError("Database not initialized. Call init() first.")

        session = self._SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get_session(self) -> Session:
        """Get a new database session"""
        if not self._SessionLocal:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self._SessionLocal()

    def dispose(self) -> None:
        """
        Clean up database connections.
        Should be called during application shutdown.
        """
        if self._engine:
            self._engine.dispose()
            self._engine = None
            self._SessionLocal = None

# Global database instance
db = Database()

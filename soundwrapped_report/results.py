"""Per-source fetch results with default-on-failure"""
import logging
from dataclasses import dataclass
from typing import Callable, Generic, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from soundwrapped_report.exceptions import UpstreamRequestFailed

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Failures that degrade one source to its default. Authentication errors are not
# listed: without a credential no report can be produced at all.
DEGRADABLE_ERRORS: Tuple[Type[BaseException], ...] = (UpstreamRequestFailed, SQLAlchemyError)


@dataclass(frozen=True)
class SourceResult(Generic[T]):
    """Value of one report source, and whether it had to fall back to its default"""
    label: str
    value: T
    ok: bool = True
    error: Optional[str] = None

    @property
    def note(self) -> Optional[str]:
        if self.ok:
            return None
        return f"{self.label} unavailable ({self.error}); shown as empty"


def fetch_source(label: str, fn: Callable[[], T], default: T) -> SourceResult[T]:
    """Run ``fn``; on a degradable failure log it and return ``default`` instead"""
    try:
        return SourceResult(label=label, value=fn())
    except DEGRADABLE_ERRORS as e:
        logger.warning(f"Failed to fetch {label}: {e}")
        return SourceResult(label=label, value=default, ok=False, error=str(e) or type(e).__name__)

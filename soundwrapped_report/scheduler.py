"""Background timer that keeps the stored access token fresh"""
import logging
import threading
from typing import Optional

from soundwrapped_report.exceptions import TokenRefreshFailed
from soundwrapped_report.services.tokens import TokenLifecycleManager

logger = logging.getLogger(__name__)


class TokenRefreshScheduler:
    """
    Checks the credential every ``interval_seconds`` on a daemon thread and refreshes
    it when it is about to expire.

    Refresh failures are logged and the timer keeps running; the next request that
    needs the token surfaces the authentication problem to the caller.
    """

    def __init__(self, tokens: TokenLifecycleManager, interval_seconds: float = 3600,
                 initial_delay_seconds: Optional[float] = None):
        self.tokens = tokens
        self.interval_seconds = interval_seconds
        self.initial_delay_seconds = interval_seconds if initial_delay_seconds is None else initial_delay_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> bool:
        """
        One check. Returns True if a refresh exchange took place.
        """
        if not self.tokens.get_refresh_token():
            logger.debug("No refresh token stored; skipping scheduled refresh")
            return False
        if not self.tokens.needs_refresh():
            logger.debug("Access token still valid; skipping scheduled refresh")
            return False
        try:
            self.tokens.refresh()
            logger.info("Scheduled token refresh completed")
            return True
        except TokenRefreshFailed as e:
            logger.error(f"Scheduled token refresh failed: {e}")
            return False

    def _loop(self) -> None:
        delay = self.initial_delay_seconds
        while not self._stop.wait(delay):
            self.run_once()
            delay = self.interval_seconds

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="token-refresh", daemon=True)
        self._thread.start()
        logger.info(f"Token refresh timer started (every {self.interval_seconds}s)")

    def stop(self, timeout: Optional[float] = 5) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
            logger.info("Token refresh timer stopped")

    def __enter__(self) -> 'TokenRefreshScheduler':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

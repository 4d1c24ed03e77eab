"""In-memory bearer token cache shared by the backend adapters."""

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCache:
    """Holds one token and its expiry. Expired tokens are dropped on read."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._token: str | None = None
        self._expires_at: datetime | None = None

    def cache(self, token: str, expires_at: datetime | None = None) -> None:
        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        with self._lock:
            self._token = token
            self._expires_at = expires_at
        logger.debug(f"Cached token, expires {expires_at.isoformat() if expires_at else 'never'}")

    def get(self) -> str | None:
        with self._lock:
            if self._token is None:
                return None
            if self._expires_at is not None and self._clock() >= self._expires_at:
                logger.debug("Cached token expired, clearing")
                self._token = None
                self._expires_at = None
                return None
            return self._token

    def is_valid(self) -> bool:
        return self.get() is not None

    def clear(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = None

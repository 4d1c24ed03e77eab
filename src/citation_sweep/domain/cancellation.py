"""Cooperative cancellation shared by every blocking wait in a run."""

import threading
import time

from .results import Cancelled

POLL_INTERVAL = 0.05  # seconds; upper bound on wake-up latency after cancel


class CancellationToken:
    """Cancel flag with an optional deadline.

    A token is cancelled when `cancel()` is called, when its deadline passes,
    or when its parent is cancelled.
    """

    def __init__(
        self,
        timeout: float | None = None,
        parent: "CancellationToken | None" = None,
    ) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._parent = parent

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return True
        return self._parent is not None and self._parent.is_cancelled

    @property
    def reason(self) -> str:
        """Why the token fired: "cancelled" wins over "timeout"."""
        if self._event.is_set():
            return "cancelled"
        if self._parent is not None and self._parent.is_cancelled:
            return self._parent.reason
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return "timeout"
        return "cancelled"

    def remaining(self) -> float | None:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def linked(self, timeout: float | None = None) -> "CancellationToken":
        """Child token that also fires on its own deadline."""
        return CancellationToken(timeout=timeout, parent=self)

    def sleep(self, seconds: float) -> bool:
        """Wait up to `seconds`. Returns False if cancelled meanwhile."""
        end = time.monotonic() + max(0.0, seconds)
        while True:
            if self.is_cancelled:
                return False
            left = end - time.monotonic()
            if left <= 0:
                return True
            self._event.wait(min(left, POLL_INTERVAL))

    def as_result(self) -> Cancelled:
        return Cancelled(reason=self.reason)


def never_cancelled() -> CancellationToken:
    return CancellationToken()

"""Per-provider rate limiting: a concurrency cap plus a minimum request spacing."""

import logging
import threading
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field

from .cancellation import POLL_INTERVAL, CancellationToken
from .models import Provider, ProviderProfile

logger = logging.getLogger(__name__)


class SlotLimiter:
    """Counting semaphore whose acquire can be abandoned via a token."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._semaphore = threading.BoundedSemaphore(capacity)
        self._lock = threading.Lock()
        self._in_use = 0

    @property
    def in_use(self) -> int:
        with self._lock:
            return self._in_use

    def acquire(self, token: CancellationToken) -> bool:
        """Block until a slot is free. Returns False, holding nothing, if cancelled."""
        while not token.is_cancelled:
            if self._semaphore.acquire(timeout=POLL_INTERVAL):
                if token.is_cancelled:
                    self._semaphore.release()
                    return False
                with self._lock:
                    self._in_use += 1
                return True
        return False

    def release(self) -> None:
        with self._lock:
            if self._in_use == 0:
                raise RuntimeError("release() called without a matching acquire()")
            self._in_use -= 1
        self._semaphore.release()

    @contextmanager
    def hold(self, token: CancellationToken) -> Iterator[bool]:
        """Scoped acquire; yields whether the slot was obtained."""
        acquired = self.acquire(token)
        try:
            yield acquired
        finally:
            if acquired:
                self.release()


@dataclass
class ProviderLimiterState:
    slots: SlotLimiter
    min_delay: float
    last_granted: float | None = None
    lock: threading.Lock = field(default_factory=threading.Lock)


class ProviderRateLimiter:
    """Independent slot limiter and timing gate for each provider."""

    def __init__(self, profiles: Mapping[Provider, ProviderProfile]) -> None:
        self._states = {
            provider: ProviderLimiterState(
                slots=SlotLimiter(profile.max_concurrency),
                min_delay=max(0.0, profile.min_delay),
            )
            for provider, profile in profiles.items()
        }

    def _state(self, provider: Provider) -> ProviderLimiterState:
        try:
            return self._states[provider]
        except KeyError:
            raise KeyError(f"No rate limit configured for provider: {provider.value}") from None

    def acquire(self, provider: Provider, token: CancellationToken) -> bool:
        """Claim a slot and wait out the provider's spacing.

        Returns False on cancellation; in that case nothing stays claimed.
        """
        state = self._state(provider)
        if not state.slots.acquire(token):
            return False
        if not self._await_spacing(provider, state, token):
            state.slots.release()
            return False
        return True

    def _await_spacing(
        self, provider: Provider, state: ProviderLimiterState, token: CancellationToken
    ) -> bool:
        while True:
            # Check-then-update must be atomic or two callers can share a window.
            with state.lock:
                now = time.monotonic()
                if state.last_granted is None or now - state.last_granted >= state.min_delay:
                    state.last_granted = now
                    return True
                wait = state.min_delay - (now - state.last_granted)
            logger.debug(f"Spacing requests to {provider.value}, waiting {wait:.2f}s")
            if not token.sleep(wait):
                return False

    def release(self, provider: Provider) -> None:
        self._state(provider).slots.release()

    @contextmanager
    def slot(self, provider: Provider, token: CancellationToken) -> Iterator[bool]:
        """Scoped acquire/release for one request to `provider`."""
        acquired = self.acquire(provider, token)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(provider)

    def in_flight(self, provider: Provider) -> int:
        return self._state(provider).slots.in_use

    def capacity(self, provider: Provider) -> int:
        return self._state(provider).slots.capacity

    @property
    def providers(self) -> list[Provider]:
        return list(self._states)

# ticket_allocator/infrastructure/locking/event_lock.py

from collections import deque
from contextlib import contextmanager
import logging
import threading
import time
from typing import Callable, Iterator, TypeVar

from ticket_allocator.domain.exceptions import LockSaturatedError, LockTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LOCK_TIMEOUT_SECONDS = 5.0
DEFAULT_MAX_PENDING = 1000


class _FairMutex:
    """
    Mutex that admits waiters strictly in arrival order.

    Each waiter parks a token in a deque; only the token at the head
    may take the mutex once it is free. A waiter that gives up removes
    its own token and wakes the others so the next head can proceed.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._held = False
        self._waiters: deque[object] = deque()

    @property
    def pending(self) -> int:
        with self._cond:
            return len(self._waiters)

    def acquire(
        self,
        event_id: str,
        timeout: float | None,
        max_pending: int,
    ) -> None:
        with self._cond:
            if not self._held and not self._waiters:
                self._held = True
                return

            if len(self._waiters) >= max_pending:
                raise LockSaturatedError(event_id, max_pending)

            token = object()
            self._waiters.append(token)
            deadline = None if timeout is None else time.monotonic() + timeout

            while self._held or self._waiters[0] is not token:
                if deadline is None:
                    self._cond.wait()
                    continue

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self._waiters.remove(token)
                    self._cond.notify_all()
                    raise LockTimeoutError(event_id, timeout)
                self._cond.wait(remaining)

            self._waiters.popleft()
            self._held = True

    def release(self) -> None:
        with self._cond:
            if not self._held:
                raise RuntimeError("release of an event lock that is not held")
            self._held = False
            self._cond.notify_all()


class EventLock:
    """
    Registry of per-event mutexes.

    Mutexes are created on first use and kept for the lifetime of the
    process. Operations on the same event id run one at a time in the
    order they asked for the lock; different event ids never contend.
    """

    def __init__(
        self,
        timeout: float | None = DEFAULT_LOCK_TIMEOUT_SECONDS,
        max_pending: int = DEFAULT_MAX_PENDING,
    ):
        if timeout is not None and timeout < 0:
            raise ValueError("timeout must be non-negative")
        if max_pending < 0:
            raise ValueError("max_pending must be non-negative")

        self.timeout = timeout
        self.max_pending = max_pending
        self._registry_lock = threading.Lock()
        self._mutexes: dict[str, _FairMutex] = {}

    def _mutex_for(self, event_id: str) -> _FairMutex:
        with self._registry_lock:
            mutex = self._mutexes.get(event_id)
            if mutex is None:
                mutex = _FairMutex()
                self._mutexes[event_id] = mutex
            return mutex

    def pending(self, event_id: str) -> int:
        """Number of callers currently queued behind the holder."""
        with self._registry_lock:
            mutex = self._mutexes.get(event_id)
        return mutex.pending if mutex is not None else 0

    @contextmanager
    def hold(self, event_id: str) -> Iterator[None]:
        mutex = self._mutex_for(event_id)
        try:
            mutex.acquire(event_id, self.timeout, self.max_pending)
        except (LockTimeoutError, LockSaturatedError) as exc:
            logger.warning("Event lock not acquired. event_id=%s reason=%s", event_id, exc)
            raise

        try:
            yield
        finally:
            mutex.release()

    def with_lock(self, event_id: str, operation: Callable[[], T]) -> T:
        with self.hold(event_id):
            return operation()

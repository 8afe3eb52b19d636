"""
Progress and broadcast cells.

A WatchCell holds the latest value of some shared state (progress,
balances, history, connection status). Exactly one writer handle can be
claimed per cell; any number of readers can poll get() or subscribe().
Subscribers may miss intermediate values: only the latest value is kept.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Progress milestones reported by the dispatch worker
PROGRESS_START = 0.0
PROGRESS_AUTHENTICATING = 0.3
PROGRESS_CONSTRUCTING = 0.4
PROGRESS_SUBMITTING = 0.6
PROGRESS_AWAITING = 0.8
PROGRESS_DONE = 1.0


@dataclass(frozen=True)
class ProgressEvent:
    """Progress of the current operation (fraction in [0, 1])."""
    fraction: float
    message: str
    error: bool = False

    def __post_init__(self):
        if not 0.0 <= self.fraction <= 1.0:
            raise ValueError(f"progress fraction out of range: {self.fraction}")

    @property
    def finished(self) -> bool:
        return self.fraction >= PROGRESS_DONE

    @classmethod
    def failed(cls, message: str) -> "ProgressEvent":
        return cls(PROGRESS_DONE, message, error=True)


class CellWriter(Generic[T]):
    """The single write handle of a WatchCell."""

    def __init__(self, cell: "WatchCell[T]"):
        self._cell = cell

    def set(self, value: T) -> None:
        self._cell._publish(value)

    def update(self, fn: Callable[[T], T]) -> T:
        """Replace the value with fn(current) atomically with respect to other writes."""
        return self._cell._apply(fn)


class WatchCell(Generic[T]):
    """Single-slot, latest-value-wins broadcast cell."""

    def __init__(self, name: str, initial: Optional[T] = None):
        self.name = name
        self._value = initial
        self._version = 0
        self._writer_claimed = False
        self._subscribers: list[Callable[[T], Any]] = []
        self._cond = threading.Condition()

    def claim_writer(self) -> CellWriter[T]:
        """Return the writer handle. Can only be called once per cell."""
        with self._cond:
            if self._writer_claimed:
                raise RuntimeError(f"writer for cell '{self.name}' already claimed")
            self._writer_claimed = True
        return CellWriter(self)

    def get(self) -> Optional[T]:
        with self._cond:
            return self._value

    @property
    def version(self) -> int:
        """Number of values published so far."""
        with self._cond:
            return self._version

    def subscribe(self, callback: Callable[[T], Any]) -> Callable[[], None]:
        """
        Register a callback invoked (on the writer's thread) with each new value.

        Returns:
            A function that removes the subscription
        """
        with self._cond:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._cond:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def wait_for(self, predicate: Callable[[Optional[T]], bool],
                 timeout: Optional[float] = None) -> Optional[T]:
        """Block until predicate(value) is true; returns the value, or None on timeout."""
        with self._cond:
            if self._cond.wait_for(lambda: predicate(self._value), timeout=timeout):
                return self._value
            return None

    def _publish(self, value: T) -> None:
        with self._cond:
            self._value = value
            self._version += 1
            subscribers = list(self._subscribers)
            self._cond.notify_all()
        self._notify(subscribers, value)

    def _apply(self, fn: Callable[[T], T]) -> T:
        with self._cond:
            value = fn(self._value)
            self._value = value
            self._version += 1
            subscribers = list(self._subscribers)
            self._cond.notify_all()
        self._notify(subscribers, value)
        return value

    def _notify(self, subscribers: list, value: T) -> None:
        for callback in subscribers:
            try:
                callback(value)
            except Exception:
                logger.exception(f"Subscriber of cell '{self.name}' raised")

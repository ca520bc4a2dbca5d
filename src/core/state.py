from __future__ import annotations

import enum
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Union

logger = logging.getLogger(__name__)


class RunState(enum.Enum):
    IDLE = "idle"
    COUNTING = "counting"
    GENERATING = "generating"
    APPLYING = "applying"
    DONE = "done"
    ABORTED = "aborted"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (RunState.DONE, RunState.ABORTED, RunState.FAILED)


@dataclass(frozen=True)
class Notify:
    message: str
    notify_type: str = "info"   # info/success/warn/error


@dataclass(frozen=True)
class ProgressUpdate:
    percent: int


@dataclass(frozen=True)
class StateChange:
    state: RunState


StatusEvent = Union[Notify, ProgressUpdate, StateChange]

_LOG_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class ProgressContext:
    """
    Counters, cancel flag and status channel shared by every phase of a run.

    The worker thread writes; any other thread may call `cancel()`, read
    `percent` or drain `events()`. With `keep_events=False` events only go to
    subscribed listeners and `events()` stays empty.
    """

    def __init__(self, keep_events: bool = True):
        self._lock = threading.Lock()
        self._cancel = threading.Event()
        self._done = 0
        self._total = 0
        self._percent = 0
        self._events: "Optional[queue.Queue[StatusEvent]]" = queue.Queue() if keep_events else None
        self._listeners: list[Callable[[StatusEvent], None]] = []

    # ---- cancellation ----
    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    # ---- counters ----
    def set_total(self, total: int) -> None:
        with self._lock:
            self._total = max(0, int(total))

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    @property
    def done(self) -> int:
        with self._lock:
            return self._done

    @property
    def percent(self) -> int:
        with self._lock:
            return self._percent

    def advance(self, amount: int = 1) -> None:
        with self._lock:
            self._done += amount
            if self._total <= 0:
                return
            value = min(100, (self._done * 100) // self._total)
            if value <= self._percent:
                return
            self._percent = value
        self.publish(ProgressUpdate(value))

    def finish(self) -> None:
        """Report 100%, whatever the outcome of the run."""
        with self._lock:
            self._percent = 100
        self.publish(ProgressUpdate(100))

    # ---- status channel ----
    def subscribe(self, listener: Callable[[StatusEvent], None]) -> None:
        self._listeners.append(listener)

    def publish(self, event: StatusEvent) -> None:
        if self._events is not None:
            self._events.put(event)
        for listener in list(self._listeners):
            listener(event)

    def notify(self, message: str, notify_type: str = "info") -> None:
        logger.log(_LOG_LEVELS.get(notify_type, logging.INFO), message)
        self.publish(Notify(message=message, notify_type=notify_type))

    def events(self) -> Iterator[StatusEvent]:
        """Drain the events published so far without blocking."""
        if self._events is None:
            return
        while True:
            try:
                yield self._events.get_nowait()
            except queue.Empty:
                return

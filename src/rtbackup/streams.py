"""Push-based change streams.

A ChangeStream is the subscribable sequence adapters hand to the monitor.
Producers call publish() on whatever thread they own; each record is
delivered synchronously, in publish order, to every live subscription.

The one contract consumers rely on: once Subscription.cancel() returns,
its on_record callback is never invoked again.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Generic, Literal, TypeVar

from rtbackup.domain import StreamSubscriptionFailure

T = TypeVar("T")

StreamState = Literal["open", "completed", "failed"]

RecordHandler = Callable[[T], None]
ErrorHandler = Callable[[BaseException], None]


class Subscription(Generic[T]):
    """Handle returned by ChangeStream.subscribe()."""

    def __init__(
        self,
        stream: ChangeStream[T],
        on_record: RecordHandler,
        on_error: ErrorHandler | None,
    ):
        self._stream = stream
        self._on_record = on_record
        self._on_error = on_error
        # Reentrant so a handler may cancel its own subscription.
        self._lock = threading.RLock()
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        """Stop deliveries. Waits for an in-flight delivery to finish.

        Safe to call more than once and from inside on_record.
        """
        with self._lock:
            if not self._active:
                return
            self._active = False
        self._stream._detach(self)

    def _deliver(self, record: T) -> None:
        with self._lock:
            if self._active:
                self._on_record(record)

    def _terminate(self, error: BaseException | None) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
            if error is not None and self._on_error is not None:
                self._on_error(error)


class ChangeStream(Generic[T]):
    """A push-based, ordered, potentially unbounded sequence of records.

    Args:
        name: Label used in error messages (e.g. "conversations").
        on_first_subscribe: Called when the subscriber count goes 0 -> 1.
            Adapters use it to start their producer lazily.
        on_last_unsubscribe: Called when the subscriber count goes 1 -> 0.
    """

    def __init__(
        self,
        name: str,
        *,
        on_first_subscribe: Callable[[], None] | None = None,
        on_last_unsubscribe: Callable[[], None] | None = None,
    ):
        self.name = name
        self._on_first_subscribe = on_first_subscribe
        self._on_last_unsubscribe = on_last_unsubscribe
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription[T]] = []
        self._state: StreamState = "open"
        self._error: BaseException | None = None

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def subscribe(
        self,
        on_record: RecordHandler,
        on_error: ErrorHandler | None = None,
    ) -> Subscription[T]:
        """Register handlers and return a cancellable subscription.

        Raises StreamSubscriptionFailure if the stream has already
        terminated, or if starting the producer fails.
        """
        subscription = Subscription(self, on_record, on_error)
        with self._lock:
            if self._state != "open":
                detail = f": {self._error}" if self._error is not None else ""
                raise StreamSubscriptionFailure(f"{self.name} stream is {self._state}{detail}")
            first = not self._subscriptions
            self._subscriptions.append(subscription)

        if first and self._on_first_subscribe is not None:
            try:
                self._on_first_subscribe()
            except Exception as e:
                with self._lock:
                    self._subscriptions.remove(subscription)
                raise StreamSubscriptionFailure(f"could not start {self.name} stream: {e}") from e
        return subscription

    def publish(self, record: T) -> None:
        """Deliver a record to every live subscription, in subscription order."""
        with self._lock:
            if self._state != "open":
                return
            targets = list(self._subscriptions)
        for subscription in targets:
            subscription._deliver(record)

    def fail(self, error: BaseException) -> None:
        """Terminate the stream abnormally, reporting error to every subscriber."""
        self._terminate("failed", error)

    def complete(self) -> None:
        """Terminate the stream normally."""
        self._terminate("completed", None)

    def _terminate(self, state: StreamState, error: BaseException | None) -> None:
        with self._lock:
            if self._state != "open":
                return
            self._state = state
            self._error = error
            targets = list(self._subscriptions)
            self._subscriptions.clear()
        for subscription in targets:
            subscription._terminate(error)
        if targets and self._on_last_unsubscribe is not None:
            self._on_last_unsubscribe()

    def _detach(self, subscription: Subscription[T]) -> None:
        with self._lock:
            if subscription not in self._subscriptions:
                return
            self._subscriptions.remove(subscription)
            last = not self._subscriptions
        if last and self._on_last_unsubscribe is not None:
            self._on_last_unsubscribe()

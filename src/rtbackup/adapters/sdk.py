"""Adapter authoring SDK.

Helpers that reduce boilerplate in adapter implementations.
"""

import csv
import io
import threading
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from typing import Generic, TypeVar

from rtbackup.streams import ChangeStream

T = TypeVar("T")


_LINE_ESCAPES = str.maketrans({"\\": "\\\\", "\n": "\\n", "\r": "\\r"})


def csv_line(values: Iterable[object]) -> str:
    """Render values as one CSV line without a trailing line terminator.

    None becomes an empty field; everything else goes through str().
    Backslashes, newlines and carriage returns inside values are escaped
    (\\\\, \\n, \\r) so each record stays on one physical line.

    Example:
        def to_csv_line(self):
            return csv_line([self.id, self.author, self.body])
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="")
    writer.writerow(["" if v is None else str(v).translate(_LINE_ESCAPES) for v in values])
    return buffer.getvalue()


def unix_to_iso(value: int | None) -> str | None:
    """Convert a Unix timestamp in seconds to an ISO 8601 UTC string.

    Zero and None mean "not set" and map to None.
    """
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()


class PollingFeed(Generic[T]):
    """Publishes newly appeared rows into a ChangeStream from a background thread.

    fetch(after) returns records whose key is greater than `after`, in
    ascending key order. The feed remembers the highest key published and
    asks only for newer rows on the next poll. A fetch error fails the
    stream.

    The feed starts when the stream gets its first subscriber and stops
    when the last one goes away, so adapters behave as cold streams.

    Args:
        name: Stream name (e.g. "messages").
        fetch: Callable returning new records after a given key.
        key: Extracts the ordering key from a record.
        interval: Seconds to wait between polls.
        open_session: Optional context-manager factory entered on the
            polling thread for the duration of the feed; its value is
            passed to fetch as the first argument.
        batch_size: Most records fetch returns per call. A full batch is
            followed by another fetch right away instead of a wait.
    """

    def __init__(
        self,
        name: str,
        fetch: Callable[..., Iterable[T]],
        key: Callable[[T], int],
        *,
        interval: float = 2.0,
        open_session: Callable | None = None,
        high_water: int = 0,
        batch_size: int | None = None,
    ):
        self.stream: ChangeStream[T] = ChangeStream(
            name,
            on_first_subscribe=self.start,
            on_last_unsubscribe=self.stop,
        )
        self.interval = interval
        self.high_water = high_water
        self.batch_size = batch_size
        self._fetch = fetch
        self._key = key
        self._open_session = open_session
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(self._stop,),
            name=f"rtbackup-{self.stream.name}",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        thread = self._thread
        # Stopping from inside a handler on the feed's own thread: the loop
        # notices the event once the handler returns.
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _run(self, stop: threading.Event) -> None:
        try:
            if self._open_session is None:
                self._poll(stop, ())
            else:
                with self._open_session() as session:
                    self._poll(stop, (session,))
        except Exception as e:
            self.stream.fail(e)

    def _poll(self, stop: threading.Event, args: tuple) -> None:
        while not stop.is_set():
            count = 0
            for record in self._fetch(*args, self.high_water):
                if stop.is_set():
                    return
                self.stream.publish(record)
                self.high_water = self._key(record)
                count += 1
            if self.batch_size and count >= self.batch_size:
                continue
            stop.wait(self.interval)

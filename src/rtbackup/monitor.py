"""Monitor: connect, subscribe, export, tear down.

start() acquires, in order, the share connection, the adapter's connection
to the remote database, the conversation subscription, and the message
subscription. Each acquisition pushes its release onto an ExitStack, so
stop() (or a failure part-way through start()) releases them in reverse:
subscriptions first, connection last.
"""

import threading
from collections.abc import Callable
from contextlib import ExitStack
from functools import partial
from typing import Literal

from rtbackup.domain import (
    ChangeStreamAdapter,
    MonitorConfiguration,
    MountNotFound,
    Record,
    RecordKind,
)
from rtbackup.exporter import IncrementalExporter
from rtbackup.plugin_discovery import warn
from rtbackup.share import ShareConnection, ShareConnector

MonitorState = Literal["idle", "starting", "running", "stopping"]

ExportCallback = Callable[[RecordKind, Record], None]
ExportErrorCallback = Callable[[RecordKind, Record, Exception], None]
StreamErrorCallback = Callable[[RecordKind, BaseException], None]


class ChangeStreamMonitor:
    """Exports newly observed conversations and messages from one remote source.

    Args:
        config: Resolved monitor configuration.
        adapter: Database adapter producing the two change streams.
        connector: Share connector; one is created if not given.
        on_export: Called after each record is appended.
        on_error: Called when exporting a record fails. Later records are
            still attempted.
        on_stream_error: Called when a stream terminates abnormally. The
            stream is not resubscribed.

    Callbacks run on the adapter's delivery thread and must not call stop().
    Without error callbacks, failures are printed to stderr as warnings.
    """

    def __init__(
        self,
        config: MonitorConfiguration,
        adapter: ChangeStreamAdapter,
        *,
        connector: ShareConnector | None = None,
        on_export: ExportCallback | None = None,
        on_error: ExportErrorCallback | None = None,
        on_stream_error: StreamErrorCallback | None = None,
    ):
        self._config = config
        self._adapter = adapter
        self._connector = connector if connector is not None else ShareConnector()
        self._on_export = on_export
        self._on_error = on_error
        self._on_stream_error = on_stream_error

        self._exporters: dict[RecordKind, IncrementalExporter] = {
            "conversations": IncrementalExporter(config.conversation_target),
            "messages": IncrementalExporter(config.message_target),
        }

        self._lifecycle = threading.Lock()
        self._state: MonitorState = "idle"
        self._cleanup: ExitStack | None = None
        self._connection: ShareConnection | None = None

    @property
    def config(self) -> MonitorConfiguration:
        return self._config

    @property
    def adapter(self) -> ChangeStreamAdapter:
        return self._adapter

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def connection(self) -> ShareConnection | None:
        return self._connection

    def start(self) -> None:
        """Connect to the share and subscribe to both streams.

        The export directory is created first if it doesn't exist. Either
        everything is acquired or nothing is: connector errors are raised
        unmodified with no subscriptions made, and a failure after
        connecting releases what was acquired before re-raising.

        Raises:
            RuntimeError: the monitor is not idle.
            AuthenticationError, NetworkUnreachable, AlreadyMounted: from the connector.
            StreamSubscriptionFailure: a stream refused the subscription.
        """
        with self._lifecycle:
            if self._state != "idle":
                raise RuntimeError(f"monitor is already {self._state}")
            self._state = "starting"
            config = self._config
            try:
                config.target_dir.mkdir(parents=True, exist_ok=True)
                with ExitStack() as stack:
                    connection = self._connector.connect(
                        config.host, config.credential, share=config.share
                    )
                    stack.callback(self._release, connection)

                    self._adapter.set_connection(connection.resolve(config.remote_source))

                    conversations = self._adapter.conversations().subscribe(
                        partial(self._deliver, "conversations"),
                        partial(self._stream_failed, "conversations"),
                    )
                    stack.callback(conversations.cancel)

                    messages = self._adapter.messages().subscribe(
                        partial(self._deliver, "messages"),
                        partial(self._stream_failed, "messages"),
                    )
                    stack.callback(messages.cancel)

                    self._connection = connection
                    self._cleanup = stack.pop_all()
            except BaseException:
                self._state = "idle"
                raise
            self._state = "running"

    def stop(self) -> None:
        """Cancel both subscriptions, then release the connection.

        No-op unless running. Once this returns no further record reaches
        the exporter. A release failure other than MountNotFound is raised
        after the subscriptions are already cancelled.
        """
        with self._lifecycle:
            if self._state != "running":
                return
            self._state = "stopping"
            cleanup, self._cleanup = self._cleanup, None
            try:
                if cleanup is not None:
                    cleanup.close()
            finally:
                self._connection = None
                self._state = "idle"

    def __enter__(self) -> "ChangeStreamMonitor":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _release(self, connection: ShareConnection) -> None:
        try:
            self._connector.disconnect(connection)
        except MountNotFound:
            pass

    def _deliver(self, kind: RecordKind, record: Record) -> None:
        exporter = self._exporters[kind]
        try:
            written = exporter.export(record)
        except Exception as e:
            if self._on_error is not None:
                self._on_error(kind, record, e)
            else:
                warn(f"failed to export {kind} record to {exporter.path}: {e}")
            return
        if written and self._on_export is not None:
            self._on_export(kind, record)

    def _stream_failed(self, kind: RecordKind, error: BaseException) -> None:
        if self._on_stream_error is not None:
            self._on_stream_error(kind, error)
        else:
            warn(f"{kind} stream failed: {error}")

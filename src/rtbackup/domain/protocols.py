"""Protocol definitions for records, streams, adapters, and share mounts."""

from collections.abc import Callable
from typing import Protocol

from .models import Credential


class Record(Protocol):
    """A conversation or message record.

    Records own their serialization; the core only needs one line of text.
    An empty or whitespace-only line means there is nothing to export.
    """

    def to_csv_line(self) -> str:
        ...


class Cancellable(Protocol):
    def cancel(self) -> None:
        """Stop deliveries; no handler runs once this returns."""
        ...


class Subscribable(Protocol):
    """A push-based stream of records (see rtbackup.streams.ChangeStream)."""

    def subscribe(
        self,
        on_record: Callable[[Record], None],
        on_error: Callable[[BaseException], None] | None = None,
    ) -> Cancellable:
        ...


class ChangeStreamAdapter(Protocol):
    """Protocol for database adapters.

    Adapters open the remote chat database and expose two independent
    push-based streams of newly observed records.
    """

    def set_connection(self, path: str) -> None:
        """Point the adapter at the database file to read."""
        ...

    def conversations(self) -> Subscribable:
        ...

    def messages(self) -> Subscribable:
        ...


class MountHandle(Protocol):
    """A mounted share as returned by a RemoteShareMount backend."""

    address: str

    def resolve(self, remote_path: str) -> str:
        """Translate a UNC path under this mount into a locally openable path."""
        ...


class RemoteShareMount(Protocol):
    """Platform capability for mounting and releasing network shares."""

    def mount(self, address: str, credential: Credential | None) -> MountHandle:
        ...

    def unmount(self, handle: MountHandle) -> None:
        ...


__all__ = [
    "Cancellable",
    "ChangeStreamAdapter",
    "MountHandle",
    "Record",
    "RemoteShareMount",
    "Subscribable",
]

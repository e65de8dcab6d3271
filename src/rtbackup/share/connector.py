"""Credentialed connections to remote shares.

The connector is the only owner of OS-level mount state. It makes a single
synchronous attempt per connect() and never retries; callers that need a
timeout or backoff wrap the call themselves.
"""

import threading
from typing import Literal

from rtbackup.domain import (
    Credential,
    MountHandle,
    MountNotFound,
    RemoteShareMount,
    unc_path,
)

ConnectionState = Literal["disconnected", "connected"]


class ShareConnection:
    """One mount of a remote share, owned by a ShareConnector."""

    def __init__(
        self,
        host: str,
        share: str | None,
        credential: Credential | None,
        remote_address: str,
    ):
        self.host = host
        self.share = share
        self.credential = credential
        self.remote_address = remote_address
        self._handle: MountHandle | None = None

    @property
    def state(self) -> ConnectionState:
        return "connected" if self._handle is not None else "disconnected"

    @property
    def connected(self) -> bool:
        return self._handle is not None

    def resolve(self, remote_path: str) -> str:
        """Translate a UNC path under this share into a path the process can open."""
        if self._handle is None:
            raise MountNotFound(self.remote_address, "connection is not established")
        return self._handle.resolve(remote_path)

    def __repr__(self) -> str:
        return f"ShareConnection({self.remote_address!r}, state={self.state!r})"


class ShareConnector:
    """Establishes and releases share connections through a mount backend.

    Args:
        mount: Platform backend. Defaults to default_share_mount().
    """

    def __init__(self, mount: RemoteShareMount | None = None):
        if mount is None:
            from rtbackup.share.mounts import default_share_mount

            mount = default_share_mount()
        self._mount = mount
        self._lock = threading.Lock()
        self._held: dict[str, ShareConnection] = {}

    @property
    def connections(self) -> list[ShareConnection]:
        """Connections currently held by this connector."""
        with self._lock:
            return list(self._held.values())

    def connect(
        self,
        host: str,
        credential: Credential | None = None,
        *,
        share: str | None = None,
    ) -> ShareConnection:
        """Mount \\\\host (or \\\\host\\share) and return the connection.

        Returns the held connection if this connector already owns one for
        the same target.

        Raises:
            ValueError: host is empty.
            AuthenticationError: the credential was rejected.
            NetworkUnreachable: host unreachable or share missing.
            AlreadyMounted: the target is mounted by someone else.
        """
        host = (host or "").strip().lstrip("\\/")
        if not host:
            raise ValueError("host must be non-empty")

        address = unc_path(host, share or "")
        key = address.lower()

        with self._lock:
            held = self._held.get(key)
            if held is not None and held.connected:
                return held

            handle = self._mount.mount(address, credential)

            connection = ShareConnection(host, share, credential, address)
            connection._handle = handle
            self._held[key] = connection
            return connection

    def disconnect(self, connection: ShareConnection) -> None:
        """Release a connection.

        Raises MountNotFound if the connection is not mounted, including when
        it was removed outside this connector; the connection is marked
        disconnected either way. Other backend errors leave it connected.
        """
        with self._lock:
            handle = connection._handle
            if handle is None:
                raise MountNotFound(connection.remote_address, "connection already released")
            try:
                self._mount.unmount(handle)
            except MountNotFound:
                self._forget(connection)
                raise
            self._forget(connection)

    def close(self) -> None:
        """Release every held connection.

        Connections that turn out to be gone already are ignored; the first
        other failure is raised after all releases were attempted.
        """
        first_error: Exception | None = None
        for connection in self.connections:
            try:
                self.disconnect(connection)
            except MountNotFound:
                continue
            except Exception as e:
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error

    def _forget(self, connection: ShareConnection) -> None:
        connection._handle = None
        self._held.pop(connection.remote_address.lower(), None)

"""Shared fixtures and fakes for rtbackup tests."""

import sqlite3
from dataclasses import dataclass
from pathlib import Path

import pytest

from rtbackup.domain import (
    AlreadyMounted,
    AuthenticationError,
    Credential,
    MonitorConfiguration,
    MountNotFound,
    NetworkUnreachable,
)
from rtbackup.share import ShareConnector
from rtbackup.share.mounts import UncMount, split_unc
from rtbackup.streams import ChangeStream


@dataclass
class LineRecord:
    """Record whose serialization is given up front."""

    line: str

    def to_csv_line(self) -> str:
        return self.line


class FakeShareMount:
    """In-memory share mount backend.

    Knows a set of reachable hosts and accounts; addresses in `foreign`
    behave as if someone else already mounted them.
    """

    def __init__(self, hosts=("HOST1",), accounts=None, foreign=()):
        self.hosts = {h.lower() for h in hosts}
        self.accounts = {"corp\\alice": "s3cret"} if accounts is None else accounts
        self.foreign = {a.lower() for a in foreign}
        self.mounted: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self.unmount_error: Exception | None = None

    def mount(self, address, credential):
        self.calls.append(("mount", address))
        if split_unc(address)[0].lower() not in self.hosts:
            raise NetworkUnreachable(address, "system error 53")
        if address.lower() in self.foreign:
            raise AlreadyMounted(address)
        if credential is not None and self.accounts.get(credential.principal) != credential.secret:
            raise AuthenticationError(address, "system error 1326")
        self.mounted.add(address.lower())
        return UncMount(address=address)

    def unmount(self, handle):
        self.calls.append(("unmount", handle.address))
        if self.unmount_error is not None:
            raise self.unmount_error
        if handle.address.lower() not in self.mounted:
            raise MountNotFound(handle.address, "system error 2250")
        self.mounted.discard(handle.address.lower())


class FakeAdapter:
    """Adapter whose streams tests publish into directly."""

    def __init__(self):
        self.path: str | None = None
        self.conversation_stream: ChangeStream = ChangeStream("conversations")
        self.message_stream: ChangeStream = ChangeStream("messages")
        self.set_connection_error: Exception | None = None

    def set_connection(self, path):
        if self.set_connection_error is not None:
            raise self.set_connection_error
        self.path = path

    def conversations(self):
        return self.conversation_stream

    def messages(self):
        return self.message_stream


def make_config(target_dir: Path, **overrides) -> MonitorConfiguration:
    values = {
        "host": "HOST1",
        "source_path": r"C$\Users\alice\AppData\Roaming\Skype\alice",
        "file_name": "main.db",
        "target_dir": target_dir,
        "credential": Credential(principal="corp\\alice", secret="s3cret"),
    }
    values.update(overrides)
    return MonitorConfiguration(**values)


def read_lines(path: Path) -> list[str]:
    if not path.exists():
        return []
    return path.read_text(encoding="utf-8").splitlines()


def create_skype_db(path: Path) -> sqlite3.Connection:
    """Create a minimal main.db with the columns the skype adapter reads."""
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.executescript(
        """
        CREATE TABLE Conversations (
            id INTEGER NOT NULL PRIMARY KEY,
            identity TEXT,
            type INTEGER,
            displayname TEXT,
            given_displayname TEXT,
            creator TEXT,
            creation_timestamp INTEGER,
            meta_topic TEXT
        );
        CREATE TABLE Messages (
            id INTEGER NOT NULL PRIMARY KEY,
            convo_id INTEGER,
            chatname TEXT,
            author TEXT,
            from_dispname TEXT,
            timestamp INTEGER,
            type INTEGER,
            body_xml TEXT
        );
        """
    )
    conn.commit()
    return conn


@pytest.fixture
def fake_mount():
    return FakeShareMount()


@pytest.fixture
def connector(fake_mount):
    return ShareConnector(fake_mount)


@pytest.fixture
def adapter():
    return FakeAdapter()


@pytest.fixture
def config(tmp_path):
    return make_config(tmp_path / "exports")


@pytest.fixture(autouse=True)
def isolated_xdg(tmp_path, monkeypatch):
    """Keep config/data/state lookups inside the test's tmp dir."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "xdg-state"))

"""Configuration and export-target types for a monitor."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Literal

from .errors import ConfigError

RecordKind = Literal["conversations", "messages"]

# Distinct suffix per stream; both kinds used to land in one file.
EXPORT_SUFFIXES: dict[RecordKind, str] = {
    "conversations": "conversations",
    "messages": "messages",
}


@dataclass(frozen=True)
class Credential:
    """A principal and secret used to mount a share.

    The principal may be qualified as ``<domainOrHost>\\<user>``.
    """

    principal: str
    secret: str = field(repr=False)

    def __post_init__(self):
        if not self.principal:
            raise ValueError("credential principal must be non-empty")

    @property
    def domain(self) -> str | None:
        if "\\" in self.principal:
            return self.principal.split("\\", 1)[0] or None
        return None

    @property
    def user(self) -> str:
        return self.principal.split("\\", 1)[-1]


def unc_path(host: str, *parts: str) -> str:
    """Build ``\\\\host\\part\\...`` from a host and path segments.

    Segments may themselves contain forward or back slashes; empty
    segments are dropped.
    """
    segments = []
    for part in parts:
        segments.extend(s for s in part.replace("/", "\\").split("\\") if s)
    return "\\\\" + "\\".join([host, *segments])


@dataclass(frozen=True)
class ExportTarget:
    """Resolved local file that records of one kind are appended to."""

    kind: RecordKind
    path: Path

    @classmethod
    def resolve(cls, target_dir: Path, file_name: str, kind: RecordKind) -> "ExportTarget":
        return cls(kind=kind, path=Path(target_dir) / f"{file_name}.csv.{EXPORT_SUFFIXES[kind]}")


@dataclass(frozen=True)
class MonitorConfiguration:
    """Everything a monitor needs to reach its source and write its exports.

    Derived paths (remote source, export targets) are resolved once here
    and never re-derived by callers.
    """

    host: str
    source_path: str
    file_name: str
    target_dir: Path
    credential: Credential | None = None
    adapter: str = "skype"
    adapter_options: Mapping[str, object] = field(default_factory=dict)

    share: str = field(init=False)
    remote_source: str = field(init=False)
    conversation_target: ExportTarget = field(init=False)
    message_target: ExportTarget = field(init=False)

    def __post_init__(self):
        for name in ("host", "source_path", "file_name"):
            if not str(getattr(self, name) or "").strip():
                raise ConfigError(f"{name} must be non-empty")
        if self.target_dir is None or not str(self.target_dir).strip():
            raise ConfigError("target_dir must be non-empty")

        host = self.host.strip().lstrip("\\/")
        target_dir = Path(self.target_dir).expanduser()
        source_segments = [s for s in self.source_path.replace("/", "\\").split("\\") if s]
        if not source_segments:
            raise ConfigError(f"source_path has no share component: {self.source_path!r}")

        # frozen: derived fields go through object.__setattr__
        object.__setattr__(self, "host", host)
        object.__setattr__(self, "target_dir", target_dir)
        object.__setattr__(self, "adapter_options", MappingProxyType(dict(self.adapter_options)))
        object.__setattr__(self, "share", source_segments[0])
        object.__setattr__(self, "remote_source", unc_path(host, self.source_path, self.file_name))
        object.__setattr__(
            self,
            "conversation_target",
            ExportTarget.resolve(target_dir, self.file_name, "conversations"),
        )
        object.__setattr__(
            self,
            "message_target",
            ExportTarget.resolve(target_dir, self.file_name, "messages"),
        )

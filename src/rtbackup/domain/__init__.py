"""Domain objects, protocols, and errors for rtbackup."""

from .errors import (
    AlreadyMounted,
    AuthenticationError,
    ConfigError,
    MountNotFound,
    NetworkUnreachable,
    RtbackupError,
    ShareError,
    StreamSubscriptionFailure,
)
from .models import (
    EXPORT_SUFFIXES,
    Credential,
    ExportTarget,
    MonitorConfiguration,
    RecordKind,
    unc_path,
)
from .protocols import (
    Cancellable,
    ChangeStreamAdapter,
    MountHandle,
    Record,
    RemoteShareMount,
    Subscribable,
)

__all__ = [
    # Models
    "Credential",
    "ExportTarget",
    "EXPORT_SUFFIXES",
    "MonitorConfiguration",
    "RecordKind",
    "unc_path",
    # Protocols
    "Cancellable",
    "ChangeStreamAdapter",
    "MountHandle",
    "Record",
    "RemoteShareMount",
    "Subscribable",
    # Errors
    "RtbackupError",
    "ConfigError",
    "ShareError",
    "AuthenticationError",
    "NetworkUnreachable",
    "AlreadyMounted",
    "MountNotFound",
    "StreamSubscriptionFailure",
]

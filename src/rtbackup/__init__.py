"""rtbackup - incremental backup of a remote chat database.

Public API re-exports for programmatic access.
"""

from rtbackup.api import (
    AdapterInfo,
    MonitorSummary,
    list_adapters,
    list_monitor_profiles,
    open_monitor,
)
from rtbackup.domain import (
    AlreadyMounted,
    AuthenticationError,
    ConfigError,
    Credential,
    ExportTarget,
    MonitorConfiguration,
    MountNotFound,
    NetworkUnreachable,
    RtbackupError,
    ShareError,
    StreamSubscriptionFailure,
)
from rtbackup.exporter import IncrementalExporter
from rtbackup.monitor import ChangeStreamMonitor
from rtbackup.share import ShareConnection, ShareConnector
from rtbackup.streams import ChangeStream, Subscription

__all__ = [
    # monitor
    "ChangeStreamMonitor",
    "MonitorConfiguration",
    "Credential",
    "ExportTarget",
    "open_monitor",
    # building blocks
    "ShareConnector",
    "ShareConnection",
    "ChangeStream",
    "Subscription",
    "IncrementalExporter",
    # discovery
    "AdapterInfo",
    "MonitorSummary",
    "list_adapters",
    "list_monitor_profiles",
    # errors
    "RtbackupError",
    "ConfigError",
    "ShareError",
    "AuthenticationError",
    "NetworkUnreachable",
    "AlreadyMounted",
    "MountNotFound",
    "StreamSubscriptionFailure",
]

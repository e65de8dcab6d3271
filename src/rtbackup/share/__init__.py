"""Remote share connections."""

from .connector import ConnectionState, ShareConnection, ShareConnector
from .mounts import CifsShareMount, NetUseShareMount, default_share_mount

__all__ = [
    "CifsShareMount",
    "ConnectionState",
    "NetUseShareMount",
    "ShareConnection",
    "ShareConnector",
    "default_share_mount",
]

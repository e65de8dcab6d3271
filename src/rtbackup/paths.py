"""XDG Base Directory paths for rtbackup.

Follows XDG Base Directory Specification:
- XDG_DATA_HOME (~/.local/share) - default export directory
- XDG_CONFIG_HOME (~/.config) - configuration files, drop-in adapters
- XDG_STATE_HOME (~/.local/state) - runtime state (share mount points)
"""

import os
from pathlib import Path

APP_NAME = "rtbackup"


def _get_xdg_path(env_var: str, default: str) -> Path:
    """Get XDG path from environment or use default."""
    return Path(os.environ.get(env_var, default)).expanduser()


def data_dir() -> Path:
    """Return the data directory (~/.local/share/rtbackup)."""
    base = _get_xdg_path("XDG_DATA_HOME", "~/.local/share")
    return base / APP_NAME


def config_dir() -> Path:
    """Return the config directory (~/.config/rtbackup)."""
    base = _get_xdg_path("XDG_CONFIG_HOME", "~/.config")
    return base / APP_NAME


def state_dir() -> Path:
    """Return the state directory (~/.local/state/rtbackup)."""
    base = _get_xdg_path("XDG_STATE_HOME", "~/.local/state")
    return base / APP_NAME


def config_file() -> Path:
    """Return the config file path (~/.config/rtbackup/config.toml)."""
    return config_dir() / "config.toml"


def adapters_dir() -> Path:
    """Return the drop-in adapters directory (~/.config/rtbackup/adapters)."""
    return config_dir() / "adapters"


def exports_dir() -> Path:
    """Return the default export directory (~/.local/share/rtbackup/exports)."""
    return data_dir() / "exports"


def mounts_dir() -> Path:
    """Return the directory CIFS shares are mounted under."""
    return state_dir() / "mounts"

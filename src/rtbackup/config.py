"""Configuration file handling.

Config lives at ~/.config/rtbackup/config.toml. Monitor profiles are
tables under [monitors]:

    [monitors.office]
    host = "HOST1"
    source_path = "C$/Users/alice/AppData/Roaming/Skype/alice"
    file_name = "main.db"
    target_dir = "~/backups/skype"
    principal = 'corp\\alice'
    secret_env = "RTBACKUP_OFFICE_SECRET"
    adapter = "skype"

    [monitors.office.adapter_options]
    poll_interval = 5
    start_at = "end"
"""

import os
import re

import tomlkit
import tomlkit.exceptions
from tomlkit import TOMLDocument

from rtbackup.domain import ConfigError, Credential, MonitorConfiguration
from rtbackup.paths import config_file, exports_dir
from rtbackup.plugin_discovery import warn

_PROFILE_KEYS = {
    "host",
    "source_path",
    "file_name",
    "target_dir",
    "principal",
    "secret",
    "secret_env",
    "adapter",
    "adapter_options",
}


def load_config() -> TOMLDocument:
    """Load the config file.

    Returns an empty document if the file is missing or is not valid TOML
    (the latter with a warning on stderr).
    """
    path = config_file()
    if not path.exists():
        return tomlkit.document()
    try:
        return tomlkit.parse(path.read_text())
    except tomlkit.exceptions.TOMLKitError as e:
        warn(f"ignoring invalid config file {path}: {e}")
        return tomlkit.document()


def save_config(doc: TOMLDocument) -> None:
    path = config_file()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(tomlkit.dumps(doc))


def get_config(key: str):
    """Get a scalar value by dotted key (e.g. "monitors.office.host").

    Returns None if the key is missing or names a table.
    """
    node = load_config()
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    if isinstance(node, dict):
        return None
    return node.unwrap() if hasattr(node, "unwrap") else node


def _coerce(value: str):
    """Turn a command-line string into a TOML scalar."""
    lowered = value.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if re.fullmatch(r"[+-]?\d+", value.strip()):
        return int(value)
    if re.fullmatch(r"[+-]?\d+\.\d*", value.strip()):
        return float(value)
    return value


def set_config(key: str, value: str) -> None:
    """Set a value by dotted key, creating tables as needed.

    Comments and formatting in the existing file are preserved. Strings
    that look like booleans or numbers are stored as such.
    """
    doc = load_config()
    parts = key.split(".")
    node = doc
    for part in parts[:-1]:
        if part not in node:
            node[part] = tomlkit.table()
        node = node[part]
        if not isinstance(node, dict):
            raise ConfigError(f"'{part}' in '{key}' is not a table")
    node[parts[-1]] = _coerce(value)
    save_config(doc)


def list_monitors() -> list[str]:
    """Return the names of configured monitor profiles."""
    monitors = load_config().get("monitors", {})
    if not isinstance(monitors, dict):
        return []
    return [name for name, table in monitors.items() if isinstance(table, dict)]


def _resolve_credential(name: str, profile: dict) -> Credential | None:
    principal = profile.get("principal")
    if not principal:
        return None

    secret = profile.get("secret")
    secret_env = profile.get("secret_env")
    if secret is None and secret_env:
        secret = os.environ.get(secret_env)
        if secret is None:
            raise ConfigError(f"monitor '{name}': environment variable {secret_env} is not set")
    if secret is None:
        raise ConfigError(f"monitor '{name}': principal given without secret or secret_env")
    return Credential(principal=principal, secret=secret)


def monitor_from_profile(name: str, profile: dict) -> MonitorConfiguration:
    """Build a MonitorConfiguration from a [monitors.<name>] table."""
    unknown = set(profile) - _PROFILE_KEYS
    if unknown:
        raise ConfigError(f"monitor '{name}': unknown keys {', '.join(sorted(unknown))}")

    missing = [k for k in ("host", "source_path", "file_name") if not profile.get(k)]
    if missing:
        raise ConfigError(f"monitor '{name}': missing {', '.join(missing)}")

    adapter_options = profile.get("adapter_options", {})
    if not isinstance(adapter_options, dict):
        raise ConfigError(f"monitor '{name}': adapter_options must be a table")

    return MonitorConfiguration(
        host=profile["host"],
        source_path=profile["source_path"],
        file_name=profile["file_name"],
        target_dir=profile.get("target_dir") or exports_dir() / name,
        credential=_resolve_credential(name, profile),
        adapter=profile.get("adapter", "skype"),
        adapter_options=adapter_options,
    )


def load_monitor_config(name: str) -> MonitorConfiguration:
    """Load the monitor profile called name.

    Raises ConfigError if the profile is missing or invalid.
    """
    monitors = load_config().get("monitors", {})
    profile = monitors.get(name) if isinstance(monitors, dict) else None
    if not isinstance(profile, dict):
        raise ConfigError(f"no monitor named '{name}' in {config_file()}")
    return monitor_from_profile(name, profile.unwrap())

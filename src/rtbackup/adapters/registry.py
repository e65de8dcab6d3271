"""Adapter registry: discovers built-in, drop-in, and entry point adapters.

An adapter module exposes:

    ADAPTER_INTERFACE_VERSION = 1
    NAME = "skype"
    DESCRIPTION = "..."
    def create_adapter(**options) -> ChangeStreamAdapter

Options come from the monitor profile's adapter_options table.
"""

import inspect
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType

from rtbackup.adapters import skype
from rtbackup.domain import ChangeStreamAdapter, ConfigError
from rtbackup.plugin_discovery import (
    DiscoveredModule,
    load_dropin_modules,
    load_entrypoint_modules,
    validate_required_interface,
    warn,
)

# Current adapter interface version
ADAPTER_INTERFACE_VERSION = 1

ENTRY_POINT_GROUP = "rtbackup.adapters"

_REQUIRED_ATTRS = {
    "ADAPTER_INTERFACE_VERSION": int,
    "NAME": str,
    "DESCRIPTION": str,
}

_REQUIRED_CALLABLES = ["create_adapter"]


@dataclass
class AdapterPlugin:
    """A discovered adapter module."""

    name: str
    description: str
    origin: str
    location: str | None
    module: ModuleType

    def create(self, **options) -> ChangeStreamAdapter:
        return self.module.create_adapter(**options)


def _validate_adapter(module: ModuleType, origin: str) -> str | None:
    """Validate an adapter module has the required interface.

    Returns an error message string if invalid, None if valid.
    """
    error = validate_required_interface(
        module,
        origin,
        required_attrs=_REQUIRED_ATTRS,
        required_callables=_REQUIRED_CALLABLES,
    )
    if error:
        return error

    adapter_version = getattr(module, "ADAPTER_INTERFACE_VERSION")
    if adapter_version != ADAPTER_INTERFACE_VERSION:
        return f"{origin}: incompatible interface version {adapter_version}, expected {ADAPTER_INTERFACE_VERSION}"

    params = inspect.signature(module.create_adapter).parameters.values()
    if not any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params):
        return f"{origin}: create_adapter() must accept **options"

    return None


def load_builtin_adapters() -> list[DiscoveredModule]:
    """Return the built-in adapter modules."""
    return [DiscoveredModule(skype, "built-in", skype.__name__)]


def load_dropin_adapters(path: Path) -> list[DiscoveredModule]:
    """Scan a directory for .py adapter files, import and validate them."""
    return load_dropin_modules(
        path,
        module_name_prefix="rtbackup_dropin_adapter_",
        validate=_validate_adapter,
    )


def load_entrypoint_adapters() -> list[DiscoveredModule]:
    """Discover adapters registered via the 'rtbackup.adapters' entry point group."""
    return load_entrypoint_modules(ENTRY_POINT_GROUP, validate=_validate_adapter)


def load_all_adapters(dropin_path: Path | None = None) -> list[AdapterPlugin]:
    """Load adapters from all sources, deduplicated by NAME.

    Priority: drop-in > entry point > built-in (drop-ins can override built-ins).
    """
    from rtbackup.paths import adapters_dir

    if dropin_path is None:
        dropin_path = adapters_dir()

    seen_names: set[str] = set()
    result: list[AdapterPlugin] = []

    for found in [
        *load_dropin_adapters(dropin_path),
        *load_entrypoint_adapters(),
        *load_builtin_adapters(),
    ]:
        name = getattr(found.module, "NAME", None)
        if name is None:
            warn(f"adapter from {found.origin} has no NAME, skipping")
            continue
        if name in seen_names:
            # Expected when a drop-in overrides a built-in
            continue
        seen_names.add(name)
        result.append(
            AdapterPlugin(
                name=name,
                description=found.module.DESCRIPTION,
                origin=found.origin,
                location=found.location,
                module=found.module,
            )
        )

    return result


def get_adapter(name: str, dropin_path: Path | None = None) -> AdapterPlugin:
    """Return the adapter registered under name.

    Raises ConfigError if no adapter has that name.
    """
    adapters = load_all_adapters(dropin_path)
    for plugin in adapters:
        if plugin.name == name:
            return plugin
    known = ", ".join(sorted(p.name for p in adapters)) or "none"
    raise ConfigError(f"unknown adapter '{name}' (available: {known})")

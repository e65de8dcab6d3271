"""Plugin discovery helpers.

rtbackup supports extensibility via:
- Drop-in Python files (~/.config/rtbackup/adapters/*.py)
- Python entry points (group 'rtbackup.adapters')

Registries supply the interface validation; this module does the loading
and records where each module came from.
"""

from __future__ import annotations

import importlib.metadata
import importlib.util
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType

Validator = Callable[[ModuleType, str], str | None]


def warn(message: str) -> None:
    """Print a warning message to stderr."""
    print(f"Warning: {message}", file=sys.stderr)


@dataclass
class DiscoveredModule:
    """A plugin module together with where it was loaded from."""

    module: ModuleType
    origin: str  # "drop-in", "entry point", or "built-in"
    location: str | None = None  # file path or entry point spec


def validate_required_interface(
    module: ModuleType,
    origin: str,
    *,
    required_attrs: dict[str, type],
    required_callables: list[str],
) -> str | None:
    """Validate a module has required attrs and callables.

    Returns an error message string if invalid, None if valid.
    """
    for attr, expected_type in required_attrs.items():
        if not hasattr(module, attr):
            return f"{origin}: missing required attribute '{attr}'"
        value = getattr(module, attr)
        if not isinstance(value, expected_type):
            return f"{origin}: '{attr}' must be {expected_type.__name__}, got {type(value).__name__}"

    for func_name in required_callables:
        if not callable(getattr(module, func_name, None)):
            return f"{origin}: missing required function '{func_name}'"

    return None


def _import_file(py_file: Path, module_name: str) -> ModuleType:
    spec = importlib.util.spec_from_file_location(module_name, py_file)
    if spec is None or spec.loader is None:
        raise ImportError(f"no loader for {py_file}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def load_dropin_modules(
    path: Path,
    *,
    module_name_prefix: str,
    validate: Validator,
    warn_fn: Callable[[str], None] = warn,
) -> list[DiscoveredModule]:
    """Load validated drop-in modules from a directory.

    Files starting with an underscore are skipped. Modules that fail to
    import or validate are reported through warn_fn and left out.
    """
    found: list[DiscoveredModule] = []
    if not path.is_dir():
        return found

    for py_file in sorted(path.glob("*.py")):
        if py_file.name.startswith("_"):
            continue

        try:
            module = _import_file(py_file, f"{module_name_prefix}{py_file.stem}")
        except Exception as e:
            warn_fn(f"failed to import drop-in module {py_file.name}: {e}")
            continue

        error = validate(module, f"drop-in {py_file.name}")
        if error:
            warn_fn(error)
            continue

        found.append(DiscoveredModule(module, "drop-in", str(py_file)))

    return found


def load_entrypoint_modules(
    group: str,
    *,
    validate: Validator,
    warn_fn: Callable[[str], None] = warn,
) -> list[DiscoveredModule]:
    """Load validated modules from a Python entry point group."""
    found: list[DiscoveredModule] = []

    for ep in importlib.metadata.entry_points(group=group):
        try:
            module = ep.load()
        except Exception as e:
            warn_fn(f"failed to load entry point {group} '{ep.name}': {e}")
            continue

        error = validate(module, f"entry point '{ep.name}'")
        if error:
            warn_fn(error)
            continue

        found.append(DiscoveredModule(module, "entry point", ep.value))

    return found

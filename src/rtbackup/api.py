"""Programmatic entry points used by the CLI."""

from dataclasses import dataclass
from pathlib import Path

from rtbackup.adapters.registry import get_adapter, load_all_adapters
from rtbackup.config import list_monitors, load_monitor_config
from rtbackup.domain import ConfigError, MonitorConfiguration
from rtbackup.monitor import ChangeStreamMonitor
from rtbackup.share import ShareConnector


@dataclass
class AdapterInfo:
    name: str
    description: str
    origin: str
    location: str | None


@dataclass
class MonitorSummary:
    """A configured monitor profile, or the reason it can't be loaded."""

    name: str
    host: str | None = None
    remote_source: str | None = None
    conversation_target: str | None = None
    message_target: str | None = None
    adapter: str | None = None
    error: str | None = None


def list_adapters(dropin_path: Path | None = None) -> list[AdapterInfo]:
    return [
        AdapterInfo(p.name, p.description, p.origin, p.location)
        for p in load_all_adapters(dropin_path)
    ]


def list_monitor_profiles() -> list[MonitorSummary]:
    summaries = []
    for name in list_monitors():
        try:
            config = load_monitor_config(name)
        except (ConfigError, ValueError) as e:
            summaries.append(MonitorSummary(name=name, error=str(e)))
            continue
        summaries.append(
            MonitorSummary(
                name=name,
                host=config.host,
                remote_source=config.remote_source,
                conversation_target=str(config.conversation_target.path),
                message_target=str(config.message_target.path),
                adapter=config.adapter,
            )
        )
    return summaries


def open_monitor(
    config: MonitorConfiguration | str,
    *,
    connector: ShareConnector | None = None,
    dropin_path: Path | None = None,
    **callbacks,
) -> ChangeStreamMonitor:
    """Build a monitor for a configuration or a named profile.

    The adapter named by the configuration is looked up in the registry
    and created with the profile's adapter_options. The monitor is
    returned idle; call start() or use it as a context manager.
    """
    if isinstance(config, str):
        config = load_monitor_config(config)
    plugin = get_adapter(config.adapter, dropin_path)
    adapter = plugin.create(**config.adapter_options)
    return ChangeStreamMonitor(config, adapter, connector=connector, **callbacks)

"""CLI for rtbackup - incremental chat backup from a remote share."""

import argparse
import getpass
import json
import os
import sys
import threading
from collections import Counter

from rtbackup.api import list_adapters, list_monitor_profiles, open_monitor
from rtbackup.config import load_monitor_config
from rtbackup.domain import (
    ConfigError,
    Credential,
    MonitorConfiguration,
    ShareError,
    StreamSubscriptionFailure,
)
from rtbackup.paths import adapters_dir, config_file, data_dir, exports_dir, mounts_dir, state_dir


def _get_version() -> str:
    """Get package version from metadata."""
    try:
        from importlib.metadata import version

        return version("rtbackup")
    except Exception:
        return "unknown"


def _watch_config(args) -> MonitorConfiguration:
    """Resolve the monitor configuration from a profile name or flags."""
    if args.name:
        return load_monitor_config(args.name)

    missing = [flag for flag, value in (
        ("--host", args.host),
        ("--source-path", args.source_path),
        ("--file-name", args.file_name),
    ) if not value]
    if missing:
        raise ConfigError(f"give a monitor name or {', '.join(missing)}")

    credential = None
    if args.user:
        if args.password_env:
            secret = os.environ.get(args.password_env)
            if secret is None:
                raise ConfigError(f"environment variable {args.password_env} is not set")
        else:
            secret = getpass.getpass(f"Password for {args.user}: ")
        credential = Credential(principal=args.user, secret=secret)

    return MonitorConfiguration(
        host=args.host,
        source_path=args.source_path,
        file_name=args.file_name,
        target_dir=args.target_dir or exports_dir() / args.host,
        credential=credential,
        adapter=args.adapter,
    )


def cmd_watch(args) -> int:
    """Run a monitor until interrupted or a stream fails."""
    try:
        config = _watch_config(args)
        counts: Counter = Counter()
        failed_streams: list[str] = []
        stream_failed = threading.Event()

        def on_export(kind, record):
            counts[kind] += 1
            if args.verbose:
                print(f"  [{kind}] {record.to_csv_line()[:120]}")

        def on_error(kind, record, error):
            counts[f"{kind} errors"] += 1
            print(f"Warning: could not export {kind} record: {error}", file=sys.stderr)

        def on_stream_error(kind, error):
            failed_streams.append(kind)
            print(f"Error: {kind} stream failed: {error}", file=sys.stderr)
            stream_failed.set()

        monitor = open_monitor(
            config,
            on_export=on_export,
            on_error=on_error,
            on_stream_error=on_stream_error,
        )
    except (ConfigError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        monitor.start()
    except (ShareError, StreamSubscriptionFailure) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Watching {config.remote_source}")
    print(f"  conversations -> {config.conversation_target.path}")
    print(f"  messages      -> {config.message_target.path}")
    print("Press Ctrl+C to stop.")

    try:
        # Short timeouts keep Ctrl+C deliverable on Windows.
        while not stream_failed.wait(0.5):
            pass
    except KeyboardInterrupt:
        print("\nStopping...")

    exit_code = 1 if failed_streams else 0
    try:
        monitor.stop()
    except ShareError as e:
        print(f"Error: could not release {config.host}: {e}", file=sys.stderr)
        exit_code = 1

    print(f"Exported {counts['conversations']} conversation(s), {counts['messages']} message(s)")
    errors = counts["conversations errors"] + counts["messages errors"]
    if errors:
        print(f"Failed to export {errors} record(s)")
    return exit_code


def cmd_monitors(args) -> int:
    """List configured monitor profiles."""
    monitors = list_monitor_profiles()

    if args.json:
        print(json.dumps([vars(m) for m in monitors], indent=2))
        return 0

    if not monitors:
        print("No monitors configured.")
        print(f"Add a [monitors.<name>] table to {config_file()}")
        return 0

    for m in monitors:
        if m.error:
            print(f"{m.name}  (invalid: {m.error})")
            continue
        print(f"{m.name}  {m.remote_source}  [{m.adapter}]")
        print(f"  conversations -> {m.conversation_target}")
        print(f"  messages      -> {m.message_target}")
    return 0


def cmd_adapters(args) -> int:
    """List discovered adapters."""
    adapters = list_adapters()

    if args.json:
        print(json.dumps([vars(a) for a in adapters], indent=2))
        return 0

    if not adapters:
        print("No adapters found.")
        return 0

    name_width = max(len(a.name) for a in adapters)
    origin_width = max(len(a.origin) for a in adapters)

    print(f"{'NAME':<{name_width}}  {'ORIGIN':<{origin_width}}  DESCRIPTION")
    for a in adapters:
        print(f"{a.name:<{name_width}}  {a.origin:<{origin_width}}  {a.description}")
    return 0


def cmd_config(args) -> int:
    """View or modify config settings."""
    from rtbackup.config import get_config, set_config

    # rtbackup config path
    if args.action == "path":
        print(config_file())
        return 0

    # rtbackup config get <key>
    if args.action == "get":
        if not args.key:
            print("Usage: rtbackup config get <key>")
            print("Example: rtbackup config get monitors.office.host")
            return 1
        value = get_config(args.key)
        if value is None:
            print(f"Key not set: {args.key}")
            return 1
        print(value)
        return 0

    # rtbackup config set <key> <value>
    if args.action == "set":
        if not args.key or args.value is None:
            print("Usage: rtbackup config set <key> <value>")
            print("Example: rtbackup config set monitors.office.host HOST1")
            return 1
        try:
            set_config(args.key, args.value)
        except ConfigError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(f"Set {args.key} = {args.value}")
        return 0

    # rtbackup config (show all)
    path = config_file()
    if not path.exists():
        print("No config file found.")
        print(f"Create one at: {path}")
        return 0

    print(path.read_text().strip())
    return 0


def cmd_path(args) -> int:
    """Show XDG paths."""
    print(f"Config:   {config_file()}")
    print(f"Adapters: {adapters_dir()}")
    print(f"Data:     {data_dir()}")
    print(f"Exports:  {exports_dir()}")
    print(f"State:    {state_dir()}")
    print(f"Mounts:   {mounts_dir()}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="rtbackup",
        description="Incrementally back up a remote chat database to local CSV files",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"rtbackup {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # watch
    p_watch = subparsers.add_parser(
        "watch",
        help="Export new conversations and messages until interrupted",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""examples:
  rtbackup watch office                         # run the [monitors.office] profile
  rtbackup watch office -v                      # print each exported record
  rtbackup watch --host HOST1 --source-path 'C$/Users/alice/AppData/Roaming/Skype/alice' \\
      --file-name main.db --target-dir ~/backups --user 'corp\\alice' --password-env SECRET""",
    )
    p_watch.add_argument("name", nargs="?", help="Monitor profile name from config.toml")
    p_watch.add_argument("--host", help="Remote host name")
    p_watch.add_argument("--source-path", metavar="PATH", help="Share and directory holding the database")
    p_watch.add_argument("--file-name", metavar="NAME", help="Database file name (e.g. main.db)")
    p_watch.add_argument("--target-dir", metavar="DIR", help=f"Export directory (default: {exports_dir()}/<host>)")
    p_watch.add_argument("--user", metavar="PRINCIPAL", help="User name, optionally DOMAIN\\user (omit for anonymous)")
    p_watch.add_argument("--password-env", metavar="VAR", help="Read the password from this environment variable (prompted otherwise)")
    p_watch.add_argument("--adapter", default="skype", help="Database adapter name (default: skype)")
    p_watch.add_argument("-v", "--verbose", action="store_true", help="Print each exported record")
    p_watch.set_defaults(func=cmd_watch)

    # monitors
    p_monitors = subparsers.add_parser("monitors", help="List configured monitor profiles")
    p_monitors.add_argument("--json", action="store_true", help="Output as JSON")
    p_monitors.set_defaults(func=cmd_monitors)

    # adapters
    p_adapters = subparsers.add_parser("adapters", help="List discovered adapters")
    p_adapters.add_argument("--json", action="store_true", help="Output as JSON")
    p_adapters.set_defaults(func=cmd_adapters)

    # config
    p_config = subparsers.add_parser(
        "config",
        help="View or modify config settings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""examples:
  rtbackup config                                  # show config file
  rtbackup config path                             # show config file path
  rtbackup config get monitors.office.host         # get a value
  rtbackup config set monitors.office.host HOST1   # set a value""",
    )
    p_config.add_argument("action", nargs="?", choices=["get", "set", "path"], help="Action")
    p_config.add_argument("key", nargs="?", help="Config key (dotted path)")
    p_config.add_argument("value", nargs="?", help="Value to set")
    p_config.set_defaults(func=cmd_config)

    # path
    p_path = subparsers.add_parser("path", help="Show XDG paths")
    p_path.set_defaults(func=cmd_path)

    args = parser.parse_args(argv)
    if not hasattr(args, "func") or args.func is None:
        parser.print_help()
        return 0
    try:
        return args.func(args)
    except KeyboardInterrupt:
        # Exit cleanly on Ctrl+C (130 = 128 + SIGINT)
        return 130


if __name__ == "__main__":
    sys.exit(main())

"""CLI entry point for mediasync."""

import argparse
import asyncio
import json
import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path

from .config import load_config
from .engine import MediaSync
from .models import MediaKind
from .sync.notifications import unread_count


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = "".join(traceback.format_exception(*record.exc_info))

        try:
            return json.dumps(log_data)
        except (TypeError, ValueError):
            log_data["message"] = str(log_data["message"])
            return json.dumps(log_data)


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: Enable debug logging (ignored if log_level is set).
        log_level: Explicit log level (warning, info, debug).
        json_output: Output logs as JSON lines for machine parsing.
    """
    if log_level:
        level_map = {
            "warning": logging.WARNING,
            "info": logging.INFO,
            "debug": logging.DEBUG,
        }
        level = level_map.get(log_level, logging.INFO)
    else:
        level = logging.DEBUG if verbose else logging.WARNING

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    logging.basicConfig(level=level, handlers=[handler])

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _kinds(value: str) -> list[MediaKind]:
    if value == "all":
        return list(MediaKind)
    return [MediaKind(value)]


def _emit(data: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(data, indent=2, default=str))
        return
    for section, values in data.items():
        if isinstance(values, dict):
            print(f"{section}:")
            for key, value in values.items():
                print(f"  {key}: {value}")
        else:
            print(f"{section}: {values}")


async def cmd_status(args: argparse.Namespace) -> int:
    """Show cache contents and smart sync state."""
    config = load_config(args.config)
    engine = MediaSync(config)

    try:
        status_data = {
            "session": {
                "user_id": engine.user_id,
                "guest": engine.session.is_ephemeral,
                "cache": config.cache.db_path,
                "remote": config.remote.base_url or "in-memory",
            },
        }
        for kind in MediaKind:
            items = await engine.catalogs[kind].get_all(sync_from_cloud=False)
            stats = await engine.scheduler.get_stats(kind)
            last_run = engine.scheduler.last_run(kind)
            status_data[kind.catalog_key] = {
                "items": len(items),
                "active": stats.active,
                "ended": stats.ended,
                "never_synced": stats.never_synced,
                "synced_recently": stats.synced_recently,
                "needs_sync": stats.needs_sync,
                "last_run": last_run.to_dict() if last_run else None,
            }

        notifications = await engine.notifications.get_all(sync_from_cloud=False)
        status_data["notifications"] = {
            "total": len(notifications),
            "unread": unread_count(notifications),
        }
        _emit(status_data, args.json)
    finally:
        await engine.close()
    return 0


async def cmd_sync(args: argparse.Namespace) -> int:
    """Run one smart sync pass."""
    config = load_config(args.config)
    engine = MediaSync(config)

    try:
        visible = args.visible.split(",") if args.visible else None
        summary = {}
        for kind in _kinds(args.kind):
            result = await engine.scheduler.run(
                kind, visible_ids=visible, active_only=args.active_only
            )
            summary[kind.catalog_key] = {
                "synced": result.synced,
                "skipped": result.skipped,
                "errors": result.errors,
            }
        _emit(summary, args.json)
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 1
    finally:
        await engine.close()
    return 0


async def cmd_pull(args: argparse.Namespace) -> int:
    """Pull every collection from the remote store."""
    config = load_config(args.config)
    engine = MediaSync(config)

    try:
        if engine.user_id is None:
            print("No user configured (set session.user_id or MEDIASYNC_USER_ID)", file=sys.stderr)
            return 1
        summary = await engine.manual.pull_all()
        _emit({"pulled": summary}, args.json)
    finally:
        await engine.close()
    return 0


async def cmd_releases(args: argparse.Namespace) -> int:
    """Check followed movies and series for releases today."""
    config = load_config(args.config)
    engine = MediaSync(config)

    try:
        created = await engine.check_releases()
        print(f"Created {created} release notification(s)")
    finally:
        await engine.close()
    return 0


async def cmd_notifications_list(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    engine = MediaSync(config)

    try:
        items = await engine.notifications.get_all()
        await engine.context.tasks.drain()
        items = sorted(items, key=lambda n: n.timestamp, reverse=True)
        if args.json:
            print(json.dumps([item.to_dict() for item in items], indent=2))
        elif not items:
            print("No notifications")
        else:
            for item in items:
                when = datetime.fromtimestamp(item.timestamp / 1000).strftime("%Y-%m-%d %H:%M")
                marker = " " if item.read else "*"
                print(f"{marker} {when}  {item.type.value}  {item.id}")
    finally:
        await engine.close()
    return 0


async def cmd_notifications_read_all(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    engine = MediaSync(config)

    try:
        changed = await engine.notifications.mark_all_read()
        print(f"Marked {changed} notification(s) as read")
    finally:
        await engine.close()
    return 0


async def cmd_notifications_clear(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    engine = MediaSync(config)

    try:
        await engine.notifications.clear()
        print("Notifications cleared")
    finally:
        await engine.close()
    return 0


async def cmd_clear_local(args: argparse.Namespace) -> int:
    """Remove all synchronized data from the local cache."""
    config = load_config(args.config)
    engine = MediaSync(config)

    try:
        removed = engine.manual.clear_local()
        print(f"Removed {removed} cached collection(s)")
    finally:
        await engine.close()
    return 0


async def cmd_guest(args: argparse.Namespace) -> int:
    """Start a guest session with demo data and show it."""
    config = load_config(args.config)
    config.session.guest = True
    engine = MediaSync(config)

    try:
        for kind in MediaKind:
            items = await engine.catalogs[kind].get_all()
            order = await engine.catalogs[kind].get_order()
            print(f"{kind.catalog_key}:")
            for item_id in order:
                item = next((i for i in items if i.id == item_id), None)
                if item:
                    print(f"  {item.id}  {item.title} ({item.year})")
    finally:
        engine.guest.disable()
        await engine.close()
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="mediasync",
        description="Offline-first cache and sync engine for a personal media tracker",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Status command
    status_parser = subparsers.add_parser("status", help="Show cache and sync state")
    status_parser.add_argument("--json", action="store_true", help="Output status as JSON")
    status_parser.set_defaults(func=cmd_status)

    # Sync command
    sync_parser = subparsers.add_parser("sync", help="Run one smart sync pass")
    sync_parser.add_argument(
        "-k", "--kind",
        choices=["all", "movie", "series"],
        default="all",
        help="Catalog to refresh (default: all)",
    )
    sync_parser.add_argument(
        "--visible",
        type=str,
        default=None,
        help="Comma-separated ids to refresh first",
    )
    sync_parser.add_argument(
        "--active-only",
        action="store_true",
        help="Skip ended items",
    )
    sync_parser.add_argument("--json", action="store_true", help="Output result as JSON")
    sync_parser.set_defaults(func=cmd_sync)

    # Pull command
    pull_parser = subparsers.add_parser("pull", help="Pull all data from the remote store")
    pull_parser.add_argument("--json", action="store_true", help="Output result as JSON")
    pull_parser.set_defaults(func=cmd_pull)

    # Releases command
    releases_parser = subparsers.add_parser("releases", help="Check followed items for releases")
    releases_parser.set_defaults(func=cmd_releases)

    # Notifications commands
    notif_parser = subparsers.add_parser("notifications", help="Manage notifications")
    notif_subparsers = notif_parser.add_subparsers(
        dest="notifications_command", help="Notification commands"
    )

    notif_list = notif_subparsers.add_parser("list", help="List notifications")
    notif_list.add_argument("--json", action="store_true", help="Output as JSON")
    notif_list.set_defaults(func=cmd_notifications_list)

    notif_read = notif_subparsers.add_parser("read-all", help="Mark all notifications read")
    notif_read.set_defaults(func=cmd_notifications_read_all)

    notif_clear = notif_subparsers.add_parser("clear", help="Delete all notifications")
    notif_clear.set_defaults(func=cmd_notifications_clear)

    # Clear-local command
    clear_parser = subparsers.add_parser("clear-local", help="Clear the local cache")
    clear_parser.set_defaults(func=cmd_clear_local)

    # Guest command
    guest_parser = subparsers.add_parser("guest", help="Show a guest session with demo data")
    guest_parser.set_defaults(func=cmd_guest)

    args = parser.parse_args()

    setup_logging(args.verbose, args.log_level, args.json_logs)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "notifications" and not args.notifications_command:
        notif_parser.print_help()
        return 1

    if not hasattr(args, "json"):
        args.json = False

    return asyncio.run(args.func(args))


if __name__ == "__main__":
    sys.exit(main())

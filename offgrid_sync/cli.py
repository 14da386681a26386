"""Command-line interface for the offgrid sync vault.

Every command reconciles the local vault with the remote catalog first,
then acts on the merged view.
"""

import argparse
import asyncio
import sys

import structlog

from offgrid_sync.ingestion.remote_source import RemoteSource
from offgrid_sync.models.record import Identity
from offgrid_sync.query.projection import ProjectionOptions, project
from offgrid_sync.query.result_formatter import ResultFormatter
from offgrid_sync.storage.record_store import StorageError
from offgrid_sync.sync.connectivity import ConnectivityMonitor
from offgrid_sync.sync.models import ResolutionChoice
from offgrid_sync.sync.sync_engine import SyncEngine
from offgrid_sync.utils.config_loader import ConfigLoader, ConfigurationError
from offgrid_sync.utils.logging_config import configure_from_config, configure_logging

log = structlog.stdlib.get_logger()


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="offgrid-sync",
        description="Download remote records for offline use and keep them in sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Show what is downloaded and how much storage it uses
  offgrid-sync status

  # Download everything that fits in the quota
  offgrid-sync --user operator@offgrid.sync download

  # Browse downloaded records only, newest first
  offgrid-sync list --offline-view

  # Keep the local copy of a record the remote has changed
  offgrid-sync resolve DATA-003 keep-local
        """,
    )
    parser.add_argument("--config", "-c", type=str, default=None, help="Path to configuration YAML file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable DEBUG logging")
    parser.add_argument("--user", "-u", type=str, default=None, help="Sign in with this email")
    parser.add_argument("--name", type=str, default="Operator", help="Display name for --user")
    parser.add_argument("--token", type=str, default=None, help="Bearer token for remote pushes")
    parser.add_argument("--offline", action="store_true", help="Treat the connection as down")
    parser.add_argument(
        "--probe", action="store_true", help="Set connectivity from a reachability probe"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("status", help="Show vault statistics")
    subparsers.add_parser("reconcile", help="Merge the remote catalog and report conflicts")
    subparsers.add_parser("download", help="Download every record not yet stored locally")

    list_parser = subparsers.add_parser("list", help="List records")
    list_parser.add_argument("--search", "-s", type=str, default=None, help="Text to search for")
    list_parser.add_argument("--category", type=str, default=None, help="Category tag")
    list_parser.add_argument(
        "--offline-view", action="store_true", help="Only records usable offline"
    )
    list_parser.add_argument(
        "--sort", choices=["last_modified", "title"], default="last_modified", help="Sort key"
    )
    list_parser.add_argument("--asc", action="store_true", help="Sort ascending (default descending)")

    resolve_parser = subparsers.add_parser("resolve", help="Resolve an out-of-sync record")
    resolve_parser.add_argument("record_id", type=str)
    resolve_parser.add_argument("choice", choices=[c.value for c in ResolutionChoice])

    delete_parser = subparsers.add_parser("delete", help="Remove one record's local copy")
    delete_parser.add_argument("record_id", type=str)

    push_parser = subparsers.add_parser("push", help="Push a local copy to the remote catalog")
    push_parser.add_argument("record_id", type=str)

    purge_parser = subparsers.add_parser("purge", help="Remove all local copies")
    purge_parser.add_argument(
        "--wipe", action="store_true", help="Clear the store for every user, not just this one"
    )

    return parser.parse_args(argv)


async def run_command(args: argparse.Namespace, engine: SyncEngine, formatter: ResultFormatter) -> str:
    """Run one CLI command against an engine and return the text to print."""
    reconcile_report = await engine.reconcile()

    if args.command == "reconcile":
        return formatter.format_reconcile_report(reconcile_report)

    if args.command == "status":
        return formatter.format_stats(engine.stats())

    if args.command == "list":
        options = ProjectionOptions(
            search_text=args.search,
            category=args.category,
            only_materialized=args.offline_view,
            sort_key=args.sort,
            sort_dir="asc" if args.asc else "desc",
        )
        return formatter.format_records(project(engine.records, options))

    if args.command == "download":
        report = await engine.start_transfer()
        return "\n\n".join(
            [formatter.format_transfer_report(report), formatter.format_stats(engine.stats())]
        )

    if args.command == "resolve":
        record = await engine.resolve_conflict(args.record_id, ResolutionChoice(args.choice))
        if record is None:
            return f"Nothing to resolve for {args.record_id}."
        return formatter.format_records([record])

    if args.command == "delete":
        if engine.delete_record(args.record_id):
            return f"Removed local copy of {args.record_id}."
        return f"{args.record_id} has no local copy."

    if args.command == "push":
        result = await engine.push_record(args.record_id)
        if result is None:
            return f"Cannot push {args.record_id} (offline, signed out, or not downloaded)."
        if result.get("success") is False:
            return f"Push failed: {result.get('error', 'unknown error')}."
        return f"Pushed {args.record_id}."

    if args.command == "purge":
        removed = engine.purge_all(wipe=args.wipe)
        return f"Removed {removed} local cop{'y' if removed == 1 else 'ies'}."

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the offgrid-sync command."""
    args = parse_arguments(argv)

    try:
        config = ConfigLoader().load_config(args.config)
    except ConfigurationError as e:
        configure_logging(log_level="DEBUG" if args.verbose else "INFO", json_logs=False)
        log.error("configuration_error", error=str(e))
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    configure_from_config(config.logging, verbose=args.verbose)
    for warning in ConfigLoader().validate_config(config):
        print(f"Warning: {warning}", file=sys.stderr)

    identity = (
        Identity.from_email(args.user, display_name=args.name, token=args.token)
        if args.user
        else None
    )
    remote = RemoteSource(config.remote)
    online = not args.offline and (remote.is_reachable() if args.probe else True)

    try:
        engine = SyncEngine.from_config(
            config,
            remote=remote,
            monitor=ConnectivityMonitor(online=online),
            identity=identity,
        )
    except StorageError as e:
        print(f"Storage error: {e}", file=sys.stderr)
        return 1

    formatter = ResultFormatter()
    try:
        output = asyncio.run(run_command(args, engine, formatter))
    except StorageError as e:
        log.error("command_failed", command=args.command, error=str(e))
        print(f"Storage error: {e}", file=sys.stderr)
        return 1
    finally:
        engine.close()

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""CLI dispatcher.

Builds the subcommand parser and routes each command to its handler.
"""

import argparse
import sys
from typing import Callable

from .common import add_dry_run_arg, add_profile_arg, add_verbosity_args


def create_subcommand_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="btrfs-snap",
        description="btrfs snapshots with tiered retention and incremental backups",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    add_verbosity_args(parser)

    parser.add_argument(
        "-V",
        "--version",
        action="store_true",
        help="Show version and exit",
    )

    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="Path to configuration file",
    )

    parser.add_argument(
        "-B",
        "--btrfs-bin",
        metavar="BIN",
        help="Name of the btrfs binary (overrides config)",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands (use 'command --help' for details)",
    )

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Snapshot or back up a profile, then prune it",
        description="Take a snapshot (snapshot profiles) or copy the source "
        "profile's snapshots (backup profiles), then apply retention",
    )
    add_profile_arg(run_parser)
    add_dry_run_arg(run_parser)
    run_parser.add_argument(
        "--no-prune",
        action="store_true",
        help="Skip applying retention after the snapshot or backup",
    )

    # snapshot command
    snapshot_parser = subparsers.add_parser(
        "snapshot",
        help="Create a snapshot",
        description="Take a read-only snapshot of a profile's subvolume",
    )
    add_profile_arg(snapshot_parser)
    add_dry_run_arg(snapshot_parser)

    # backup command
    backup_parser = subparsers.add_parser(
        "backup",
        help="Back up snapshots to a backup profile",
        description="Incrementally send the source profile's snapshots that "
        "the backup profile's retention would keep",
    )
    add_profile_arg(backup_parser)
    add_dry_run_arg(backup_parser)

    # prune command
    prune_parser = subparsers.add_parser(
        "prune",
        help="Apply retention tiers",
        description="Delete snapshots that fall out of the profile's retention tiers",
    )
    add_profile_arg(prune_parser)
    add_dry_run_arg(prune_parser)

    # list command
    list_parser = subparsers.add_parser(
        "list",
        help="Show snapshots",
        description="List a profile's snapshots, or every version of a file across them",
    )
    add_profile_arg(list_parser)
    list_parser.add_argument(
        "-L",
        "--files",
        metavar="PATH",
        help="List all distinct versions of the file(s) at PATH",
    )

    # config command with subcommands
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Validate or initialize configuration",
    )
    config_subs = config_parser.add_subparsers(dest="config_action")

    config_subs.add_parser(
        "validate",
        help="Validate configuration file",
    )

    init_parser = config_subs.add_parser(
        "init",
        help="Generate example configuration",
    )
    init_parser.add_argument(
        "-o",
        "--output",
        metavar="FILE",
        help="Output file (default: stdout)",
    )

    return parser


def run_subcommand(args: argparse.Namespace) -> int:
    """Run the specified subcommand.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    from .. import __version__

    if args.version:
        print(f"btrfs-snap {__version__}")
        return 0

    if not args.command:
        print("No command specified. Use --help for usage information.")
        return 1

    # Route to appropriate command handler
    handlers: dict[str, Callable] = {
        "run": cmd_run,
        "snapshot": cmd_snapshot,
        "backup": cmd_backup,
        "prune": cmd_prune,
        "list": cmd_list,
        "config": cmd_config,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args)
    else:
        print(f"Unknown command: {args.command}")
        return 1


def cmd_run(args: argparse.Namespace) -> int:
    """Execute run command."""
    from .run import execute_run

    return execute_run(args)


def cmd_snapshot(args: argparse.Namespace) -> int:
    """Execute snapshot command."""
    from .snapshot import execute_snapshot

    return execute_snapshot(args)


def cmd_backup(args: argparse.Namespace) -> int:
    """Execute backup command."""
    from .backup import execute_backup

    return execute_backup(args)


def cmd_prune(args: argparse.Namespace) -> int:
    """Execute prune command."""
    from .prune import execute_prune

    return execute_prune(args)


def cmd_list(args: argparse.Namespace) -> int:
    """Execute list command."""
    from .list_cmd import execute_list

    return execute_list(args)


def cmd_config(args: argparse.Namespace) -> int:
    """Execute config command."""
    from .config_cmd import execute_config

    return execute_config(args)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for btrfs-snap CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = create_subcommand_parser()
    args = parser.parse_args(argv)

    return run_subcommand(args)

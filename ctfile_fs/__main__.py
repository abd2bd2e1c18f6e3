"""
ctfile-fs - Main Entry Point

This module provides the CLI interface: it loads configuration, sets up
logging and runs one filesystem command against CTFile through CTFileClient.
"""

import argparse
import logging
import sys
from pathlib import Path

from .client import CTFileClient
from .config import IF_EXISTS_CHOICES, load_config
from .exceptions import (
    AuthFailureError,
    CTFileError,
    KindMismatchError,
    NotFoundError,
    TargetExistsError,
)
from .logger import setup_logging
from .models import FileStats
from .paths import join_path, split_path

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command-line arguments."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", help="Path to configuration file")
    common.add_argument("--session", help="CTFile session token (overrides CTFILE_SESSION)")
    common.add_argument("--no-cache", action="store_true", help="Disable path and listing caches")
    common.add_argument("--verbose", action="store_true", help="Enable debug logging")

    parser = argparse.ArgumentParser(
        description="ctfile-fs - Path-based access to CTFile cloud storage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ctfile-fs ls /docs
  ctfile-fs ls -R /docs
  ctfile-fs put report.txt /docs/report.txt
  ctfile-fs get /docs/report.txt ./report.txt
  ctfile-fs mv /docs/report.txt /archive/2024/report.txt
  ctfile-fs ls / --config ctfile.ini
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    ls_parser = subparsers.add_parser("ls", parents=[common], help="List a directory")
    ls_parser.add_argument("path", nargs="?", default="/", help="Remote directory (default: /)")
    ls_parser.add_argument(
        "-R", "--recursive", action="store_true", help="Also list every subdirectory"
    )

    stat_parser = subparsers.add_parser("stat", parents=[common], help="Show file metadata")
    stat_parser.add_argument("path", help="Remote file or directory")

    get_parser = subparsers.add_parser("get", parents=[common], help="Download a file")
    get_parser.add_argument("remote", help="Remote file path")
    get_parser.add_argument(
        "local", nargs="?", help="Local destination (default: file name, '-' for stdout)"
    )

    put_parser = subparsers.add_parser("put", parents=[common], help="Upload a file")
    put_parser.add_argument("local", help="Local file to upload")
    put_parser.add_argument("remote", help="Remote file path or existing remote directory")
    put_parser.add_argument(
        "--if-exists",
        choices=IF_EXISTS_CHOICES,
        default=None,
        help="What to do when the remote file exists (default: skip)",
    )

    mkdir_parser = subparsers.add_parser("mkdir", parents=[common], help="Create a directory")
    mkdir_parser.add_argument("path", help="Remote directory; missing parents are created")

    rm_parser = subparsers.add_parser("rm", parents=[common], help="Delete a file")
    rm_parser.add_argument("path", help="Remote file path")

    rmdir_parser = subparsers.add_parser("rmdir", parents=[common], help="Delete a directory")
    rmdir_parser.add_argument("path", help="Remote directory path")

    mv_parser = subparsers.add_parser("mv", parents=[common], help="Move or rename")
    mv_parser.add_argument("source", help="Remote source path")
    mv_parser.add_argument("destination", help="Remote destination path")

    cp_parser = subparsers.add_parser("cp", parents=[common], help="Copy a file")
    cp_parser.add_argument("source", help="Remote source file")
    cp_parser.add_argument("destination", help="Remote destination path")

    return parser.parse_args(argv)


def format_stats(stats: FileStats) -> str:
    """One `ls` line: kind, size, modification time, name."""
    kind = "d" if stats.is_dir else "-"
    size = "" if stats.is_dir else str(stats.size)
    mtime = stats.mtime.strftime("%Y-%m-%d %H:%M") if stats.mtime else "-"
    name = stats.name + "/" if stats.is_dir else stats.name
    return f"{kind} {size:>12} {mtime:>16}  {name}"


def cmd_ls(client, args):
    entries = client.list_dir(args.path, recursive=args.recursive)
    if not args.recursive:
        # Directories first
        entries = sorted(entries, key=lambda s: (not s.is_dir, s.name.lower()))
    for stats in entries:
        print(format_stats(stats))
    return 0


def cmd_stat(client, args):
    stats = client.get_file_info(args.path)
    print(f"  Path:     {stats.path}")
    print(f"  Type:     {stats.kind.value}")
    print(f"  Id:       {stats.remote_id}")
    if not stats.is_dir:
        print(f"  Size:     {stats.size}")
    if stats.mtime:
        print(f"  Modified: {stats.mtime.isoformat()}")
    return 0


def cmd_get(client, args):
    data = client.read(args.remote)
    if args.local == "-":
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
        return 0

    local = Path(args.local or split_path(args.remote)[1])
    local.write_bytes(data)
    print(f"[OK] Downloaded {args.remote} -> {local} ({len(data)} bytes)")
    return 0


def cmd_put(client, args):
    local = Path(args.local)
    data = local.read_bytes()

    remote = args.remote
    if client.directory_exists(remote):
        remote = join_path(remote, local.name)

    remote_id = client.write(remote, data)
    print(f"[OK] Uploaded {local} -> {remote} ({len(data)} bytes)")
    if remote_id:
        print(f"     Id: {remote_id}")
    return 0


def cmd_mkdir(client, args):
    remote_id = client.create_directory(args.path)
    print(f"[OK] Directory ready: {args.path} ({remote_id})")
    return 0


def cmd_rm(client, args):
    client.delete(args.path)
    print(f"[OK] Deleted {args.path}")
    return 0


def cmd_rmdir(client, args):
    client.delete_dir(args.path)
    print(f"[OK] Deleted directory {args.path}")
    return 0


def cmd_mv(client, args):
    client.move(args.source, args.destination)
    print(f"[OK] Moved {args.source} -> {args.destination}")
    return 0


def cmd_cp(client, args):
    new_id = client.copy(args.source, args.destination)
    print(f"[OK] Copied {args.source} -> {args.destination}")
    if new_id:
        print(f"     Id: {new_id}")
    return 0


COMMANDS = {
    "ls": cmd_ls,
    "stat": cmd_stat,
    "get": cmd_get,
    "put": cmd_put,
    "mkdir": cmd_mkdir,
    "rm": cmd_rm,
    "rmdir": cmd_rmdir,
    "mv": cmd_mv,
    "cp": cmd_cp,
}


def run_command(args):
    """
    Load configuration, build a client and run one command.

    Returns the process exit code.
    """
    try:
        config = load_config(
            config_path=args.config,
            session=args.session,
            if_exists=getattr(args, "if_exists", None),
            no_cache=args.no_cache,
            debug=args.verbose,
        )
    except ValueError as e:
        # Configuration validation errors
        print(f"[ERROR] Configuration error: {e}")
        return 1
    except FileNotFoundError as e:
        # Config file not found
        print(f"[ERROR] {e}")
        return 1

    setup_logging(config.logging)
    from . import __version__

    logger.debug("ctfile-fs v%s running %s", __version__, args.command)

    client = CTFileClient(config)
    try:
        return COMMANDS[args.command](client, args)
    except (NotFoundError, KindMismatchError, TargetExistsError) as e:
        print(f"[ERROR] {e}")
        return 1
    except AuthFailureError as e:
        logger.error("Authentication failed: %s", e)
        print(f"[ERROR] Authentication failed: {e}")
        print("        Check the session token (--session or CTFILE_SESSION).")
        return 1
    except PermissionError as e:
        print(f"[ERROR] Permission denied: {e}")
        return 1
    except ValueError as e:
        print(f"[ERROR] {e}")
        return 1
    except CTFileError as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"[ERROR] {e}")
        return 1
    except OSError as e:
        # Local file problems (get/put)
        print(f"[ERROR] {e}")
        return 1
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        print(f"[ERROR] Fatal error: {e}")
        return 1
    finally:
        try:
            client.close()
        except Exception as e:
            logger.warning("Error closing client: %s", e)


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    if args.command in COMMANDS:
        return run_command(args)

    print("Usage: ctfile-fs <command> [options]")
    print()
    print("Commands:")
    print("  ls     List a directory")
    print("  stat   Show file or directory metadata")
    print("  get    Download a file")
    print("  put    Upload a file")
    print("  mkdir  Create a directory")
    print("  rm     Delete a file")
    print("  rmdir  Delete a directory")
    print("  mv     Move or rename a file or directory")
    print("  cp     Copy a file")
    print()
    print("Run 'ctfile-fs <command> --help' for more information.")
    return 1


if __name__ == "__main__":
    sys.exit(main() or 0)

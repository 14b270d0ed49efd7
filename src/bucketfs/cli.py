"""bucketfs CLI - smoke test against a live bucket.

Usage:
    python -m bucketfs <bucket> [--backend s3|filesystem] [--behaviour MODE]
        [--base-dir DIR] [--rename-mode move|copy_only] [--timeout SECONDS]

Runs statfs, creates an empty MARKER object and renames it to NEWMARKER,
printing each step.

Exit codes:
    0: All steps succeeded
    1: A step failed (including fail-fast unimplemented operations)
    2: Invalid configuration
"""

from __future__ import annotations

import argparse
import logging
import sys

from bucketfs.config import ConfigError, build_filesystem, load_settings
from bucketfs.context import Context
from bucketfs.errors import ContextError, ObjectStorageError
from bucketfs.observability import configure_tracing

MARKER = "MARKER"
RENAMED_MARKER = "NEWMARKER"


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="bucketfs",
        description="bucketfs - filesystem interface over an object store bucket",
    )
    parser.add_argument("bucket", help="Bucket to run the smoke test against")
    parser.add_argument(
        "--backend",
        choices=["s3", "filesystem"],
        default=None,
        help="Object store backend (default: BUCKETFS_BACKEND or s3)",
    )
    parser.add_argument(
        "--behaviour",
        default=None,
        metavar="MODE",
        help="Unimplemented-operation policy: fail_fast, report or ignore",
    )
    parser.add_argument(
        "--base-dir",
        default=None,
        metavar="DIR",
        help="Root directory for the filesystem backend",
    )
    parser.add_argument(
        "--rename-mode",
        choices=["move", "copy_only"],
        default=None,
        help="Delete the source after rename (move) or keep it (copy_only)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Deadline for the whole run",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def run_smoke(args: argparse.Namespace) -> int:
    """Run the smoke steps; return the process exit code."""
    try:
        settings = load_settings(
            bucket=args.bucket,
            backend=args.backend,
            behaviour=args.behaviour,
            base_dir=args.base_dir,
            rename_mode=args.rename_mode,
        )
        fs = build_filesystem(settings)
    except ConfigError as e:
        print(f"configuration error: {e}", file=sys.stderr)
        return 2
    except ObjectStorageError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    ctx = Context.background()
    if args.timeout is not None:
        ctx = ctx.with_timeout(args.timeout)

    try:
        info = fs.statfs(ctx)
        print(f"statfs: {info.name}")

        fs.create_empty_file(ctx, MARKER)
        print(f"created {MARKER}")

        fs.rename(ctx, MARKER, RENAMED_MARKER)
        print(f"renamed {MARKER} -> {RENAMED_MARKER}")
    except (ObjectStorageError, ContextError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        fs.close(ctx)
        ctx.cancel()

    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    configure_tracing()
    return run_smoke(args)


if __name__ == "__main__":
    sys.exit(main())

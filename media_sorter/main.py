import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .core import MediaSorterApp
from .exceptions import BaseDirectoryError
from .models import DuplicateStrategy
from . import config

def setup_logging(base_dir: Path, verbose: bool):
    """Sets up logging to both console and a file in the base directory."""
    log_level = logging.DEBUG if verbose else logging.INFO

    # Create base dir if it doesn't exist so we can log there
    base_dir.mkdir(parents=True, exist_ok=True)
    log_file = base_dir / config.LOG_FILENAME

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Silence chatty libraries
    logging.getLogger("exifread").setLevel(logging.ERROR)
    logging.getLogger("PIL").setLevel(logging.WARNING)

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Media Sorter: date-based organization with duplicate detection")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    org = sub.add_parser("organize", help="Sort a source tree into the base directory")
    org.add_argument("src", type=Path, help="Source directory to scan")
    org.add_argument("base", type=Path, help="Base (destination) directory")
    org.add_argument("--strategy", type=DuplicateStrategy, choices=list(DuplicateStrategy),
                     default=DuplicateStrategy.KEEP_BEST, metavar="{" + ",".join(s.value for s in DuplicateStrategy) + "}",
                     help="How to pick the original among duplicates (default: keep-best)")
    org.add_argument("--workers", type=int, default=config.DEFAULT_MAX_WORKERS, help="Number of parallel workers")
    org.add_argument("--pattern", default=config.FOLDER_PATTERN,
                     help=f"Folder pattern under Images/ and Videos/ (default: {config.FOLDER_PATTERN})")
    org.add_argument("--no-phash", action="store_true", help="Disable perceptual (near-duplicate) matching for images")
    org.add_argument("--cross-run", action="store_true", help="Load/save the reference index in the SQLite catalog")
    org.add_argument("--resume", action="store_true", help="Skip files listed in the checkpoint of an interrupted run")
    org.add_argument("--dry-run", action="store_true", help="Simulate actions without modifying disk")
    org.add_argument("--cleanup-empty", action="store_true", help="Remove source folders left empty after the run")
    org.add_argument("--skip-dirs-file", type=Path, default=None, help="File containing paths to ignore")
    org.add_argument("--report-csv", type=Path, default=None, help="Write a per-file placement report to this CSV")

    undo = sub.add_parser("undo", help="Reverse a recorded session")
    undo.add_argument("base", type=Path, help="Base directory the session ran against")
    undo.add_argument("session_id", help="Session id (see 'sessions')")

    sessions = sub.add_parser("sessions", help="List recorded sessions")
    sessions.add_argument("base", type=Path, help="Base directory")

    return p

def parse_args(argv: Optional[List[str]] = None):
    return build_parser().parse_args(argv)

def load_skip_dirs(skip_file: Path) -> set[Path]:
    if not skip_file or not skip_file.exists():
        return set()

    skips = set()
    with skip_file.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#"):
                skips.add(Path(line))
    return skips

def run_organize(app: MediaSorterApp, args) -> int:
    src_root = args.src.resolve()
    logging.info("=== Media Sorter Started ===")
    logging.info(f"Source: {src_root}")
    logging.info(f"Base:   {app.base_dir}")
    logging.info(f"Strategy: {args.strategy.value}{' (DRY RUN)' if args.dry_run else ''}")

    report = app.organize(
        src_root=src_root,
        strategy=args.strategy,
        max_workers=args.workers,
        pattern=args.pattern,
        use_phash=not args.no_phash,
        cross_run=args.cross_run,
        resume=args.resume,
        dry_run=args.dry_run,
        skip_dirs=load_skip_dirs(args.skip_dirs_file) if args.skip_dirs_file else set(),
        cleanup_empty=args.cleanup_empty,
    )
    if args.report_csv:
        report.write_csv(args.report_csv)
    print(report.summary())
    return 0

def run_undo(app: MediaSorterApp, args) -> int:
    result = app.undo(args.session_id)
    print(result)
    return 0 if result.success else 1

def run_sessions(app: MediaSorterApp, args) -> int:
    sessions = app.list_sessions()
    if not sessions:
        print("No sessions found.")
    for session_id in sessions:
        print(session_id)
    return 0

def main(argv: Optional[List[str]] = None):
    args = parse_args(argv)

    base_dir = args.base.resolve()
    if base_dir.exists() and not base_dir.is_dir():
        print(f"Base directory is not a directory: {base_dir}", file=sys.stderr)
        sys.exit(1)
    setup_logging(base_dir, args.verbose)
    app = MediaSorterApp(base_dir)

    handlers = {"organize": run_organize, "undo": run_undo, "sessions": run_sessions}
    try:
        code = handlers[args.command](app, args)
    except BaseDirectoryError as e:
        logging.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        sys.exit(1)
    except Exception:
        logging.exception("Fatal error.")
        sys.exit(1)
    sys.exit(code)

if __name__ == "__main__":
    main()

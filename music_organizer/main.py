#!/usr/bin/env python3
"""
Music Organizer - Discogs-driven tagging and library layout.

Usage:
    music-organizer import --from /path/to/downloads --to /path/to/library
    music-organizer add-covers /path/to/library
    music-organizer fsync /path/to/file
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from music_organizer.applier import fsync_path
from music_organizer.config import (
    eprint, get_discogs_token_instructions, load_config, setup_logging,
    validate_config
)
from music_organizer.discogs_client import DiscogsClient
from music_organizer.exceptions import OrganizerError
from music_organizer.interactive import InteractivePrompts
from music_organizer.models import ALL_CHANGE_TYPES, ChangeType
from music_organizer.organizer import Organizer, WorkArgs


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive number, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build argument parser."""
    parser = argparse.ArgumentParser(
        prog="music-organizer",
        description="Music library organizer: identify album folders on Discogs, "
                    "rewrite their tags, and lay them out as "
                    "{artist}/({year}) {album}/{track}. {title}.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Import downloads into the library, asking before every change
  music-organizer import --from ~/Downloads/album --to ~/Music

  # Retag a folder in place using a known release
  music-organizer import --from ~/Music/album --discogs-release-id "[r123456]"

  # Add missing covers to an organized library
  music-organizer add-covers ~/Music
"""
    )

    # Configuration
    parser.add_argument(
        "--discogs-token",
        help="Discogs personal access token (default: DISCOGS_USER_TOKEN or ~/.discogs_token)"
    )

    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to .env file (default: ./.env)"
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output"
    )

    # Verbosity
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-essential output"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug output"
    )

    parser.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Answer every question with its default (non-interactive)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser(
        "import",
        help="Match, retag and move music files into the library"
    )
    import_parser.add_argument(
        "--from",
        dest="from_paths",
        nargs="+",
        required=True,
        type=Path,
        help="Files or folders to import"
    )
    import_parser.add_argument(
        "--to",
        type=Path,
        help="Library root (default: rewrite files in their own folders)"
    )
    import_parser.add_argument(
        "--no-clean-source-folders",
        action="store_true",
        help="Keep leftover files in the source folders"
    )
    import_parser.add_argument(
        "--no-clean-target-folders",
        action="store_true",
        help="Keep unexpected files in the target folders"
    )
    import_parser.add_argument(
        "--no-fsync",
        action="store_true",
        help="Skip syncing written folders to disk"
    )
    import_parser.add_argument(
        "--chunk-size",
        type=positive_int,
        help="Number of folders to process per batch (default: all at once)"
    )
    import_parser.add_argument(
        "--discogs-release-id",
        help="Use this release for every folder: 12345, [r12345] or a release URL"
    )

    covers_parser = subparsers.add_parser(
        "add-covers",
        help="Download missing covers for already organized folders"
    )
    covers_parser.add_argument(
        "to",
        type=Path,
        help="Library folder to scan"
    )

    fsync_parser = subparsers.add_parser(
        "fsync",
        help="Flush a file or folder to disk"
    )
    fsync_parser.add_argument(
        "path",
        type=Path,
        help="File or folder to sync"
    )

    return parser


def build_work_args(args: argparse.Namespace) -> WorkArgs:
    """Translate a parsed import/add-covers command into pipeline options."""
    if args.command == "add-covers":
        return WorkArgs(
            input_paths=[args.to],
            allowed_change_types=frozenset({ChangeType.COVERS}),
            allow_questions=False,
            chunk_size=1,
        )

    allowed = set(ALL_CHANGE_TYPES)
    if args.no_clean_source_folders:
        allowed.discard(ChangeType.SOURCE_CLEANUP)
    if args.no_clean_target_folders:
        allowed.discard(ChangeType.TARGET_CLEANUP)

    return WorkArgs(
        input_paths=args.from_paths,
        output_path=args.to,
        allowed_change_types=frozenset(allowed),
        allow_questions=not args.yes,
        chunk_size=args.chunk_size,
        discogs_release_id=args.discogs_release_id,
        force_fsync=not args.no_fsync,
    )


def print_error_chain(error: BaseException) -> None:
    """Print an error and every exception that caused it."""
    eprint(f"Error: {error}")
    cause = error.__cause__ or error.__context__
    while cause is not None:
        eprint(f"  ↳ {cause}")
        cause = cause.__cause__ or cause.__context__


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "fsync":
        if not args.path.exists():
            parser.error(f"Path does not exist: {args.path}")
        fsync_path(args.path)
        return

    # Load configuration
    config = load_config(args.env_file)
    if args.discogs_token:
        config["discogs_user_token"] = args.discogs_token
    missing = validate_config(config)

    if missing:
        eprint(f"\nMissing required credentials: {', '.join(missing)}")
        eprint(get_discogs_token_instructions())
        sys.exit(1)

    # Initialize prompts; covers are added without questions
    prompts = InteractivePrompts(
        no_color=args.no_color,
        auto_yes=args.yes or args.command == "add-covers",
        quiet=args.quiet,
        editor=config["editor"],
    )
    setup_logging(prompts, args.verbose)

    organizer = Organizer(DiscogsClient(config["discogs_user_token"]), prompts)

    try:
        stats = organizer.work(build_work_args(args))
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
        sys.exit(1)
    except (OrganizerError, OSError) as e:
        print_error_chain(e)
        sys.exit(1)

    prompts.show_summary(stats)


if __name__ == "__main__":
    main()

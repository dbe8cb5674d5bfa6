"""The import pipeline: discover, match, plan, review and apply."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import FrozenSet, List, Optional

from music_organizer import applier
from music_organizer.changes import (
    calculate_changes, edit_changes, print_changes_details
)
from music_organizer.discogs_client import DiscogsClient
from music_organizer.exceptions import PlanningError
from music_organizer.interactive import InteractivePrompts
from music_organizer.inventory import get_music_files_chunks
from music_organizer.matcher import DiscogsMatcher
from music_organizer.models import (
    ALL_CHANGE_TYPES, ChangeList, ChangeType, Matched, ProcessingStats
)
from music_organizer.tag_handler import TagHandler

logger = logging.getLogger(__name__)


@dataclass
class WorkArgs:
    """Options for one pipeline run."""
    input_paths: List[Path]
    output_path: Optional[Path] = None
    allowed_change_types: FrozenSet[ChangeType] = ALL_CHANGE_TYPES
    allow_questions: bool = True
    chunk_size: Optional[int] = None
    discogs_release_id: Optional[str] = None
    force_fsync: bool = False


class Organizer:
    """Runs the pipeline chunk by chunk."""

    def __init__(self, client: DiscogsClient, prompts: InteractivePrompts,
                 tag_handler: Optional[TagHandler] = None):
        self.client = client
        self.prompts = prompts
        self.tag_handler = tag_handler or TagHandler()
        self.matcher = DiscogsMatcher(client, prompts)

    def work(self, args: WorkArgs) -> ProcessingStats:
        """
        Process every chunk of input folders.

        Raises:
            PlanningError: If the output path is not a directory
            OrganizerError: On catalog, tag or planning failures
        """
        if args.output_path is not None and not args.output_path.is_dir():
            raise PlanningError(f"Output path is not a directory: {args.output_path}")

        stats = ProcessingStats()
        chunks = get_music_files_chunks(args.input_paths, args.chunk_size,
                                        self.prompts, self.tag_handler)

        for music_files in chunks:
            stats.total_files += len(music_files)
            if not music_files:
                continue

            results = self.matcher.match_music_files(music_files, args.discogs_release_id)
            for result in results:
                if isinstance(result, Matched):
                    stats.releases_matched += 1
                else:
                    stats.folders_unmatched += 1

            changes = calculate_changes(results, args.output_path, args.allowed_change_types)
            if changes.is_empty:
                logger.info("Nothing to change")
                continue

            if args.allow_questions:
                changes = self._review(changes, args)

            if args.allow_questions and not self.prompts.confirm(
                    "Do you want to make changes?", default=True):
                stats.chunks_skipped += 1
                continue

            self.apply(changes, args.force_fsync, stats)

        return stats

    def _review(self, changes: ChangeList, args: WorkArgs) -> ChangeList:
        """Review/edit loop; returns the possibly edited change list."""
        while self.prompts.confirm("Do you want to review changes?", default=False):
            print_changes_details(changes, self.prompts)
            if not self.prompts.confirm("Do you want to edit changes?", default=False):
                break
            changes = edit_changes(changes, args.output_path,
                                   args.allowed_change_types, self.prompts)
        return changes

    def apply(self, changes: ChangeList, force_fsync: bool, stats: ProcessingStats) -> None:
        """Write music files, download covers, clean up, then optionally fsync."""
        stats.files_written += applier.write_music_files(
            changes.music_files, self.prompts, self.tag_handler)
        stats.covers_downloaded += applier.download_covers(
            self.client, changes.covers, self.prompts)
        stats.paths_removed += applier.cleanup(changes.cleanups, self.prompts)
        if force_fsync:
            applier.fsync_changes(changes, self.prompts)

"""Apply a planned ChangeList to disk."""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Callable, List, Optional

from music_organizer.discogs_client import DiscogsClient
from music_organizer.interactive import InteractivePrompts
from music_organizer.models import ChangeList, Cleanup, CoverChange, MusicFileChange
from music_organizer.tag_handler import TagHandler
from music_organizer.transcode import to_mp4

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024


def _copy_with_progress(source: Path, dest: Path, callback: Callable[[int], None]) -> None:
    with open(source, "rb") as src, open(dest, "wb") as dst:
        while True:
            chunk = src.read(COPY_CHUNK_SIZE)
            if not chunk:
                break
            dst.write(chunk)
            callback(len(chunk))


def write_music_files(changes: List[MusicFileChange], prompts: InteractivePrompts,
                      tag_handler: Optional[TagHandler] = None,
                      transcoder: Callable = to_mp4) -> int:
    """
    Write every planned music file.

    Each source is copied (or transcoded) into a temp file, tagged there, and
    then copied to its target. Progress counts source bytes: the first half
    while producing the temp file, the second half while copying it out.

    Returns:
        Number of files written
    """
    if not changes:
        return 0

    tag_handler = tag_handler or TagHandler()
    total_bytes = sum(change.source_file_length for change in changes)

    with prompts.progress(total_bytes) as progress:
        for change in changes:
            source_path = change.source.file_path
            target_path = change.target.file_path
            progress.set_message(f"Writing {source_path.name}")

            target_path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(suffix=target_path.suffix)
            os.close(fd)
            temp_path = Path(temp_name)

            try:
                def half(n: int) -> None:
                    progress.inc(n // 2)

                if change.is_transcode:
                    transcoder(source_path, temp_path, half)
                else:
                    _copy_with_progress(source_path, temp_path, half)

                tag_handler.write_tag(temp_path, change.target.tag)

                temp_length = temp_path.stat().st_size
                scale = change.source_file_length / temp_length if temp_length else 0

                def scaled_half(n: int) -> None:
                    progress.inc(int(n * scale) // 2)

                _copy_with_progress(temp_path, target_path, scaled_half)
            finally:
                temp_path.unlink(missing_ok=True)

    prompts.print(prompts.styled("green", f"Written {len(changes)} file(s)"))
    return len(changes)


def download_covers(client: DiscogsClient, covers: List[CoverChange],
                    prompts: InteractivePrompts) -> int:
    """
    Download covers one after another.

    Returns:
        Number of covers downloaded
    """
    if not covers:
        return 0

    count = len(covers)
    for index, cover in enumerate(covers, 1):
        with prompts.progress(total=1) as progress:
            progress.set_message(f"Downloading cover {index}/{count}")
            client.download_cover(cover.uri, cover.path, progress)

    prompts.print(prompts.styled("green", f"Downloaded {count} cover(s)"))
    return count


def _is_removable_parent(path: Path) -> bool:
    return path != Path(".") and path != Path(path.anchor)


def cleanup(cleanups: List[Cleanup], prompts: InteractivePrompts) -> int:
    """
    Delete planned paths, then offer to remove folders left empty.

    Returns:
        Number of paths removed
    """
    removed = 0

    for item in cleanups:
        path = item.path
        logger.debug("Removing %s", path)
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
        removed += 1

    # Walk up from each removed path while folders are empty
    kept = set()
    for item in cleanups:
        for parent in item.path.parents:
            if not _is_removable_parent(parent) or not parent.is_dir():
                break
            if parent in kept or any(parent.iterdir()):
                break
            if not prompts.confirm(f"Directory {parent} is now empty. Do you wish to remove it?",
                                   default=True):
                kept.add(parent)
                break
            shutil.rmtree(parent)
            removed += 1

    return removed


def fsync_path(path: Path) -> None:
    """Flush a file or directory entry to disk."""
    fd = os.open(path, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def fsync_changes(changes: ChangeList, prompts: InteractivePrompts) -> int:
    """
    Fsync every folder that received a music file or a cover.

    Returns:
        Number of folders synced
    """
    paths = [change.target.file_path for change in changes.music_files]
    paths.extend(cover.path for cover in changes.covers)
    folders = list(dict.fromkeys(path.parent for path in paths))
    if not folders:
        return 0

    with prompts.progress(len(folders)) as progress:
        for folder in folders:
            progress.set_message(f"Syncing {folder}")
            fsync_path(folder)
            progress.inc()

    return len(folders)

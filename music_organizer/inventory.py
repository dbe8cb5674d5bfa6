"""Discover music files under the input paths, in chunks of folders."""

import logging
import os
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from music_organizer.interactive import InteractivePrompts
from music_organizer.models import MusicFile
from music_organizer.tag_handler import TagHandler

logger = logging.getLogger(__name__)


def collect_folders(input_paths: Sequence[Path]) -> List[Path]:
    """
    Expand inputs into the list of places to scan.

    A directory contributes itself and every sub-directory; a file
    contributes itself.
    """
    folders = []
    for input_path in input_paths:
        input_path = Path(input_path)
        if input_path.is_dir():
            for root, dirs, _files in os.walk(input_path):
                dirs.sort()
                folders.append(Path(root))
        elif input_path.exists():
            folders.append(input_path)
        else:
            raise FileNotFoundError(f"No such file or directory: {input_path}")
    return folders


def _folder_entries(folder: Path) -> List[Path]:
    """Immediate files of a folder (or the path itself when it is a file)."""
    if folder.is_file():
        return [folder]
    try:
        return sorted(entry for entry in folder.iterdir() if not entry.is_dir())
    except OSError as e:
        logger.debug("Skipping unreadable folder %s: %s", folder, e)
        return []


def get_music_files_chunks(input_paths: Sequence[Path], chunk_size: Optional[int],
                           prompts: InteractivePrompts,
                           tag_handler: Optional[TagHandler] = None
                           ) -> Iterator[List[MusicFile]]:
    """
    Yield the music files found under input_paths, chunk_size folders at a time.

    Args:
        input_paths: Files or directories to scan
        chunk_size: Folders per chunk, None for a single chunk
        prompts: Console used for the progress spinner
        tag_handler: Tag reader

    Raises:
        TagReadError: If a supported file has corrupt tags
    """
    tag_handler = tag_handler or TagHandler()
    folders = collect_folders(input_paths)
    step = chunk_size or max(len(folders), 1)

    for start in range(0, len(folders), step):
        chunk = folders[start:start + step]
        music_files = []
        with prompts.progress() as progress:
            for folder in chunk:
                for file_path in _folder_entries(folder):
                    progress.set_message(f"Analyzing {file_path}")
                    music_file = tag_handler.read_music_file(file_path)
                    if music_file is not None:
                        music_files.append(music_file)
        yield music_files

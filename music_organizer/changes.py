"""Plan, describe and edit the changes for a chunk of matched folders."""

import os
import re
import sys
from dataclasses import replace
from pathlib import Path
from typing import Collection, List, Optional, Set
from urllib.parse import urlparse

from music_organizer.exceptions import EditParseError, PlanningError
from music_organizer.interactive import InteractivePrompts
from music_organizer.models import (
    ChangeList, ChangeType, Cleanup, CoverChange, DiscogsReleaseMatchResult,
    FrameId, Matched, MusicFile, MusicFileChange, Tag, frame_kind, frame_name
)
from music_organizer.release_tags import (
    create_tag_from_discogs_data, strip_redundant_fields
)
from music_organizer.tag_handler import TagHandler
from music_organizer.utils import (
    extension_of, music_file_name_for, relative_path_for
)

COVER_FILE_NAME = "cover"
TRACK_DELIMITER = "--------------------------"
# Extensions that are transcoded on import
TRANSCODE_EXTENSIONS = {"flac": "m4a"}

_LINE_PATTERN = re.compile(r"^(.+?): ?(.*)$")


def calculate_changes(results: List[DiscogsReleaseMatchResult], output_path: Optional[Path],
                      allowed: Collection[ChangeType]) -> ChangeList:
    """
    Plan every change for the given match results.

    Args:
        results: Matcher output, one per folder
        output_path: Library root, None to rewrite files in place
        allowed: Change categories to keep in the final lists

    Raises:
        PlanningError: If a target path can't be formed from the tags
    """
    return _assemble(get_file_changes(results, output_path), allowed)


def _assemble(planned: List[MusicFileChange], allowed: Collection[ChangeType]) -> ChangeList:
    """Derive covers and cleanups from planned changes, then filter by category."""
    covers = get_cover_changes(planned)
    cleanups = get_cleanup_changes(
        planned, covers,
        clean_source_folders=ChangeType.SOURCE_CLEANUP in allowed,
        clean_target_folders=ChangeType.TARGET_CLEANUP in allowed,
    )

    if ChangeType.MUSIC_FILES in allowed:
        music_files = [change for change in planned if not change.is_noop]
        retained = [change for change in planned if change.is_noop]
    else:
        music_files = []
        retained = list(planned)

    return ChangeList(
        music_files=music_files,
        covers=[c for c in covers if not c.path.exists()] if ChangeType.COVERS in allowed else [],
        cleanups=cleanups,
        retained=retained,
    )


def _target_path(tag: Tag, extension: str, source_path: Path,
                 output_path: Optional[Path]) -> Path:
    if output_path is not None:
        return output_path / relative_path_for(tag, extension)
    return source_path.parent / music_file_name_for(tag, extension)


def _sort_key(change: MusicFileChange):
    tag = change.target.tag
    return (
        tag.album or "",
        tag.year if tag.year is not None else -sys.maxsize,
        tag.disc or 0,
        tag.track_number or 0,
    )


def get_file_changes(results: List[DiscogsReleaseMatchResult],
                     output_path: Optional[Path]) -> List[MusicFileChange]:
    """Plan one MusicFileChange per file, sorted by album, year, disc and track."""
    changes = []

    for result in results:
        if isinstance(result, Matched):
            items = [(m.music_file, m.track, result.release) for m in result.tracks_matching]
        else:
            items = [(music_file, None, None) for music_file in result.music_files]

        for music_file, track, release in items:
            if track is not None:
                target_tag = create_tag_from_discogs_data(music_file.tag, track, release)
            else:
                target_tag = strip_redundant_fields(music_file.tag)

            source_extension = extension_of(music_file.file_path)
            target_extension = TRANSCODE_EXTENSIONS.get(source_extension.lower(), source_extension)
            is_transcode = target_extension != source_extension

            file_path = _target_path(target_tag, target_extension, music_file.file_path, output_path)
            target_tag.format = TagHandler.get_format(file_path) or target_tag.format

            changes.append(MusicFileChange(
                source=music_file,
                target=MusicFile(file_path=file_path, tag=target_tag,
                                 duration=music_file.duration),
                is_transcode=is_transcode,
                source_file_length=music_file.file_path.stat().st_size,
                discogs_release=release,
            ))

    changes.sort(key=_sort_key)
    return changes


def get_cover_changes(changes: List[MusicFileChange]) -> List[CoverChange]:
    """One cover per release image and target folder."""
    covers: Set[CoverChange] = set()

    for change in changes:
        release = change.discogs_release
        if release is None or release.image is None:
            continue
        uri = release.image.url
        extension = Path(urlparse(uri).path).suffix
        path = change.target.file_path.parent / f"{COVER_FILE_NAME}{extension}"
        covers.add(CoverChange(path=path, uri=uri))

    return sorted(covers, key=lambda cover: (cover.path, cover.uri))


def _holds_music(folder: Path) -> bool:
    """Whether any supported music file lives anywhere under folder."""
    for _root, _dirs, files in os.walk(folder):
        if any(TagHandler.is_supported(name) for name in files):
            return True
    return False


def _stale_entries(folders: Set[Path], keep: Set[Path]) -> List[Path]:
    stale = []
    for folder in folders:
        if not folder.is_dir():
            continue
        for entry in folder.iterdir():
            if entry in keep:
                continue
            # Sub-folders with music are imported on their own
            if entry.is_dir() and not entry.is_symlink() and (
                    any(entry in path.parents for path in keep) or _holds_music(entry)):
                continue
            stale.append(entry)
    return stale


def get_cleanup_changes(changes: List[MusicFileChange], covers: List[CoverChange],
                        clean_source_folders: bool, clean_target_folders: bool) -> List[Cleanup]:
    """
    List leftover entries in the folders touched by changes.

    Every file or sub-folder directly inside a touched folder that isn't a
    planned target or cover is stale. Sub-folders holding music files are
    left alone.
    """
    if not (clean_source_folders or clean_target_folders):
        return []

    source_folders = {change.source.file_path.parent for change in changes}
    target_folders = {change.target.file_path.parent for change in changes}
    keep = {change.target.file_path for change in changes}
    for cover in covers:
        target_folders.add(cover.path.parent)
        keep.add(cover.path)

    stale: Set[Path] = set()
    if clean_target_folders:
        stale.update(_stale_entries(target_folders, keep))
    if clean_source_folders:
        stale.update(_stale_entries(source_folders, keep))

    return [Cleanup(path=path) for path in sorted(stale)]


def _common_prefix(a: Path, b: Path) -> Optional[Path]:
    try:
        return Path(os.path.commonpath([a, b]))
    except ValueError:
        return None


def _strip_prefix(path: Path, prefix: Optional[Path]) -> Path:
    if prefix is None or prefix == path:
        return path
    try:
        return path.relative_to(prefix)
    except ValueError:
        return path


def print_changes_details(changes: ChangeList, prompts: InteractivePrompts) -> None:
    """Print a numbered listing of every planned step."""
    step_number = 1

    for change in changes.music_files:
        source_path = change.source.file_path
        target_path = change.target.file_path

        if source_path == target_path:
            action = "Transcode" if change.is_transcode else "Update"
            prompts.print(f"{step_number:02}. {prompts.styled('yellow', action)} {source_path.name}")
        else:
            action = "Transcode" if change.is_transcode else "Copy"
            prefix = _common_prefix(source_path, target_path)
            prompts.print(
                f"{step_number:02}. {prompts.styled('green', action)} "
                f"{_strip_prefix(source_path, prefix)} → {_strip_prefix(target_path, prefix)}"
            )

        source_tag = change.source.tag
        target_tag = change.target.tag
        for frame in target_tag.frame_ids():
            old = source_tag.frame_content(frame)
            new = target_tag.frame_content(frame)
            if old != new:
                prompts.print(
                    f"    {frame_name(frame)}: {prompts.styled('red', str(old))} → "
                    f"{prompts.styled('green', str(new))}"
                )

        step_number += 1

    for cover in changes.covers:
        prompts.print(f"{step_number:02}. {prompts.styled('green', 'Download')} cover to {cover.path}")
        step_number += 1

    for cleanup in changes.cleanups:
        prompts.print(f"{step_number:02}. {prompts.styled('red', 'Remove')} {cleanup.path}")
        step_number += 1


def changes_to_text(changes: List[MusicFileChange]) -> str:
    """Serialize target tags as 'Frame: value' blocks, one per change."""
    lines = []
    for change in changes:
        tag = change.target.tag
        for frame in tag.frame_ids():
            lines.append(f"{frame_name(frame)}: {tag.frame_content(frame)}")
        lines.append(TRACK_DELIMITER)
    return "\n".join(lines) + "\n"


def _parse_frame_value(frame, raw: str, line: str):
    kind = frame_kind(frame)
    if kind == "str":
        return raw if raw else None
    try:
        value = int(raw)
    except ValueError:
        raise EditParseError(f"Invalid number in line: {line}", line) from None
    if kind == "uint" and value < 0:
        raise EditParseError(f"Negative number in line: {line}", line)
    return value


def parse_edited_text(text: str, changes: List[MusicFileChange]) -> List[Tag]:
    """
    Parse edited text back into one tag per change.

    Raises:
        EditParseError: With the offending line, on any malformed input
    """
    lines = iter(text.splitlines())
    tags = []

    for change in changes:
        tag = change.target.tag.copy()
        tag.clear()

        while True:
            line = next(lines, None)
            if line is None:
                raise EditParseError(
                    f"Failed to find meta for track {change.source.file_path.name}"
                )
            if line == TRACK_DELIMITER:
                break
            if not line.strip():
                continue

            match = _LINE_PATTERN.match(line)
            if match is None:
                raise EditParseError(f"Invalid line: {line}", line)

            frame = FrameId.parse(match.group(1))
            tag.set_frame(frame, _parse_frame_value(frame, match.group(2), line))

        tags.append(tag)

    return tags


def edit_changes(changes: ChangeList, output_path: Optional[Path],
                 allowed: Collection[ChangeType], prompts: InteractivePrompts) -> ChangeList:
    """
    Let the user edit target tags in an editor, then re-plan.

    On a parse error the error is printed and the original list returned.
    """
    if not changes.music_files:
        return changes

    edited = prompts.edit_text(changes_to_text(changes.music_files))
    if edited is None:
        return changes

    try:
        new_tags = parse_edited_text(edited, changes.music_files)
        edited_changes = []
        for change, tag in zip(changes.music_files, new_tags):
            file_path = _target_path(tag, extension_of(change.target.file_path),
                                     change.source.file_path, output_path)
            edited_changes.append(
                replace(change, target=replace(change.target, file_path=file_path, tag=tag))
            )
    except (EditParseError, PlanningError) as e:
        prompts.error(f"Edit discarded: {e}")
        return changes

    planned = edited_changes + changes.retained
    planned.sort(key=_sort_key)
    return _assemble(planned, allowed)

"""Identify which Discogs release each folder of music files is."""

import itertools
import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from music_organizer.discogs_client import DiscogsClient
from music_organizer.exceptions import DiscogsError, InvalidReleaseIdError
from music_organizer.interactive import InteractivePrompts
from music_organizer.models import (
    DiscogsRelease, DiscogsReleaseMatchResult, DiscogsTrack, DiscogsTrackMatch,
    Matched, MusicFile, Unmatched
)
from music_organizer.utils import (
    extract_discogs_id, is_similar, similarity_score, simplify
)

logger = logging.getLogger(__name__)

DURATION_DIFF_THRESHOLD = 90  # seconds
# Release fetches per search parameter set, so broad sets can't starve later ones
MAX_RELEASES_PER_PARAMS = 5

ENTER_ID_OPTION = "Enter Discogs ID"
TAKE_AS_IS_OPTION = "Take as is"


def group_by_folder(music_files: Iterable[MusicFile]) -> Dict[Path, List[MusicFile]]:
    """Group files by parent folder, keeping first-seen order."""
    groups: Dict[Path, List[MusicFile]] = {}
    for music_file in music_files:
        groups.setdefault(music_file.file_path.parent, []).append(music_file)
    return groups


def _unique_joined(values: Iterable[str]) -> str:
    return " ".join(dict.fromkeys(value for value in values if value))


def common_search_params(music_files: List[MusicFile]) -> List[Dict[str, str]]:
    """
    Build search parameter sets for a group, most specific first.

    Sets with an empty value are dropped, as are duplicates.
    """
    artist = _unique_joined(simplify(f.tag.artist) for f in music_files if f.tag.artist)
    album = _unique_joined(simplify(f.tag.album) for f in music_files if f.tag.album)
    year = _unique_joined(str(f.tag.year) for f in music_files if f.tag.year is not None)

    candidates = [
        {"release_title": album, "year": year},
        {"release_title": album},
        {"artist": artist, "release_title": album, "year": year},
        {"artist": artist, "release_title": album},
        {"artist": artist},
    ]

    param_sets: List[Dict[str, str]] = []
    for params in candidates:
        if all(params.values()) and params not in param_sets:
            param_sets.append(params)
    return param_sets


def _track_title(music_file: MusicFile) -> str:
    """Title tag, or the file name when there is none."""
    return music_file.tag.title or music_file.file_path.stem


def _position_matches(music_file: MusicFile, track: DiscogsTrack) -> bool:
    tag = music_file.tag
    if tag.track_number is None:
        return True
    return (tag.disc or 1) == track.disc and tag.track_number == track.position


def _duration_matches(music_file: MusicFile, track: DiscogsTrack) -> bool:
    if music_file.duration is None or track.duration is None:
        return False
    return abs(music_file.duration - track.duration) < DURATION_DIFF_THRESHOLD


def match_release_with_music_files(release: DiscogsRelease, music_files: List[MusicFile],
                                   simplified: bool = False
                                   ) -> Optional[List[DiscogsTrackMatch]]:
    """
    Pair every file of a group with a distinct track of the release.

    Args:
        release: Candidate release
        music_files: Files of one folder
        simplified: Only check positions (for a release ID given by the user)

    Returns:
        One DiscogsTrackMatch per file, or None if the release doesn't fit
    """
    tracks = release.tracks
    if not tracks:
        return None
    # Searched releases must have exactly as many tracks as the folder has files
    if not simplified and len(tracks) != len(music_files):
        return None
    if simplified and len(tracks) < len(music_files):
        return None

    used = set()
    tracks_matching = []

    for music_file in music_files:
        if simplified:
            candidates = [
                (i, track) for i, track in enumerate(tracks)
                if _position_matches(music_file, track)
            ]
        else:
            title = _track_title(music_file)
            ranked = sorted(
                enumerate(tracks),
                key=lambda item: similarity_score(title, item[1].title),
                reverse=True,
            )
            candidates = [
                (i, track) for i, track in ranked
                if (is_similar(title, track.title) or _duration_matches(music_file, track))
                and _position_matches(music_file, track)
            ]

        match = next(((i, track) for i, track in candidates if i not in used), None)
        if match is None:
            return None

        used.add(match[0])
        tracks_matching.append(DiscogsTrackMatch(music_file=music_file, track=match[1]))

    return tracks_matching


class DiscogsMatcher:
    """Classifies folders of music files as Discogs releases."""

    def __init__(self, client: DiscogsClient, prompts: InteractivePrompts):
        self.client = client
        self.prompts = prompts

    def match_music_files(self, music_files: Iterable[MusicFile],
                          forced_release_id: Optional[str] = None
                          ) -> List[DiscogsReleaseMatchResult]:
        """
        Match each folder of music_files against Discogs.

        Args:
            music_files: Files to classify
            forced_release_id: Release ID to use for every folder, skipping search

        Returns:
            One Matched or Unmatched result per folder

        Raises:
            DiscogsError: On network or payload errors
            InvalidReleaseIdError: If forced_release_id can't be parsed
        """
        results: List[DiscogsReleaseMatchResult] = []

        for folder, files in group_by_folder(music_files).items():
            result: Optional[Matched] = None

            if forced_release_id is None:
                artists = " & ".join(dict.fromkeys(f.tag.artist for f in files if f.tag.artist))
                albums = ", ".join(dict.fromkeys(f.tag.album for f in files if f.tag.album))
                self.prompts.print(
                    f"Matching Discogs for {self.prompts.styled('cyan', artists)}"
                    f" – {self.prompts.styled('cyan', albums)}"
                )
                result = self._search_match(files)

            if result is None:
                result = self._manual_match(folder, files, forced_release_id)

            if isinstance(result, Matched):
                self.prompts.print(f"Will use {self.prompts.styled('dim', result.release.uri)}")
            else:
                self.prompts.print("Will use file tags as is")

            results.append(result)

        return results

    def _search_match(self, music_files: List[MusicFile]) -> Optional[Matched]:
        checked_urls = set()
        for release_url in self._release_urls(common_search_params(music_files)):
            if release_url in checked_urls:
                continue
            checked_urls.add(release_url)

            release = self.client.fetch_release(release_url)
            tracks_matching = match_release_with_music_files(release, music_files)
            if tracks_matching is not None:
                return Matched(tracks_matching=tracks_matching, release=release)
        return None

    def _release_urls(self, param_sets: List[Dict[str, str]]) -> Iterator[str]:
        """Lazily yield candidate release URLs, masters first, per parameter set."""
        for params in param_sets:
            yield from itertools.islice(
                itertools.chain(self._search_master_release(params),
                                self._search_release(params)),
                MAX_RELEASES_PER_PARAMS,
            )

    def _search_master_release(self, params: Dict[str, str]) -> Iterator[str]:
        for result in self.client.search({"type": "master", **params}):
            yield self.client.fetch_master(_resource_url(result))

    def _search_release(self, params: Dict[str, str]) -> Iterator[str]:
        for result in self.client.search({"type": "release", **params}):
            yield _resource_url(result)

    def _manual_match(self, folder: Path, music_files: List[MusicFile],
                      forced_release_id: Optional[str]) -> DiscogsReleaseMatchResult:
        if forced_release_id is not None:
            release_id = extract_discogs_id(forced_release_id)
        else:
            release_id = self.ask_for_release_id(f"Can't find release for {folder}")

        while release_id is not None:
            release = self.client.fetch_release(release_id)
            tracks_matching = match_release_with_music_files(release, music_files, simplified=True)
            if tracks_matching is not None:
                return Matched(tracks_matching=tracks_matching, release=release)
            release_id = self.ask_for_release_id(
                self.prompts.styled("red", f"Failed to match with ID {release_id}")
            )

        return Unmatched(music_files=music_files)

    def ask_for_release_id(self, reason: str) -> Optional[str]:
        """
        Ask for a release ID or to take the folder as is.

        Returns:
            Release ID, or None to use the file tags as is
        """
        choice = self.prompts.select(reason, [ENTER_ID_OPTION, TAKE_AS_IS_OPTION])
        if choice != 0:
            return None

        while True:
            value = self.prompts.ask_text("Please enter Discogs release ID")
            if value is None:
                return None
            try:
                return extract_discogs_id(value)
            except InvalidReleaseIdError as e:
                self.prompts.error(str(e))


def _resource_url(result: dict) -> str:
    try:
        return result["resource_url"]
    except KeyError as e:
        raise DiscogsError("Discogs search result without resource_url") from e

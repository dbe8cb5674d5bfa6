"""Data models for Music Organizer."""

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union


class TagFormat(Enum):
    """Closed set of tag containers understood by the organizer."""
    ID3 = "id3"
    MP4 = "mp4"
    FLAC = "flac"


class FrameId(Enum):
    """Standard tag frames, valued by their display name."""
    TITLE = "Title"
    ALBUM = "Album"
    ALBUM_ARTIST = "Album Artist"
    ARTIST = "Artist"
    YEAR = "Year"
    TRACK = "Track"
    TOTAL_TRACKS = "Total Tracks"
    DISC = "Disc"
    TOTAL_DISCS = "Total Discs"
    GENRE = "Genre"

    @property
    def attribute(self) -> str:
        """Name of the Tag attribute holding this frame."""
        return _FRAME_ATTRIBUTES[self]

    @property
    def kind(self) -> str:
        """Value kind: 'str', 'int' (signed) or 'uint' (unsigned)."""
        return _FRAME_KINDS.get(self, "str")

    @classmethod
    def parse(cls, name: str) -> "Frame":
        """Map a display name to a FrameId, anything else is a custom text key."""
        for frame_id in cls:
            if frame_id.value == name:
                return frame_id
        return name


# A frame is either a standard FrameId or the key of a custom text frame
Frame = Union[FrameId, str]

_FRAME_ATTRIBUTES = {
    FrameId.TITLE: "title",
    FrameId.ALBUM: "album",
    FrameId.ALBUM_ARTIST: "album_artist",
    FrameId.ARTIST: "artist",
    FrameId.YEAR: "year",
    FrameId.TRACK: "track_number",
    FrameId.TOTAL_TRACKS: "total_tracks",
    FrameId.DISC: "disc",
    FrameId.TOTAL_DISCS: "total_discs",
    FrameId.GENRE: "genre",
}

_FRAME_KINDS = {
    FrameId.YEAR: "int",
    FrameId.TRACK: "uint",
    FrameId.TOTAL_TRACKS: "uint",
    FrameId.DISC: "uint",
    FrameId.TOTAL_DISCS: "uint",
}


def frame_name(frame: Frame) -> str:
    """Display name of a frame."""
    return frame.value if isinstance(frame, FrameId) else frame


def frame_kind(frame: Frame) -> str:
    """Value kind of a frame; custom text frames are strings."""
    return frame.kind if isinstance(frame, FrameId) else "str"


@dataclass
class Tag:
    """Format-independent view of an audio file's tag frames."""
    format: TagFormat
    title: Optional[str] = None
    album: Optional[str] = None
    album_artist: Optional[str] = None
    artist: Optional[str] = None
    year: Optional[int] = None
    track_number: Optional[int] = None
    total_tracks: Optional[int] = None
    disc: Optional[int] = None
    total_discs: Optional[int] = None
    genre: Optional[str] = None
    custom_text: Dict[str, str] = field(default_factory=dict)

    def frame_ids(self) -> List[Frame]:
        """Frames present in this tag, standard ones first."""
        ids: List[Frame] = [
            frame_id for frame_id in FrameId
            if getattr(self, frame_id.attribute) is not None
        ]
        ids.extend(self.custom_text)
        return ids

    def frame_content(self, frame: Frame) -> Optional[Union[str, int]]:
        if isinstance(frame, FrameId):
            return getattr(self, frame.attribute)
        return self.custom_text.get(frame)

    def set_frame(self, frame: Frame, value: Optional[Union[str, int]]) -> None:
        """Set or (with None) remove a frame, checking the value kind."""
        if value is not None:
            kind = frame_kind(frame)
            if kind == "str" and not isinstance(value, str):
                raise TypeError(f"{frame_name(frame)} expects text, got {value!r}")
            if kind in ("int", "uint") and (isinstance(value, bool) or not isinstance(value, int)):
                raise TypeError(f"{frame_name(frame)} expects a number, got {value!r}")
            if kind == "uint" and value < 0:
                raise ValueError(f"{frame_name(frame)} must not be negative, got {value}")

        if isinstance(frame, FrameId):
            setattr(self, frame.attribute, value)
        elif value is None:
            self.custom_text.pop(frame, None)
        else:
            self.custom_text[frame] = value

    def clear(self) -> None:
        """Remove every frame, keeping the container format."""
        for frame_id in FrameId:
            setattr(self, frame_id.attribute, None)
        self.custom_text = {}

    def copy(self) -> "Tag":
        return replace(self, custom_text=dict(self.custom_text))

    def frames(self) -> Dict[Frame, Union[str, int]]:
        """Present frames and their values, for format-independent comparison."""
        return {frame: self.frame_content(frame) for frame in self.frame_ids()}


@dataclass(frozen=True, eq=False)
class MusicFile:
    """A discovered audio file. Compared by identity."""
    file_path: Path
    tag: Tag
    duration: Optional[float] = None  # seconds


@dataclass
class DiscogsArtist:
    """An artist credit on a release or track."""
    name: str
    join: Optional[str] = None


@dataclass
class DiscogsImage:
    """Cover image reference."""
    url: str


@dataclass
class DiscogsTrack:
    """A single track of a refined Discogs release."""
    title: str
    position: int
    disc: int = 1
    duration: Optional[float] = None  # seconds
    artists: Optional[List[DiscogsArtist]] = None


@dataclass
class DiscogsRelease:
    """Discogs release information, refined from the API payload."""
    uri: str
    title: str
    year: int
    tracks: List[DiscogsTrack] = field(default_factory=list)
    artists: List[DiscogsArtist] = field(default_factory=list)
    styles: Optional[List[str]] = None
    image: Optional[DiscogsImage] = None
    disc_to_total_tracks: Dict[int, int] = field(default_factory=dict)

    @property
    def total_discs(self) -> int:
        return len(self.disc_to_total_tracks)


@dataclass
class DiscogsTrackMatch:
    """A local file paired with the catalog track it represents."""
    music_file: MusicFile
    track: DiscogsTrack


@dataclass
class Matched:
    """A folder identified as a Discogs release."""
    tracks_matching: List[DiscogsTrackMatch]
    release: DiscogsRelease

    @property
    def music_files(self) -> List[MusicFile]:
        return [match.music_file for match in self.tracks_matching]


@dataclass
class Unmatched:
    """A folder kept with its own tags."""
    music_files: List[MusicFile]


DiscogsReleaseMatchResult = Union[Matched, Unmatched]


@dataclass
class MusicFileChange:
    """One planned rewrite of a music file."""
    source: MusicFile
    target: MusicFile
    is_transcode: bool
    source_file_length: int
    discogs_release: Optional[DiscogsRelease] = None

    @property
    def is_noop(self) -> bool:
        """True when applying this change would not alter anything on disk."""
        return (
            not self.is_transcode
            and self.source.file_path == self.target.file_path
            and self.source.tag.frames() == self.target.tag.frames()
        )


@dataclass(frozen=True)
class CoverChange:
    """A cover image to download."""
    path: Path
    uri: str


@dataclass(frozen=True)
class Cleanup:
    """A stale path to delete."""
    path: Path


class ChangeType(Enum):
    """Categories of changes that may be applied."""
    MUSIC_FILES = "music_files"
    COVERS = "covers"
    SOURCE_CLEANUP = "source_cleanup"
    TARGET_CLEANUP = "target_cleanup"


ALL_CHANGE_TYPES = frozenset(ChangeType)


@dataclass
class ChangeList:
    """Everything that will be done to disk, pending review."""
    music_files: List[MusicFileChange] = field(default_factory=list)
    covers: List[CoverChange] = field(default_factory=list)
    cleanups: List[Cleanup] = field(default_factory=list)
    # Planned but not applied (no-ops or disabled category); still referenced
    retained: List[MusicFileChange] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.music_files or self.covers or self.cleanups)


@dataclass
class ProcessingStats:
    """Statistics for a processing run."""
    total_files: int = 0
    releases_matched: int = 0
    folders_unmatched: int = 0
    files_written: int = 0
    covers_downloaded: int = 0
    paths_removed: int = 0
    chunks_skipped: int = 0

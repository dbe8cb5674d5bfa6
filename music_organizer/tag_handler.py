"""Tag reading and writing using mutagen for cross-format support."""

from pathlib import Path
from typing import Optional, Tuple

from mutagen import MutagenError
from mutagen.flac import FLAC
from mutagen.id3 import ID3, TALB, TCON, TDRC, TIT2, TPE1, TPE2, TPOS, TRCK, TXXX
from mutagen.mp3 import MP3
from mutagen.mp4 import MP4, MP4FreeForm

from music_organizer.exceptions import TagReadError, TagWriteError
from music_organizer.models import MusicFile, Tag, TagFormat


class TagHandler:
    """Reads and writes Tag values for MP3 (ID3), M4A (MP4) and FLAC files."""

    SUPPORTED_EXTENSIONS = {
        ".mp3": TagFormat.ID3,
        ".m4a": TagFormat.MP4,
        ".flac": TagFormat.FLAC,
    }

    # MP4/M4A atom names (different from ID3)
    MP4_TAGS = {
        "title": "\xa9nam",
        "album": "\xa9alb",
        "album_artist": "aART",
        "artist": "\xa9ART",
        "year": "\xa9day",
        "track": "trkn",  # tuple: (track_num, total)
        "disc": "disk",   # tuple: (disc_num, total)
        "genre": "\xa9gen",
    }
    MP4_FREEFORM_PREFIX = "----:com.apple.iTunes:"

    # Vorbis comment keys (FLAC), lower-case as mutagen reports them
    FLAC_TAGS = {
        "title": "title",
        "album": "album",
        "album_artist": "albumartist",
        "artist": "artist",
        "year": "date",
        "track_number": "tracknumber",
        "total_tracks": "totaltracks",
        "disc": "discnumber",
        "total_discs": "totaldiscs",
        "genre": "genre",
    }
    FLAC_TOTAL_ALIASES = {"tracktotal": "total_tracks", "disctotal": "total_discs"}

    @classmethod
    def is_supported(cls, file_path) -> bool:
        """Check if file format is supported."""
        return Path(file_path).suffix.lower() in cls.SUPPORTED_EXTENSIONS

    @classmethod
    def get_format(cls, file_path) -> Optional[TagFormat]:
        """Get tag format from file extension."""
        return cls.SUPPORTED_EXTENSIONS.get(Path(file_path).suffix.lower())

    def read_music_file(self, file_path) -> Optional[MusicFile]:
        """
        Read a music file's tag and duration.

        Args:
            file_path: Path to audio file

        Returns:
            MusicFile, or None if the extension is not a supported format

        Raises:
            TagReadError: If the file has a supported extension but can't be parsed
        """
        tag_format = self.get_format(file_path)
        if tag_format is None:
            return None

        tag, duration = self._read(Path(file_path), tag_format)
        return MusicFile(file_path=Path(file_path), tag=tag, duration=duration)

    def _read(self, path: Path, tag_format: TagFormat) -> Tuple[Tag, Optional[float]]:
        try:
            if tag_format is TagFormat.ID3:
                return self._read_mp3(path)
            elif tag_format is TagFormat.MP4:
                return self._read_m4a(path)
            else:
                return self._read_flac(path)
        except (MutagenError, ValueError) as e:
            raise TagReadError(f"Invalid tags in file {path}") from e

    def _read_mp3(self, path: Path) -> Tuple[Tag, Optional[float]]:
        """Read ID3v2 tags from MP3 file."""
        audio = MP3(str(path))
        tags = audio.tags or {}
        tag = Tag(format=TagFormat.ID3)

        tag.title = self._get_id3_str(tags, "TIT2")
        tag.album = self._get_id3_str(tags, "TALB")
        tag.album_artist = self._get_id3_str(tags, "TPE2")
        tag.artist = self._get_id3_str(tags, "TPE1")
        tag.year = self._parse_year(self._get_id3_str(tags, "TDRC") or "")
        tag.track_number, tag.total_tracks = self._parse_track_disc(
            self._get_id3_str(tags, "TRCK") or ""
        )
        tag.disc, tag.total_discs = self._parse_track_disc(
            self._get_id3_str(tags, "TPOS") or ""
        )
        tag.genre = self._get_id3_str(tags, "TCON")

        if tags:
            for frame in tags.getall("TXXX"):
                if frame.text:
                    tag.custom_text[frame.desc] = str(frame.text[0])

        return tag, self._duration(audio)

    def _read_m4a(self, path: Path) -> Tuple[Tag, Optional[float]]:
        """Read MP4 tags from M4A file."""
        audio = MP4(str(path))
        tags = audio.tags or {}
        tag = Tag(format=TagFormat.MP4)

        tag.title = self._get_mp4_tag(tags, "title")
        tag.album = self._get_mp4_tag(tags, "album")
        tag.album_artist = self._get_mp4_tag(tags, "album_artist")
        tag.artist = self._get_mp4_tag(tags, "artist")
        tag.year = self._parse_year(self._get_mp4_tag(tags, "year") or "")
        tag.track_number, tag.total_tracks = self._get_mp4_pair(tags, "track")
        tag.disc, tag.total_discs = self._get_mp4_pair(tags, "disc")
        tag.genre = self._get_mp4_tag(tags, "genre")

        for key in tags.keys():
            if key.startswith(self.MP4_FREEFORM_PREFIX) and tags[key]:
                value = tags[key][0]
                tag.custom_text[key[len(self.MP4_FREEFORM_PREFIX):]] = (
                    bytes(value).decode("utf-8", errors="replace")
                )

        return tag, self._duration(audio)

    def _read_flac(self, path: Path) -> Tuple[Tag, Optional[float]]:
        """Read Vorbis comments from FLAC file."""
        audio = FLAC(str(path))
        tag = Tag(format=TagFormat.FLAC)
        known_keys = set(self.FLAC_TAGS.values()) | set(self.FLAC_TOTAL_ALIASES)

        def first(key: str) -> Optional[str]:
            values = audio.get(key)
            return values[0] if values else None

        tag.title = first("title")
        tag.album = first("album")
        tag.album_artist = first("albumartist")
        tag.artist = first("artist")
        tag.year = self._parse_year(first("date") or "")
        tag.track_number, tag.total_tracks = self._parse_track_disc(first("tracknumber") or "")
        tag.disc, tag.total_discs = self._parse_track_disc(first("discnumber") or "")
        # Totals usually live in their own comments
        if tag.total_tracks is None:
            tag.total_tracks = self._parse_int(first("totaltracks") or first("tracktotal"))
        if tag.total_discs is None:
            tag.total_discs = self._parse_int(first("totaldiscs") or first("disctotal"))
        tag.genre = first("genre")

        for key in (audio.tags.keys() if audio.tags is not None else []):
            if key.lower() not in known_keys:
                value = first(key)
                if value is not None:
                    tag.custom_text[key.upper()] = value

        return tag, self._duration(audio)

    def write_tag(self, file_path, tag: Tag) -> None:
        """
        Replace all tags of a file with the given tag.

        Args:
            file_path: Path to an audio file in the tag's container format
            tag: Tag to write

        Raises:
            TagWriteError: If the file can't be opened or saved by mutagen
        """
        path = str(file_path)

        try:
            if tag.format is TagFormat.ID3:
                self._write_mp3(path, tag)
            elif tag.format is TagFormat.MP4:
                self._write_m4a(path, tag)
            else:
                self._write_flac(path, tag)
        except (MutagenError, ValueError) as e:
            raise TagWriteError(f"Failed to write tags to {path}") from e

    def _write_mp3(self, path: str, tag: Tag) -> None:
        """Write ID3v2.4 tags to MP3 file, dropping any ID3v1 tag."""
        tags = ID3()

        if tag.title is not None:
            tags.add(TIT2(encoding=3, text=tag.title))
        if tag.album is not None:
            tags.add(TALB(encoding=3, text=tag.album))
        if tag.album_artist is not None:
            tags.add(TPE2(encoding=3, text=tag.album_artist))
        if tag.artist is not None:
            tags.add(TPE1(encoding=3, text=tag.artist))
        if tag.year is not None:
            tags.add(TDRC(encoding=3, text=str(tag.year)))
        track_str = self._format_track_disc(tag.track_number, tag.total_tracks)
        if track_str:
            tags.add(TRCK(encoding=3, text=track_str))
        disc_str = self._format_track_disc(tag.disc, tag.total_discs)
        if disc_str:
            tags.add(TPOS(encoding=3, text=disc_str))
        if tag.genre is not None:
            tags.add(TCON(encoding=3, text=tag.genre))
        for key, value in tag.custom_text.items():
            tags.add(TXXX(encoding=3, desc=key, text=[value]))

        tags.save(path, v1=0, v2_version=4)

    def _write_flac(self, path: str, tag: Tag) -> None:
        """Write Vorbis comments to FLAC file."""
        audio = FLAC(path)
        if audio.tags is None:
            audio.add_tags()
        for key in list(audio.tags.keys()):
            del audio.tags[key]

        for attribute, key in self.FLAC_TAGS.items():
            value = getattr(tag, attribute)
            if value is not None:
                audio[key] = str(value)
        for key, value in tag.custom_text.items():
            audio[key] = value

        audio.save()

    def _write_m4a(self, path: str, tag: Tag) -> None:
        """Write MP4 tags to M4A file."""
        audio = MP4(path)
        if audio.tags is None:
            audio.add_tags()
        for key in list(audio.tags.keys()):
            del audio.tags[key]

        if tag.title is not None:
            audio.tags[self.MP4_TAGS["title"]] = [tag.title]
        if tag.album is not None:
            audio.tags[self.MP4_TAGS["album"]] = [tag.album]
        if tag.album_artist is not None:
            audio.tags[self.MP4_TAGS["album_artist"]] = [tag.album_artist]
        if tag.artist is not None:
            audio.tags[self.MP4_TAGS["artist"]] = [tag.artist]
        if tag.year is not None:
            audio.tags[self.MP4_TAGS["year"]] = [str(tag.year)]
        if tag.track_number is not None or tag.total_tracks is not None:
            audio.tags[self.MP4_TAGS["track"]] = [
                (tag.track_number or 0, tag.total_tracks or 0)
            ]
        if tag.disc is not None or tag.total_discs is not None:
            audio.tags[self.MP4_TAGS["disc"]] = [
                (tag.disc or 0, tag.total_discs or 0)
            ]
        if tag.genre is not None:
            audio.tags[self.MP4_TAGS["genre"]] = [tag.genre]
        for key, value in tag.custom_text.items():
            audio.tags[self.MP4_FREEFORM_PREFIX + key] = [MP4FreeForm(value.encode("utf-8"))]

        audio.save()

    def _get_id3_str(self, tags, key: str) -> Optional[str]:
        """Get string value from ID3 frame."""
        frame = tags.get(key)
        if frame and frame.text:
            value = str(frame.text[0])
            return value if value else None
        return None

    def _get_mp4_tag(self, tags, key: str) -> Optional[str]:
        """Get string value from MP4 atom."""
        mp4_key = self.MP4_TAGS[key]
        if mp4_key in tags:
            value = tags[mp4_key]
            if isinstance(value, list) and value:
                return str(value[0]) if value[0] else None
            return str(value) if value else None
        return None

    def _get_mp4_pair(self, tags, key: str) -> Tuple[Optional[int], Optional[int]]:
        """Get (number, total) from an MP4 trkn/disk atom; zero means unset."""
        values = tags.get(self.MP4_TAGS[key])
        if not values:
            return None, None
        pair = values[0]
        number = pair[0] if len(pair) > 0 and pair[0] else None
        total = pair[1] if len(pair) > 1 and pair[1] else None
        return number, total

    @staticmethod
    def _duration(audio) -> Optional[float]:
        info = getattr(audio, "info", None)
        length = getattr(info, "length", None)
        return float(length) if length else None

    @staticmethod
    def _format_track_disc(number: Optional[int], total: Optional[int]) -> Optional[str]:
        """Format a number/total pair like '3/12'."""
        if number is None and total is None:
            return None
        text = str(number) if number is not None else ""
        if total is not None:
            text += f"/{total}"
        return text

    def _parse_track_disc(self, value: str) -> tuple:
        """
        Parse track/disc string like '3/12' or '3'.

        Returns:
            (number, total) tuple
        """
        if not value:
            return None, None

        parts = value.split("/")
        try:
            num = int(parts[0]) if parts[0].strip() else None
            total = int(parts[1]) if len(parts) > 1 and parts[1].strip() else None
            return num, total
        except ValueError:
            return None, None

    @staticmethod
    def _parse_int(value: Optional[str]) -> Optional[int]:
        if not value:
            return None
        try:
            return int(value.strip())
        except ValueError:
            return None

    def _parse_year(self, value: str) -> Optional[int]:
        """Parse year from various date formats."""
        if not value:
            return None
        try:
            # Handle formats like "2020", "2020-01-15", etc.
            return int(str(value)[:4])
        except (ValueError, IndexError):
            return None

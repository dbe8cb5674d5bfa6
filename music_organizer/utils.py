"""Utility functions for Music Organizer."""

import re
from pathlib import Path
from typing import Optional

from rapidfuzz.distance import DamerauLevenshtein
from unidecode import unidecode

from music_organizer.exceptions import InvalidReleaseIdError, PlanningError
from music_organizer.models import Tag

SIMILAR_SCORE = 0.85

_INVALID_PATH_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f\x80-\x9f]')
_RESERVED_NAMES = re.compile(r"^(con|prn|aux|nul|com\d|lpt\d)(\..*)?$", re.IGNORECASE)
_MAX_NAME_BYTES = 255

_RELEASE_ID_PATTERNS = [
    re.compile(r"^\[r(\d+)\]$"),     # Discogs citation: [r12345]
    re.compile(r"^(\d+)$"),          # Just the ID
    re.compile(r"/release/(\d+)"),   # URL with /release/ID
]


def simplify(s: str) -> str:
    """Transliterate to ASCII, lower-case, and drop punctuation."""
    s = unidecode(s).lower()
    s = "".join(c for c in s if c.isascii() and (c.isalnum() or c.isspace()))
    return re.sub(r"\s+", " ", s).strip()


def similarity_score(a: str, b: str) -> float:
    """Normalized Damerau-Levenshtein similarity of the simplified strings."""
    return DamerauLevenshtein.normalized_similarity(simplify(a), simplify(b))


def is_fuzzy_subsequence(pattern: str, text: str) -> bool:
    """Check if every character of pattern occurs in text, in order."""
    if not pattern or not text:
        return False
    remaining = iter(text)
    return all(c in remaining for c in pattern)


def is_similar(a: str, b: str) -> bool:
    """
    Tolerant title comparison.

    Titles are similar when their simplified forms are close by edit distance,
    or when either one is a fuzzy subsequence of the other (abbreviated or
    truncated titles).
    """
    a_simplified = simplify(a)
    b_simplified = simplify(b)
    if DamerauLevenshtein.normalized_similarity(a_simplified, b_simplified) >= SIMILAR_SCORE:
        return True
    return (is_fuzzy_subsequence(a_simplified, b_simplified)
            or is_fuzzy_subsequence(b_simplified, a_simplified))


def parse_duration(value: Optional[str]) -> Optional[float]:
    """
    Parse a Discogs duration like '3:45' or '1:02:03' into seconds.

    Returns:
        Seconds, or None for missing/empty durations.

    Raises:
        ValueError: If a component is not a number.
    """
    if not value or not value.strip():
        return None

    seconds = 0
    multiplier = 1
    for part in reversed(value.strip().split(":")):
        seconds += int(part) * multiplier
        multiplier *= 60
    return float(seconds)


def sanitize_path(name: str, max_bytes: int = _MAX_NAME_BYTES) -> str:
    """Make a single path component safe on common filesystems."""
    name = _INVALID_PATH_CHARS.sub("-", name)
    encoded = name.encode("utf-8")
    if len(encoded) > max_bytes:
        name = encoded[:max_bytes].decode("utf-8", errors="ignore")
    name = name.rstrip(". ")
    if not name or _RESERVED_NAMES.match(name):
        name = f"-{name}"
    return name


def extract_discogs_id(value: str) -> str:
    """
    Extract a Discogs release ID.

    Accepts '12345', '[r12345]' and release URLs such as
    https://www.discogs.com/release/12345-Artist-Album.

    Raises:
        InvalidReleaseIdError: If no ID can be found.
    """
    value = value.strip()
    for pattern in _RELEASE_ID_PATTERNS:
        match = pattern.search(value)
        if match:
            return match.group(1)
    raise InvalidReleaseIdError(f"Invalid Discogs release ID: {value}")


def music_file_name_for(tag: Tag, extension: str) -> str:
    """
    Generate a file name from tag values.

    Format: {DISC:02}.{TRACK:02}. {TITLE}.{ext} (disc part only when set)

    Raises:
        PlanningError: If track number or title is missing.
    """
    if tag.track_number is None:
        raise PlanningError("No Track to form music file name")
    if tag.title is None:
        raise PlanningError("No Title to form music file name")

    if tag.disc is not None:
        stem = f"{tag.disc:02}.{tag.track_number:02}. {tag.title}"
    else:
        stem = f"{tag.track_number:02}. {tag.title}"
    suffix = f".{sanitize_path(extension)}"
    # Long titles are cut, never the extension
    return sanitize_path(stem, _MAX_NAME_BYTES - len(suffix.encode("utf-8"))) + suffix


def relative_path_for(tag: Tag, extension: str) -> Path:
    """
    Generate the library-relative path for a file.

    Format: {ALBUM_ARTIST}/({YEAR}) {ALBUM}/{file name}

    Raises:
        PlanningError: If a field needed for the folder names is missing.
    """
    artist = tag.album_artist or tag.artist
    if artist is None:
        raise PlanningError("No Album Artist to form music folder name")
    if tag.year is None:
        raise PlanningError("No Year to form music folder name")
    if tag.album is None:
        raise PlanningError("No Album to form music folder name")

    return (Path(sanitize_path(artist))
            / sanitize_path(f"({tag.year}) {tag.album}")
            / music_file_name_for(tag, extension))


def extension_of(path: Path) -> str:
    """File extension without the leading dot."""
    return path.suffix[1:]

"""Exception classes for Music Organizer."""

from typing import Optional


class OrganizerError(Exception):
    """Base exception for all organizer errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class DiscogsError(OrganizerError):
    """Raised when the Discogs API returns an error or unexpected payload."""

    pass


class TagReadError(OrganizerError):
    """Raised when a supported audio file has an unreadable tag container."""

    pass


class TagWriteError(OrganizerError):
    """Raised when a tag can't be written to an audio file."""

    pass


class TranscodeError(OrganizerError):
    """Raised when ffmpeg fails to convert an audio file."""

    pass


class PlanningError(OrganizerError):
    """Raised when a change cannot be planned (e.g. missing tag fields)."""

    pass


class InvalidReleaseIdError(OrganizerError):
    """Raised when a Discogs release ID cannot be parsed."""

    pass


class EditParseError(OrganizerError):
    """Raised when an edited change description cannot be parsed."""

    def __init__(self, message: str, line: Optional[str] = None):
        self.line = line
        super().__init__(message, {"line": line})

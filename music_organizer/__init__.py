"""
Music Organizer - Discogs-driven tagging and library layout.

This package provides tools to:
- Group audio files by folder and identify each folder as a Discogs release
- Rewrite MP3, FLAC, and M4A tags from canonical release data
- Transcode FLAC to AAC/M4A and download cover art
- Reorganize files into {artist}/({year}) {album}/{track}. {title} folders
"""

__version__ = "1.0.0"

"""FLAC to AAC/M4A transcoding through pydub (ffmpeg)."""

import logging
from pathlib import Path
from typing import Callable, Optional

from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError, CouldntEncodeError

from music_organizer.exceptions import TranscodeError

logger = logging.getLogger(__name__)

AAC_BITRATE = "256k"


def to_mp4(source: Path, dest: Path,
           progress_callback: Optional[Callable[[int], None]] = None) -> None:
    """
    Transcode an audio file to AAC in an MP4 container.

    Args:
        source: Input file (any format ffmpeg reads)
        dest: Output file
        progress_callback: Called with the number of source bytes consumed

    Raises:
        TranscodeError: If ffmpeg can't decode the source or encode the output
    """
    logger.debug("Transcoding %s to %s", source, dest)
    try:
        audio = AudioSegment.from_file(str(source), format=source.suffix[1:].lower())
        # "ipod" is ffmpeg's name for the M4A flavour of MP4
        audio.export(str(dest), format="ipod", codec="aac", bitrate=AAC_BITRATE)
    except (CouldntDecodeError, CouldntEncodeError) as e:
        raise TranscodeError(f"Failed to transcode {source}") from e

    if progress_callback is not None:
        progress_callback(source.stat().st_size)

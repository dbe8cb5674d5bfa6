"""Build target tags from Discogs data."""

from typing import List

from music_organizer.models import (
    DiscogsArtist, DiscogsRelease, DiscogsTrack, FrameId, Tag
)

DISCOGS_RELEASE_TAG = "DISCOGS_RELEASE"
VARIOUS_ARTISTS = "Various Artists"
DEFAULT_ARTIST_JOIN = "&"

# Frames kept when a file is taken as is
ALLOWED_FRAMES = [
    FrameId.TITLE,
    FrameId.ALBUM,
    FrameId.ALBUM_ARTIST,
    FrameId.ARTIST,
    FrameId.YEAR,
    FrameId.TRACK,
    FrameId.TOTAL_TRACKS,
    FrameId.DISC,
    FrameId.TOTAL_DISCS,
    FrameId.GENRE,
    DISCOGS_RELEASE_TAG,
]


def join_artists(artists: List[DiscogsArtist]) -> str:
    """Render credits like 'A & B feat. C'."""
    parts = []
    for artist in artists:
        parts.append(artist.name)
        parts.append(DEFAULT_ARTIST_JOIN if artist.join is None else artist.join)
    return " ".join(parts).strip()


def create_tag_from_discogs_data(source_tag: Tag, track: DiscogsTrack,
                                 release: DiscogsRelease) -> Tag:
    """
    Synthesize a tag for a matched track.

    The source tag only contributes its container format; every frame is
    replaced.

    Args:
        source_tag: Tag of the local file
        track: Matched Discogs track
        release: Release the track belongs to

    Returns:
        New Tag
    """
    tag = source_tag.copy()
    tag.clear()

    tag.title = track.title
    tag.album = release.title
    # Per-track credits mark a compilation
    if track.artists:
        tag.album_artist = VARIOUS_ARTISTS
        tag.artist = join_artists(track.artists)
    else:
        tag.album_artist = join_artists(release.artists)
        tag.artist = tag.album_artist
    tag.year = release.year
    tag.track_number = track.position
    tag.total_tracks = release.disc_to_total_tracks.get(track.disc)
    if release.total_discs > 1:
        tag.disc = track.disc
        tag.total_discs = release.total_discs
    if release.styles:
        tag.genre = "; ".join(release.styles)
    tag.custom_text[DISCOGS_RELEASE_TAG] = release.uri

    return tag


def strip_redundant_fields(tag: Tag) -> Tag:
    """Copy of tag with only ALLOWED_FRAMES kept."""
    stripped = tag.copy()
    stripped.clear()
    for frame in ALLOWED_FRAMES:
        stripped.set_frame(frame, tag.frame_content(frame))
    return stripped

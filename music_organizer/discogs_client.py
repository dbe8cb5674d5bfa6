"""Discogs API client for searching and fetching release metadata."""

import logging
import re
import time
from pathlib import Path
from typing import Dict, List, Optional, Union

import requests

from music_organizer import __version__
from music_organizer.exceptions import DiscogsError
from music_organizer.models import (
    DiscogsArtist, DiscogsImage, DiscogsRelease, DiscogsTrack
)
from music_organizer.utils import parse_duration

logger = logging.getLogger(__name__)

RATE_LIMIT_HEADER = "X-Discogs-Ratelimit"
RATE_LIMIT_USED_HEADER = "X-Discogs-Ratelimit-Used"

_ARTIST_DISAMBIGUATION = re.compile(r"\s*\(\d+\)$")
_DISC_POSITION = re.compile(r"^(\d+)-(\d+)$")
_PLAIN_POSITION = re.compile(r"^(\d+)$")


def rate_limit_sleep_seconds(limit: float, used: float) -> float:
    """
    Backoff after a 429 response.

    Args:
        limit: Value of X-Discogs-Ratelimit
        used: Value of X-Discogs-Ratelimit-Used

    Returns:
        Seconds to sleep before retrying
    """
    skip = min(used - limit, 0) + 1
    return skip * 60 / limit


class DiscogsClient:
    """Client for Discogs API."""

    BASE_URL = "https://api.discogs.com"
    USER_AGENT = f"MusicOrganizer/{__version__} +https://github.com/gargascripts"
    CHUNK_SIZE = 8192

    def __init__(self, user_token: str, session: Optional[requests.Session] = None):
        """
        Initialize Discogs client.

        Args:
            user_token: Discogs personal access token
            session: Optional preconfigured session
        """
        self.user_token = user_token
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Discogs token={user_token}",
            "User-Agent": self.USER_AGENT,
        })

    def _get_ok(self, url: str, params: Optional[dict] = None,
                stream: bool = False) -> requests.Response:
        """
        GET a URL, waiting out rate limiting.

        429 responses are retried forever with the backoff from
        rate_limit_sleep_seconds(); any other non-success status is fatal.

        Raises:
            DiscogsError: On a non-success status or a 429 without rate limit headers
        """
        logger.debug("Fetching %s", url)
        while True:
            resp = self.session.get(url, params=params, stream=stream)
            if resp.ok:
                return resp

            if resp.status_code != 429:
                raise DiscogsError(
                    f"Discogs request to {url} failed with status {resp.status_code}"
                )

            try:
                limit = float(resp.headers[RATE_LIMIT_HEADER])
                used = float(resp.headers[RATE_LIMIT_USED_HEADER])
            except (KeyError, ValueError) as e:
                raise DiscogsError(
                    f"Discogs rate limited {url} without usable rate limit headers"
                ) from e

            logger.warning("Reached requests limit! Slowing down...")
            seconds = rate_limit_sleep_seconds(limit, used)
            # Under the reported limit the formula hits zero or below; wait one request slot
            if seconds <= 0:
                seconds = 60 / limit
            time.sleep(seconds)

    def _get_json(self, url: str, params: Optional[dict] = None) -> dict:
        resp = self._get_ok(url, params=params)
        try:
            return resp.json()
        except ValueError as e:
            raise DiscogsError(f"Malformed JSON from {url}") from e

    def search(self, params: Dict[str, str]) -> List[dict]:
        """
        Search the Discogs database.

        Args:
            params: Query parameters, e.g. type, artist, release_title, year

        Returns:
            List of search results
        """
        data = self._get_json(f"{self.BASE_URL}/database/search", params=params)
        return data.get("results", [])

    def fetch_master(self, url: str) -> str:
        """Resolve a master resource URL to its main release URL."""
        data = self._get_json(url)
        try:
            return data["main_release_url"]
        except KeyError as e:
            raise DiscogsError(f"Master {url} has no main release") from e

    def fetch_release(self, url_or_id: Union[str, int]) -> DiscogsRelease:
        """
        Get full release details including tracklist.

        Args:
            url_or_id: Release resource URL or numeric release ID

        Returns:
            DiscogsRelease
        """
        url = str(url_or_id)
        if url.isdigit():
            url = f"{self.BASE_URL}/releases/{url}"
        return self.parse_release(self._get_json(url))

    def download_cover(self, url: str, path: Path, progress) -> None:
        """
        Download an image to path.

        Args:
            url: Image URL
            path: Destination file
            progress: Progress handle, advanced by bytes received
        """
        resp = self._get_ok(url, stream=True)
        content_length = resp.headers.get("Content-Length")
        if content_length and content_length.isdigit():
            progress.set_length(int(content_length))

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            for chunk in resp.iter_content(chunk_size=self.CHUNK_SIZE):
                if chunk:
                    f.write(chunk)
                    progress.inc(len(chunk))

    def parse_release(self, data: dict) -> DiscogsRelease:
        """
        Parse Discogs API response into DiscogsRelease.

        Raises:
            DiscogsError: If required fields are missing
        """
        try:
            uri = data["uri"]
            title = data["title"].strip()
            raw_tracks = self._flatten_tracklist(data["tracklist"])
        except (KeyError, AttributeError, TypeError) as e:
            raise DiscogsError(f"Malformed Discogs release: missing {e}") from e

        tracks = self._refine_tracks(raw_tracks, uri)

        disc_to_total_tracks: Dict[int, int] = {}
        for track in tracks:
            disc_to_total_tracks[track.disc] = disc_to_total_tracks.get(track.disc, 0) + 1

        return DiscogsRelease(
            uri=uri,
            title=title,
            year=data.get("year") or 0,
            tracks=tracks,
            artists=self._parse_artists(data.get("artists")) or [],
            styles=data.get("styles"),
            image=self._best_image(data.get("images")),
            disc_to_total_tracks=disc_to_total_tracks,
        )

    def _flatten_tracklist(self, tracklist: List[dict]) -> List[dict]:
        """Flatten sub_tracks depth-first, keeping only entries of type 'track'."""
        flat = []
        stack = list(reversed(tracklist))
        while stack:
            entry = stack.pop()
            if entry.get("type_", "track") == "track":
                flat.append(entry)
            stack.extend(reversed(entry.get("sub_tracks") or []))
        return flat

    def _refine_tracks(self, raw_tracks: List[dict], uri: str) -> List[DiscogsTrack]:
        tracks = []
        parsed_positions = 0
        for index, track_data in enumerate(raw_tracks, 1):
            disc, position = self._parse_position(track_data.get("position", ""))
            if position is None:
                disc, position = 1, index
            else:
                parsed_positions += 1

            try:
                title = track_data["title"].strip()
                duration = parse_duration(track_data.get("duration"))
            except (KeyError, AttributeError) as e:
                raise DiscogsError(f"Malformed track in Discogs release {uri}") from e
            except ValueError:
                duration = None

            tracks.append(DiscogsTrack(
                title=title,
                position=position,
                disc=disc,
                duration=duration,
                artists=self._parse_artists(track_data.get("artists")),
            ))

        if 0 < parsed_positions < len(tracks):
            logger.warning("Release %s mixes numbered and unnumbered track positions", uri)

        return tracks

    def _parse_position(self, position: str) -> tuple:
        """
        Parse track position into disc and position numbers.

        Handles formats like:
        - "1", "2", "3" (single disc)
        - "1-1", "1-2", "2-1" (disc-track)

        Returns:
            (disc, position) tuple, (None, None) for anything else (e.g. vinyl "A1")
        """
        position = (position or "").strip()

        disc_track_match = _DISC_POSITION.match(position)
        if disc_track_match:
            return int(disc_track_match.group(1)), int(disc_track_match.group(2))

        simple_match = _PLAIN_POSITION.match(position)
        if simple_match:
            return 1, int(simple_match.group(1))

        return None, None

    def _parse_artists(self, artists: Optional[List[dict]]) -> Optional[List[DiscogsArtist]]:
        if not artists:
            return None
        return [
            DiscogsArtist(
                # Clean up artist names (remove numbering like "(2)")
                name=_ARTIST_DISAMBIGUATION.sub("", artist.get("name", "")).strip(),
                join=artist.get("join"),
            )
            for artist in artists
        ]

    def _best_image(self, images: Optional[List[dict]]) -> Optional[DiscogsImage]:
        """Primary image if any, else the first secondary one."""
        for image_type in ("primary", "secondary"):
            for image in images or []:
                if image.get("type") == image_type and image.get("resource_url"):
                    return DiscogsImage(url=image["resource_url"])
        return None

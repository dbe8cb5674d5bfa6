"""Shared test fixtures for music_organizer tests."""

from pathlib import Path
from unittest.mock import Mock

import pytest

from music_organizer.interactive import InteractivePrompts
from music_organizer.models import (
    DiscogsArtist, DiscogsImage, DiscogsRelease, DiscogsTrack, MusicFile, Tag,
    TagFormat
)


@pytest.fixture
def make_music_file():
    """Factory for MusicFile objects with an ID3 tag."""
    def _make(path, duration=None, tag_format=TagFormat.ID3, **tag_fields):
        return MusicFile(
            file_path=Path(path),
            tag=Tag(format=tag_format, **tag_fields),
            duration=duration,
        )
    return _make


@pytest.fixture
def ok_computer_release():
    """A two-track release for title matching tests."""
    return DiscogsRelease(
        uri="https://www.discogs.com/release/1234-Radiohead-OK-Computer",
        title="OK Computer",
        year=1997,
        tracks=[
            DiscogsTrack(title="Airbag", position=1, duration=284.0),
            DiscogsTrack(title="Paranoid Android", position=2, duration=383.0),
        ],
        artists=[DiscogsArtist(name="Radiohead", join="")],
        styles=["Alternative Rock", "Art Rock"],
        image=DiscogsImage(url="https://i.discogs.com/images/R-1234.jpg"),
        disc_to_total_tracks={1: 2},
    )


@pytest.fixture
def double_album_release():
    """A release spanning two discs."""
    return DiscogsRelease(
        uri="https://www.discogs.com/release/999-Double",
        title="Double",
        year=2001,
        tracks=[
            DiscogsTrack(title="One", position=1, disc=1),
            DiscogsTrack(title="Two", position=2, disc=1),
            DiscogsTrack(title="Three", position=1, disc=2),
        ],
        artists=[DiscogsArtist(name="Band", join="")],
        disc_to_total_tracks={1: 2, 2: 1},
    )


@pytest.fixture
def quiet_prompts():
    """Non-interactive prompts that print nothing."""
    return InteractivePrompts(no_color=True, quiet=True)


@pytest.fixture
def scripted_prompts():
    """Quiet prompts whose questions are answered by mocks."""
    prompts = InteractivePrompts(no_color=True, quiet=True)
    prompts.confirm = Mock(return_value=True)
    prompts.select = Mock(return_value=1)
    prompts.ask_text = Mock(return_value=None)
    prompts.edit_text = Mock(return_value=None)
    prompts.error = Mock()
    return prompts

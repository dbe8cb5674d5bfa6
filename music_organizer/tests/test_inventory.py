"""Tests for inventory.py folder discovery and chunking."""

from unittest.mock import Mock

import pytest

from music_organizer.exceptions import TagReadError
from music_organizer.inventory import collect_folders, get_music_files_chunks
from music_organizer.models import MusicFile, Tag, TagFormat


@pytest.fixture
def library(tmp_path):
    """Input tree with nested album folders."""
    for relative in ["b/02.mp3", "b/01.mp3", "b/cover.jpg", "a/01.mp3", "a/cd2/01.mp3"]:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"x")
    return tmp_path


@pytest.fixture
def tag_handler():
    """Mock TagHandler reading every .mp3 as an empty ID3 tag."""
    handler = Mock()

    def read(path):
        if path.suffix != ".mp3":
            return None
        return MusicFile(file_path=path, tag=Tag(format=TagFormat.ID3))

    handler.read_music_file.side_effect = read
    return handler


def relative_names(music_files, root):
    return [str(f.file_path.relative_to(root)) for f in music_files]


class TestCollectFolders:
    """Tests for collect_folders function."""

    def test_walks_sorted(self, library):
        """Should list the root and every sub-folder in sorted order."""
        assert collect_folders([library]) == [
            library, library / "a", library / "a" / "cd2", library / "b"
        ]

    def test_file_input(self, library):
        """Should keep file inputs as they are."""
        path = library / "a" / "01.mp3"
        assert collect_folders([path]) == [path]

    def test_missing_input(self, tmp_path):
        """Should raise for inputs that don't exist."""
        with pytest.raises(FileNotFoundError):
            collect_folders([tmp_path / "missing"])


class TestGetMusicFilesChunks:
    """Tests for get_music_files_chunks function."""

    def test_single_chunk(self, library, quiet_prompts, tag_handler):
        """Should yield every supported file in one chunk."""
        chunks = list(get_music_files_chunks([library], None, quiet_prompts, tag_handler))

        assert len(chunks) == 1
        assert relative_names(chunks[0], library) == [
            "a/01.mp3", "a/cd2/01.mp3", "b/01.mp3", "b/02.mp3"
        ]

    def test_chunks_by_folder_count(self, library, quiet_prompts, tag_handler):
        """Should group chunk_size folders per chunk."""
        chunks = list(get_music_files_chunks([library], 2, quiet_prompts, tag_handler))

        # Folders: root, a, a/cd2, b
        assert [relative_names(c, library) for c in chunks] == [
            ["a/01.mp3"],
            ["a/cd2/01.mp3", "b/01.mp3", "b/02.mp3"],
        ]

    def test_empty_chunks_are_yielded(self, library, quiet_prompts, tag_handler):
        """Should yield folders without music as empty chunks."""
        chunks = list(get_music_files_chunks([library], 1, quiet_prompts, tag_handler))
        assert [len(c) for c in chunks] == [0, 1, 1, 2]

    def test_is_lazy(self, library, quiet_prompts, tag_handler):
        """Should not read later chunks before they are requested."""
        chunks = get_music_files_chunks([library], 2, quiet_prompts, tag_handler)
        next(chunks)
        assert tag_handler.read_music_file.call_count == 1

    def test_tag_errors_propagate(self, library, quiet_prompts, tag_handler):
        """Should stop on a file with corrupt tags."""
        tag_handler.read_music_file.side_effect = TagReadError("Invalid tags in file x")
        with pytest.raises(TagReadError):
            list(get_music_files_chunks([library], None, quiet_prompts, tag_handler))

    def test_missing_input_path(self, tmp_path, quiet_prompts, tag_handler):
        """Should raise before yielding anything."""
        with pytest.raises(FileNotFoundError):
            next(get_music_files_chunks([tmp_path / "missing"], None, quiet_prompts, tag_handler))

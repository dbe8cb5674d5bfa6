"""Tests for organizer.py pipeline control flow."""

from unittest.mock import Mock, patch

import pytest
from mutagen.id3 import ID3

from music_organizer.exceptions import PlanningError
from music_organizer.models import (
    ChangeList, Cleanup, Matched, MusicFile, Tag, TagFormat, Unmatched
)
from music_organizer.organizer import Organizer, WorkArgs
from music_organizer.tag_handler import TagHandler


@pytest.fixture
def client():
    return Mock()


@pytest.fixture
def tag_handler():
    return Mock()


@pytest.fixture
def organizer(client, scripted_prompts, tag_handler):
    """Organizer with a mocked matcher."""
    organizer = Organizer(client, scripted_prompts, tag_handler)
    organizer.matcher = Mock()
    organizer.matcher.match_music_files.return_value = [Unmatched(music_files=[])]
    return organizer


@pytest.fixture
def some_changes(tmp_path):
    return ChangeList(cleanups=[Cleanup(path=tmp_path / "junk.txt")])


def run(organizer, chunks, changes, **work_args):
    """Run work() over fixed chunks and planned changes, with applier mocked."""
    with patch("music_organizer.organizer.get_music_files_chunks", return_value=iter(chunks)), \
            patch("music_organizer.organizer.calculate_changes", return_value=changes), \
            patch("music_organizer.organizer.applier") as mock_applier:
        mock_applier.write_music_files.return_value = 2
        mock_applier.download_covers.return_value = 1
        mock_applier.cleanup.return_value = 3
        stats = organizer.work(WorkArgs(input_paths=[], **work_args))
    return stats, mock_applier


class TestWork:
    """Tests for Organizer.work control flow."""

    def test_output_must_be_directory(self, organizer, tmp_path):
        """Should refuse an output path that isn't a folder."""
        with pytest.raises(PlanningError):
            organizer.work(WorkArgs(input_paths=[tmp_path], output_path=tmp_path / "missing"))

    def test_empty_chunks_are_skipped(self, organizer, some_changes):
        """Should not match chunks without music files."""
        stats, mock_applier = run(organizer, [[], []], some_changes)

        organizer.matcher.match_music_files.assert_not_called()
        mock_applier.write_music_files.assert_not_called()
        assert stats.total_files == 0

    def test_nothing_to_change(self, organizer, make_music_file, scripted_prompts):
        """Should not ask or apply when nothing would change."""
        stats, mock_applier = run(organizer, [[make_music_file("/in/a.mp3")]], ChangeList())

        scripted_prompts.confirm.assert_not_called()
        mock_applier.write_music_files.assert_not_called()
        assert stats.total_files == 1

    def test_counts_match_results(self, organizer, make_music_file, ok_computer_release,
                                  some_changes):
        """Should count matched and unmatched folders."""
        organizer.matcher.match_music_files.return_value = [
            Matched(tracks_matching=[], release=ok_computer_release),
            Unmatched(music_files=[]),
            Unmatched(music_files=[]),
        ]
        stats, _ = run(organizer, [[make_music_file("/in/a.mp3")]], some_changes,
                       allow_questions=False)

        assert stats.releases_matched == 1
        assert stats.folders_unmatched == 2

    def test_passes_forced_release_id(self, organizer, make_music_file, some_changes):
        files = [make_music_file("/in/a.mp3")]
        run(organizer, [files], some_changes, discogs_release_id="123", allow_questions=False)
        organizer.matcher.match_music_files.assert_called_once_with(files, "123")

    def test_declined_chunk_is_skipped(self, organizer, make_music_file, scripted_prompts,
                                       some_changes):
        """Should skip a chunk when changes are declined."""
        scripted_prompts.confirm.side_effect = [False, False]

        stats, mock_applier = run(organizer, [[make_music_file("/in/a.mp3")]], some_changes)

        assert [c.args[0] for c in scripted_prompts.confirm.call_args_list] == [
            "Do you want to review changes?",
            "Do you want to make changes?",
        ]
        mock_applier.write_music_files.assert_not_called()
        assert stats.chunks_skipped == 1

    def test_applies_without_questions(self, organizer, make_music_file, scripted_prompts,
                                       some_changes):
        """Should apply every category and collect counts."""
        stats, mock_applier = run(organizer, [[make_music_file("/in/a.mp3")]], some_changes,
                                  allow_questions=False)

        scripted_prompts.confirm.assert_not_called()
        assert (stats.files_written, stats.covers_downloaded, stats.paths_removed) == (2, 1, 3)
        mock_applier.fsync_changes.assert_not_called()

    def test_force_fsync(self, organizer, make_music_file, some_changes):
        _, mock_applier = run(organizer, [[make_music_file("/in/a.mp3")]], some_changes,
                              allow_questions=False, force_fsync=True)
        mock_applier.fsync_changes.assert_called_once()

    def test_review_and_edit_loop(self, organizer, make_music_file, scripted_prompts,
                                  some_changes):
        """Should list, edit and list again until review is declined."""
        edited = ChangeList(cleanups=[])
        # review? yes, edit? yes, review? yes, edit? no, make changes? yes
        scripted_prompts.confirm.side_effect = [True, True, True, False, True]

        with patch("music_organizer.organizer.print_changes_details") as mock_print, \
                patch("music_organizer.organizer.edit_changes", return_value=edited) as mock_edit:
            _, mock_applier = run(organizer, [[make_music_file("/in/a.mp3")]], some_changes)

        assert mock_print.call_count == 2
        assert mock_print.call_args.args[0] is edited
        mock_edit.assert_called_once()
        assert mock_applier.write_music_files.call_args.args[0] is edited.music_files

    def test_review_defaults(self, organizer, make_music_file, scripted_prompts, some_changes):
        """Should default review to no and applying to yes."""
        scripted_prompts.confirm.side_effect = [False, True]
        run(organizer, [[make_music_file("/in/a.mp3")]], some_changes)

        review, apply = scripted_prompts.confirm.call_args_list[:2]
        assert review.kwargs["default"] is False
        assert apply.kwargs["default"] is True


class TestWorkEndToEnd:
    """Runs the pipeline on real files with tags and catalog mocked."""

    def test_imports_unmatched_folder(self, tmp_path, client, scripted_prompts, tag_handler):
        """Should copy, retag and clean up a folder taken as is."""
        source = tmp_path / "in" / "track.mp3"
        source.parent.mkdir()
        source.write_bytes(b"audio")
        out = tmp_path / "out"
        out.mkdir()

        tag = Tag(format=TagFormat.ID3, title="Airbag", album="OK Computer",
                  artist="Radiohead", year=1997, track_number=1)
        tag_handler.read_music_file.side_effect = lambda path: MusicFile(file_path=path, tag=tag)
        client.search.return_value = []

        organizer = Organizer(client, scripted_prompts, tag_handler)
        stats = organizer.work(WorkArgs(input_paths=[source.parent], output_path=out,
                                        allow_questions=False))

        target = out / "Radiohead" / "(1997) OK Computer" / "01. Airbag.mp3"
        assert target.read_bytes() == b"audio"
        assert not source.exists()
        assert not source.parent.exists()
        assert tag_handler.write_tag.call_args.args[1].title == "Airbag"
        assert stats.total_files == 1
        assert stats.folders_unmatched == 1
        assert stats.files_written == 1
        assert stats.paths_removed == 2

    def test_reimport_of_matched_files_is_noop(self, tmp_path, client, scripted_prompts,
                                               ok_computer_release):
        """Should write tags once and plan no file changes on the next run."""
        handler = TagHandler()
        source_dir = tmp_path / "in"
        source_dir.mkdir()
        for name, title, track in [("a.mp3", "airbag", 1), ("b.mp3", "paranoid android", 2)]:
            (source_dir / name).write_bytes(b"audio")
            handler.write_tag(source_dir / name, Tag(
                format=TagFormat.ID3, title=title, album="ok computer",
                artist="radiohead", year=1997, track_number=track,
            ))
        out = tmp_path / "out"
        out.mkdir()

        client.search.side_effect = lambda params: (
            [] if params["type"] == "master"
            else [{"resource_url": "https://api.discogs.com/releases/1234"}]
        )
        client.fetch_release.return_value = ok_computer_release
        client.download_cover.side_effect = lambda uri, path, progress: path.write_bytes(b"jpg")

        def read_mp3(path):
            return Mock(tags=ID3(path), info=Mock(length=300.0))

        organizer = Organizer(client, scripted_prompts, handler)
        with patch("music_organizer.tag_handler.MP3", side_effect=read_mp3):
            first = organizer.work(WorkArgs(input_paths=[source_dir], output_path=out,
                                            allow_questions=False))
            album = out / "Radiohead" / "(1997) OK Computer"
            second = organizer.work(WorkArgs(input_paths=[album], output_path=out,
                                             allow_questions=False))

        assert (first.releases_matched, first.files_written, first.covers_downloaded) == (1, 2, 1)
        assert sorted(p.name for p in album.iterdir()) == [
            "01. Airbag.mp3", "02. Paranoid Android.mp3", "cover.jpg",
        ]
        written = ID3(str(album / "01. Airbag.mp3"))
        assert str(written["TRCK"].text[0]) == "1/2"
        assert str(written["TCON"].text[0]) == "Alternative Rock; Art Rock"
        assert written.getall("TXXX")[0].text[0] == ok_computer_release.uri

        assert second.releases_matched == 1
        assert (second.files_written, second.covers_downloaded, second.paths_removed) == (0, 0, 0)

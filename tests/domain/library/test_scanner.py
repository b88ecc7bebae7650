"""Tests for recursive library indexing."""

import os
from unittest.mock import patch

import pytest

from music_server.domain.library.catalog import Catalog
from music_server.domain.library.models import Song
from music_server.domain.library.scanner import (
    index_directory,
    index_library,
    is_supported_format,
    search_songs,
)


@pytest.fixture
def library_dir(tmp_path, make_wav):
    """A small library with nested folders and a non-audio file."""
    root = tmp_path / "music"
    make_wav(root / "b_song.wav")
    make_wav(root / "a_album" / "01.wav")
    make_wav(root / "a_album" / "02.WAV")
    (root / "a_album" / "cover.jpg").write_bytes(b"jpeg")
    (root / "notes.txt").write_text("not audio")
    return root


class TestIsSupportedFormat:
    """Test extension matching."""

    @pytest.mark.parametrize("name", ["a.mp3", "b.FLAC", "c.Ogg", "d.wma"])
    def test_supported(self, name):
        """Test supported extensions in any case."""
        assert is_supported_format(name, [".mp3", ".flac", ".ogg", ".wma"])

    @pytest.mark.parametrize("name", ["cover.jpg", "README", "mp3"])
    def test_unsupported(self, name):
        """Test other files are rejected."""
        assert not is_supported_format(name, [".mp3", ".flac"])


class TestIndexDirectory:
    """Test walking a single directory tree."""

    def test_indexes_only_audio_files(self, library_dir):
        """Test every audio file is indexed exactly once."""
        catalog = Catalog()
        songs = index_directory(catalog, library_dir)
        assert sorted(song.file_name for song in songs) == ["01.wav", "02.WAV", "b_song.wav"]
        assert len(catalog) == 3

    def test_ids_follow_name_order(self, library_dir):
        """Test entries are visited in sorted order, folders included."""
        catalog = Catalog()
        index_directory(catalog, library_dir)
        assert [song.file_name for song in catalog] == ["01.wav", "02.WAV", "b_song.wav"]

    def test_paths_are_absolute(self, library_dir):
        """Test stored paths are absolute."""
        catalog = Catalog()
        index_directory(catalog, library_dir)
        assert all(os.path.isabs(song.file_path) for song in catalog)

    def test_reads_duration(self, library_dir):
        """Test metadata extraction runs for each file."""
        catalog = Catalog()
        index_directory(catalog, library_dir)
        assert all(song.track_length == 1 for song in catalog)

    def test_progress_callback(self, library_dir):
        """Test the callback receives each indexed song."""
        seen = []
        index_directory(Catalog(), library_dir, progress_callback=lambda path, song: seen.append(song))
        assert len(seen) == 3
        assert all(isinstance(song, Song) for song in seen)

    def test_empty_directory(self, tmp_path):
        """Test an empty folder adds nothing."""
        catalog = Catalog()
        assert index_directory(catalog, tmp_path) == []
        assert len(catalog) == 0

    def test_missing_directory_is_skipped(self, tmp_path):
        """Test a folder that does not exist adds nothing and does not raise."""
        catalog = Catalog()
        assert index_directory(catalog, tmp_path / "nope") == []

    def test_unreadable_subdirectory_is_skipped(self, library_dir):
        """Test a failing subfolder does not stop the walk."""
        real_scandir = os.scandir
        blocked = str(library_dir / "a_album")

        def scandir(path):
            if os.fspath(path) == blocked:
                raise PermissionError(13, "Permission denied", blocked)
            return real_scandir(path)

        catalog = Catalog()
        with patch("music_server.domain.library.scanner.os.scandir", side_effect=scandir):
            index_directory(catalog, library_dir)

        assert [song.file_name for song in catalog] == ["b_song.wav"]

    def test_symlink_loop_is_walked_once(self, library_dir):
        """Test a symlink back to an ancestor does not recurse forever."""
        os.symlink(library_dir, library_dir / "a_album" / "loop")
        catalog = Catalog()
        index_directory(catalog, library_dir)
        assert len(catalog) == 3

    def test_custom_formats(self, library_dir):
        """Test only the configured extensions are indexed."""
        (library_dir / "clip.ogg").write_bytes(b"OggS")
        catalog = Catalog()
        index_directory(catalog, library_dir, supported_formats=[".ogg"])
        assert [song.file_name for song in catalog] == ["clip.ogg"]


class TestIndexLibrary:
    """Test indexing several library roots."""

    def test_roots_indexed_in_order(self, tmp_path, make_wav):
        """Test IDs follow the order of the configured roots."""
        make_wav(tmp_path / "second" / "z.wav")
        make_wav(tmp_path / "first" / "y.wav")
        catalog = Catalog()
        index_library(catalog, [tmp_path / "first", tmp_path / "second"])
        assert [song.file_name for song in catalog] == ["y.wav", "z.wav"]

    def test_missing_root_is_skipped(self, tmp_path, make_wav):
        """Test a missing root is logged and the rest still indexed."""
        make_wav(tmp_path / "music" / "a.wav")
        catalog = Catalog()
        songs = index_library(catalog, [tmp_path / "missing", tmp_path / "music"])
        assert len(songs) == 1

    def test_overlapping_roots_index_once(self, tmp_path, make_wav):
        """Test a root nested in another root is not indexed twice."""
        make_wav(tmp_path / "music" / "sub" / "a.wav")
        catalog = Catalog()
        index_library(catalog, [tmp_path / "music", tmp_path / "music" / "sub"])
        assert len(catalog) == 1


class TestSearchSongs:
    """Test case-insensitive catalog search."""

    @pytest.fixture
    def songs(self):
        return [
            Song(id=1, title="Horizon", file_path="/m/h.mp3", artist="Nova", file_name="h.mp3"),
            Song(id=2, title="Tide", file_path="/m/t.flac", genre="Ambient", file_name="t.flac"),
            Song(id=3, title="Rain", file_path="/m/rain_mix.wav", file_name="rain_mix.wav"),
        ]

    def test_matches_title(self, songs):
        assert [s.id for s in search_songs(songs, "horiz")] == [1]

    def test_matches_artist_and_genre(self, songs):
        assert [s.id for s in search_songs(songs, "NOVA")] == [1]
        assert [s.id for s in search_songs(songs, "ambient")] == [2]

    def test_matches_file_name(self, songs):
        assert [s.id for s in search_songs(songs, "_mix")] == [3]

    def test_no_match(self, songs):
        assert search_songs(songs, "jazz") == []

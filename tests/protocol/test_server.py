"""End-to-end tests: a real CatalogServer on an ephemeral port and the client library."""

import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from music_server.domain.library.catalog import Catalog
from music_server.exceptions import (
    CatalogFrozenError,
    ServerBusyError,
    SongNotFoundError,
    SongUnavailableError,
)
from music_server.protocol import CatalogServer, download_song, fetch_catalog, iter_song_bytes
from music_server.protocol.commands import DOWNLOAD

AUDIO = bytes(range(256)) * 512  # 128 KiB


@pytest.fixture
def catalog(tmp_path):
    catalog = Catalog()
    for name in ("first.mp3", "second.flac"):
        path = tmp_path / "library" / name
        path.parent.mkdir(exist_ok=True)
        path.write_bytes(AUDIO)
        catalog.add_file(path, {"title": name.split(".")[0].title()})
    catalog.add_file(tmp_path / "library" / "vanished.wav")
    return catalog


@pytest.fixture
def server(catalog):
    """A running server on a free port."""
    server = CatalogServer(catalog, host="127.0.0.1", port=0, max_workers=4, max_pending=16)
    server.start()
    yield server
    server.stop()


def wait_for(condition, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.05)
    return False


class TestServerLifecycle:
    """Test binding and stopping."""

    def test_bind_freezes_catalog(self, catalog):
        """Test the catalog cannot change once the server is bound."""
        server = CatalogServer(catalog, host="127.0.0.1", port=0)
        try:
            server.bind()
            assert catalog.frozen
            with pytest.raises(CatalogFrozenError):
                catalog.add_file("/tmp/late.mp3")
        finally:
            server.stop()

    def test_port_in_use_raises(self, server, catalog):
        """Test binding an occupied port fails at startup."""
        _, port = server.address
        other = CatalogServer(catalog, host="127.0.0.1", port=port)
        with pytest.raises(OSError):
            other.bind()

    def test_stop_ends_accept_loop(self, catalog):
        server = CatalogServer(catalog, host="127.0.0.1", port=0)
        server.start()
        server.stop()
        assert not server.thread.is_alive()
        assert server.server_socket is None


class TestClientRequests:
    """Test the commands through the client library."""

    def test_fetch_catalog(self, server, catalog):
        """Test LIST returns every song with matching fields."""
        host, port = server.address
        songs = fetch_catalog(host, port)
        assert songs == catalog.songs()
        assert [song.title for song in songs] == ["First", "Second", "vanished.wav"]

    def test_stream_bytes_match_file(self, server):
        host, port = server.address
        assert b"".join(iter_song_bytes(host, port, 1)) == AUDIO

    def test_download_song(self, server, tmp_path):
        """Test downloads are byte-identical to the served file."""
        host, port = server.address
        destination = tmp_path / "saved.flac"
        size = download_song(host, port, 2, destination)
        assert size == len(AUDIO)
        assert destination.read_bytes() == AUDIO
        assert not (tmp_path / "saved.flac.part").exists()

    def test_stream_and_download_identical(self, server):
        host, port = server.address
        streamed = b"".join(iter_song_bytes(host, port, 2))
        downloaded = b"".join(iter_song_bytes(host, port, 2, command=DOWNLOAD))
        assert streamed == downloaded

    def test_unknown_id_raises_not_found(self, server, tmp_path):
        """Test the client turns NOT_FOUND into an exception and writes nothing."""
        host, port = server.address
        with pytest.raises(SongNotFoundError) as exc_info:
            download_song(host, port, 42, tmp_path / "nothing.mp3")
        assert exc_info.value.song_id == 42
        assert list(tmp_path.glob("nothing.mp3*")) == []

    def test_vanished_file_raises_unavailable(self, server):
        host, port = server.address
        with pytest.raises(SongUnavailableError):
            list(iter_song_bytes(host, port, 3))

    def test_unknown_command_closes_silently(self, server):
        """Test unknown commands get no bytes back."""
        with socket.create_connection(server.address, timeout=5) as sock:
            sock.sendall(b"PLAY 1\n")
            assert sock.recv(1024) == b""

    def test_server_survives_client_hangup(self, server):
        """Test a client leaving mid-transfer does not affect later clients."""
        with socket.create_connection(server.address, timeout=5) as sock:
            sock.sendall(b"STREAM 1\n")
            sock.recv(10)
        host, port = server.address
        assert len(fetch_catalog(host, port)) == 3

    def test_concurrent_clients(self, server):
        """Test parallel requests all get complete, correct answers."""
        host, port = server.address

        def stream(_):
            return b"".join(iter_song_bytes(host, port, 1))

        def listing(_):
            return len(fetch_catalog(host, port))

        with ThreadPoolExecutor(max_workers=8) as pool:
            streams = list(pool.map(stream, range(8)))
            listings = list(pool.map(listing, range(8)))

        assert all(data == AUDIO for data in streams)
        assert listings == [3] * 8


class TestAdmissionControl:
    """Test refusing connections beyond the pool and queue."""

    def test_busy_when_full(self, catalog):
        """Test an idle connection holding the only slot makes others BUSY."""
        server = CatalogServer(catalog, host="127.0.0.1", port=0, max_workers=1, max_pending=0)
        server.start()
        try:
            host, port = server.address
            idle = socket.create_connection((host, port), timeout=5)
            try:
                # Wait until the idle connection owns the worker
                assert wait_for(lambda: server._slots._value == 0)
                with pytest.raises(ServerBusyError):
                    fetch_catalog(host, port)
            finally:
                idle.close()

            # The slot frees up once the idle client leaves
            assert wait_for(lambda: server._slots._value == 1)
            assert len(fetch_catalog(host, port)) == 3
        finally:
            server.stop()

    def test_queued_connections_are_served(self, catalog):
        """Test connections within the queue limit wait instead of failing."""
        server = CatalogServer(catalog, host="127.0.0.1", port=0, max_workers=1, max_pending=2)
        server.start()
        try:
            host, port = server.address
            idle = socket.create_connection((host, port), timeout=5)
            results = []

            def listing():
                results.append(len(fetch_catalog(host, port)))

            threads = [threading.Thread(target=listing) for _ in range(2)]
            for thread in threads:
                thread.start()
            time.sleep(0.3)
            idle.close()
            for thread in threads:
                thread.join(timeout=10)

            assert results == [3, 3]
        finally:
            server.stop()

"""Tests for per-connection request handling."""

import json
import socket

import pytest

from music_server.domain.library.catalog import Catalog
from music_server.protocol.handler import RequestHandler, read_request_line

AUDIO = bytes(range(256)) * 16


@pytest.fixture
def catalog(tmp_path):
    song_path = tmp_path / "horizon.mp3"
    song_path.write_bytes(AUDIO)
    catalog = Catalog()
    catalog.add_file(song_path, {"title": "Horizon", "artist": "Nova"})
    catalog.add_file(tmp_path / "deleted.wav")
    catalog.freeze()
    return catalog


def exchange(handler: RequestHandler, request: bytes) -> bytes:
    """Send a request through a socket pair and return everything the handler wrote."""
    client, server = socket.socketpair()
    with client:
        client.sendall(request)
        client.shutdown(socket.SHUT_WR)
        handler.handle(server, ("127.0.0.1", 40000))
        response = b""
        while True:
            chunk = client.recv(65536)
            if not chunk:
                break
            response += chunk
    return response


class TestReadRequestLine:
    """Test reading the request line."""

    def test_stops_at_newline(self):
        client, server = socket.socketpair()
        with client, server:
            client.sendall(b"LIST\nextra")
            assert read_request_line(server) == "LIST"

    def test_accepts_crlf(self):
        client, server = socket.socketpair()
        with client, server:
            client.sendall(b"STREAM 1\r\n")
            assert read_request_line(server) == "STREAM 1"

    def test_eof_terminates_line(self):
        """Test a command without newline is read up to EOF."""
        client, server = socket.socketpair()
        with client, server:
            client.sendall(b"LIST")
            client.shutdown(socket.SHUT_WR)
            assert read_request_line(server) == "LIST"

    def test_nothing_sent(self):
        client, server = socket.socketpair()
        with server:
            client.close()
            assert read_request_line(server) is None

    def test_long_line_is_capped(self):
        """Test reading stops after the request size limit."""
        client, server = socket.socketpair()
        with client, server:
            client.sendall(b"A" * 5000)
            assert len(read_request_line(server)) == 1024


class TestRequestHandler:
    """Test responses to each command."""

    def test_list_sends_json_line(self, catalog):
        """Test LIST answers with one JSON line of every song."""
        response = exchange(RequestHandler(catalog), b"LIST\n")
        assert response.endswith(b"\n")
        assert response.count(b"\n") == 1
        data = json.loads(response)
        assert [item["id"] for item in data] == [1, 2]
        assert data[0]["title"] == "Horizon"
        assert data[0]["filePath"] == catalog.get(1).file_path

    def test_stream_sends_exact_bytes(self, catalog):
        """Test STREAM sends the file's bytes and nothing else."""
        assert exchange(RequestHandler(catalog), b"STREAM 1\n") == AUDIO

    def test_download_matches_stream(self, catalog):
        """Test DOWNLOAD and STREAM send the same bytes."""
        handler = RequestHandler(catalog)
        assert exchange(handler, b"DOWNLOAD 1\n") == exchange(handler, b"STREAM 1\n")

    def test_lowercase_command(self, catalog):
        assert exchange(RequestHandler(catalog), b"stream 1\n") == AUDIO

    @pytest.mark.parametrize("request_line", [b"STREAM 99\n", b"DOWNLOAD abc\n", b"STREAM\n"])
    def test_unknown_id_sends_not_found(self, catalog, request_line):
        """Test bad IDs get an explicit NOT_FOUND line."""
        response = exchange(RequestHandler(catalog), request_line)
        assert response.startswith(b"ERROR NOT_FOUND ")
        assert response.endswith(b"\n")

    def test_missing_file_sends_unavailable(self, catalog):
        """Test a song whose file disappeared gets UNAVAILABLE."""
        response = exchange(RequestHandler(catalog), b"STREAM 2\n")
        assert response.startswith(b"ERROR UNAVAILABLE ")

    @pytest.mark.parametrize("request_line", [b"HELLO\n", b"\n", b""])
    def test_unknown_command_gets_no_response(self, catalog, request_line):
        """Test the connection is closed without a reply."""
        assert exchange(RequestHandler(catalog), request_line) == b""

    def test_client_gone_does_not_raise(self, catalog):
        """Test a client that hangs up early only ends its own connection."""
        client, server = socket.socketpair()
        client.sendall(b"LIST\n")
        client.close()
        RequestHandler(catalog).handle(server, ("127.0.0.1", 40001))
        assert server.fileno() == -1

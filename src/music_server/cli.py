"""
Music Server CLI - Entry point

Runs the catalog server and talks to a running one: list the catalog,
stream a song to stdout, or download it to a file.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from rich.table import Table

from music_server.core import config
from music_server.core.console import get_console
from music_server.core.output import log, setup_loguru
from music_server.domain.library.models import Song
from music_server.domain.library.scanner import search_songs
from music_server.domain.playback import (
    PlaybackStrategy,
    select_playback_strategy,
    spool_to_temp_file,
)
from music_server.exceptions import MusicServerError
from music_server.protocol import download_song, fetch_catalog, iter_song_bytes


def format_duration(seconds: int) -> str:
    """Format a track length as m:ss."""
    minutes, secs = divmod(max(int(seconds), 0), 60)
    return f"{minutes}:{secs:02d}"


def default_download_name(song: Song) -> str:
    """File name a download is saved under when no -o is given."""
    title = song.title.replace("/", "_").replace("\\", "_")
    extension = song.extension
    if title.lower().endswith(extension):
        return title
    return f"{title}{extension}"


def apply_server_args(cfg: config.Config, args: argparse.Namespace) -> config.Config:
    """Override configuration values with command-line flags."""
    if args.paths:
        cfg.library.library_paths = [str(Path(p).expanduser()) for p in args.paths]
    if args.catalog_file:
        cfg.library.catalog_file = args.catalog_file
    if args.url_list:
        cfg.remote.url_list = args.url_list
    if args.no_remote:
        cfg.remote.enabled = False

    # serve-only flags
    if getattr(args, "host", None):
        cfg.server.host = args.host
    if getattr(args, "port", None) is not None:
        cfg.server.port = args.port
    if getattr(args, "max_workers", None) is not None:
        cfg.server.max_workers = args.max_workers

    cfg.server.validate()
    return cfg


def _client_logging() -> None:
    # Client commands keep the terminal for their own output
    setup_loguru(config.get_data_dir() / "music-server-client.log", console_output=False)


def _resolve_client(cfg: config.Config, args: argparse.Namespace) -> tuple[str, int]:
    host = args.host or cfg.client.host
    port = args.port if args.port is not None else cfg.client.port
    return host, port


def _find_song(songs: list[Song], song_id: int) -> Optional[Song]:
    for song in songs:
        if song.id == song_id:
            return song
    return None


def run_serve(args: argparse.Namespace, index_only: bool = False) -> int:
    """Build the catalog and serve it (or only write the snapshot).

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    from music_server import main

    cfg = config.load_config(args.config)
    try:
        apply_server_args(cfg, args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    main.setup_logging(cfg)
    if index_only:
        return main.run_index(cfg)
    return main.run_server(cfg)


def run_list(args: argparse.Namespace) -> int:
    """Print the catalog of a running server."""
    cfg = config.load_config(args.config)
    _client_logging()
    host, port = _resolve_client(cfg, args)

    try:
        songs = fetch_catalog(host, port, timeout=cfg.client.timeout)
    except (OSError, MusicServerError) as e:
        log(f"Cannot fetch catalog from {host}:{port}: {e}", "error")
        return 1

    if args.filter:
        songs = search_songs(songs, args.filter)

    if args.json:
        json.dump([song.to_dict() for song in songs], sys.stdout, indent=2, ensure_ascii=False)
        sys.stdout.write("\n")
        return 0

    table = Table(title=f"Songs on {host}:{port}")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Title", style="bold")
    table.add_column("Artist")
    table.add_column("Album")
    table.add_column("Genre")
    table.add_column("Length", justify="right")
    for song in songs:
        table.add_row(
            str(song.id),
            song.title,
            song.artist,
            song.album,
            song.genre,
            format_duration(song.track_length),
        )

    get_console().print(table)
    get_console().print(f"{len(songs)} songs")
    return 0


def run_stream(args: argparse.Namespace) -> int:
    """Stream a song to stdout, or to a temp file for buffered formats."""
    cfg = config.load_config(args.config)
    _client_logging()
    host, port = _resolve_client(cfg, args)

    try:
        song = _find_song(fetch_catalog(host, port, timeout=cfg.client.timeout), args.song_id)
        if song is None:
            log(f"Song {args.song_id} is not in the catalog", "error")
            return 1

        strategy = select_playback_strategy(song.file_path)
        log(f"Streaming {song.title} ({strategy.value})", "info")

        if strategy is PlaybackStrategy.UNSUPPORTED:
            log(f"{song.extension} files cannot be played", "error")
            return 1

        chunks = iter_song_bytes(host, port, song.id, timeout=cfg.client.timeout)
        if strategy is PlaybackStrategy.BUFFERED_EXTERNAL:
            path = spool_to_temp_file(chunks, song.extension)
            log(f"Buffered to {path}; open it with an external player", "info")
            print(path)
            return 0

        out = sys.stdout.buffer
        for chunk in chunks:
            out.write(chunk)
        out.flush()
        return 0

    except BrokenPipeError:
        # Player closed its input
        return 0
    except (OSError, MusicServerError) as e:
        log(f"Streaming song {args.song_id} failed: {e}", "error")
        return 1


def run_download(args: argparse.Namespace) -> int:
    """Save a song from a running server to disk."""
    cfg = config.load_config(args.config)
    _client_logging()
    host, port = _resolve_client(cfg, args)

    try:
        destination = args.output
        if destination is None:
            song = _find_song(fetch_catalog(host, port, timeout=cfg.client.timeout), args.song_id)
            if song is None:
                log(f"Song {args.song_id} is not in the catalog", "error")
                return 1
            destination = default_download_name(song)

        size = download_song(host, port, args.song_id, destination, timeout=cfg.client.timeout)
    except (OSError, MusicServerError) as e:
        log(f"Download of song {args.song_id} failed: {e}", "error")
        return 1

    log(f"Saved {destination} ({size} bytes)", "success")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="music-server",
        description="Music Server - index an audio library and serve it over TCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    # Options shared by every subcommand
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Configuration file (default: ./config.toml or ~/.config/music-server/config.toml)",
    )

    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")

    # Server commands
    serve_parser = subparsers.add_parser("serve", parents=[common], help="Index the library and serve it")
    index_parser = subparsers.add_parser("index", parents=[common], help="Index the library and write the catalog file")
    for sub in (serve_parser, index_parser):
        sub.add_argument("paths", nargs="*", help="Library folders (default: from config)")
        sub.add_argument("--url-list", help="Text file with one remote URL per line")
        sub.add_argument("--no-remote", action="store_true", help="Skip remote sources")
        sub.add_argument("--catalog-file", help="Where to write the JSON catalog")
    serve_parser.add_argument("--host", help="Interface to listen on")
    serve_parser.add_argument("--port", type=int, help="TCP port to listen on")
    serve_parser.add_argument("--max-workers", type=int, help="Connections served at the same time")

    # Client commands
    list_parser = subparsers.add_parser("list", parents=[common], help="List the songs of a running server")
    list_parser.add_argument("--filter", help="Only songs whose title, album, genre, artist or file name match")
    list_parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")

    stream_parser = subparsers.add_parser("stream", parents=[common], help="Write a song's bytes to stdout")
    stream_parser.add_argument("song_id", type=int, help="Song ID")

    download_parser = subparsers.add_parser("download", parents=[common], help="Save a song to a file")
    download_parser.add_argument("song_id", type=int, help="Song ID")
    download_parser.add_argument("-o", "--output", help="Destination file (default: <title><ext>)")

    for sub in (list_parser, stream_parser, download_parser):
        sub.add_argument("--host", help="Server address")
        sub.add_argument("--port", type=int, help="Server port")

    return parser


def run(argv: Optional[list[str]] = None) -> int:
    """Parse arguments and run a subcommand.

    Returns:
        Exit code
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.subcommand == "serve":
        return run_serve(args)
    if args.subcommand == "index":
        return run_serve(args, index_only=True)
    if args.subcommand == "list":
        return run_list(args)
    if args.subcommand == "stream":
        return run_stream(args)
    if args.subcommand == "download":
        return run_download(args)

    parser.print_help()
    return 1


def main() -> None:
    """Main entry point for the music-server command."""
    try:
        sys.exit(run())
    except KeyboardInterrupt:
        logger.debug("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()

"""
Music Server - startup in two phases.

Build: index the library folders and remote URL list into a catalog, then
write the JSON snapshot. Serve: freeze the catalog and answer clients.
"""

from pathlib import Path

from loguru import logger

from music_server.core import config
from music_server.core.output import setup_loguru
from music_server.domain import library
from music_server.domain.library.providers import remote
from music_server.protocol import CatalogServer


def setup_logging(cfg: config.Config) -> None:
    """Configure loguru from the [logging] section."""
    log_file = (
        Path(cfg.logging.log_file)
        if cfg.logging.log_file
        else (config.get_data_dir() / "music-server.log")
    )
    setup_loguru(
        log_file,
        level=cfg.logging.level,
        console_output=cfg.logging.console_output,
        max_file_size_mb=cfg.logging.max_file_size_mb,
        backup_count=cfg.logging.backup_count,
    )


def build_catalog(cfg: config.Config) -> library.Catalog:
    """
    Index the configured sources into a new catalog and freeze it.

    Local folders come first, then the remote URL list, so local songs get
    the lowest IDs.
    """
    catalog = library.Catalog()

    library.index_library(
        catalog,
        cfg.library.library_paths,
        supported_formats=cfg.library.supported_formats,
        include_album_image=cfg.library.include_album_image,
    )

    if cfg.remote.enabled:
        remote.fetch_remote_songs(
            catalog,
            cfg.remote.url_list,
            cfg.remote.staging_dir,
            supported_formats=cfg.library.supported_formats,
            connect_timeout=cfg.remote.connect_timeout,
            read_timeout=cfg.remote.read_timeout,
            include_album_image=cfg.library.include_album_image,
        )

    catalog.freeze()
    logger.info(f"Catalog built: {len(catalog)} songs")
    return catalog


def run_index(cfg: config.Config) -> int:
    """Build the catalog and write the snapshot without serving.

    Returns:
        Exit code (0 for success, 1 if the snapshot could not be written)
    """
    catalog = build_catalog(cfg)
    if not library.save_catalog(catalog, cfg.library.catalog_file):
        return 1
    logger.info(f"Catalog written to {cfg.library.catalog_file}")
    return 0


def run_server(cfg: config.Config) -> int:
    """
    Build the catalog, write the snapshot, then serve until interrupted.

    A failed snapshot write is logged and serving continues.

    Returns:
        Exit code (0 after a clean shutdown, 1 if the port cannot be bound)
    """
    catalog = build_catalog(cfg)
    library.save_catalog(catalog, cfg.library.catalog_file)

    server = CatalogServer(
        catalog,
        host=cfg.server.host,
        port=cfg.server.port,
        max_workers=cfg.server.max_workers,
        max_pending=cfg.server.max_pending,
        client_timeout=cfg.server.client_timeout,
    )

    try:
        server.bind()
    except OSError as e:
        logger.error(f"Cannot listen on {cfg.server.host}:{cfg.server.port}: {e}")
        return 1

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
        server.stop()
    return 0

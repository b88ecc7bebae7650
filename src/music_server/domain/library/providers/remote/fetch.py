"""Remote audio sources: download URLs into a staging folder and index them."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable
from urllib.parse import unquote, urlparse

import requests
from loguru import logger

from ...catalog import Catalog
from ...models import Song
from ...scanner import DEFAULT_SUPPORTED_FORMATS, index_file, is_supported_format
from .exceptions import RemoteFetchError, UnsupportedRemoteFileError

DEFAULT_TIMEOUT_SECONDS = 10.0
DOWNLOAD_CHUNK_SIZE = 64 * 1024
USER_AGENT = "music-server/1.0"


@dataclass
class RemoteFetchResult:
    """Outcome of processing a remote URL list."""

    indexed: list[Song] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)  # URLs with unsupported files
    failed: list[tuple[str, str]] = field(default_factory=list)  # (url, reason)


def read_url_list(list_path: str | Path) -> list[str]:
    """Read one URL per line, ignoring blank lines.

    Raises:
        OSError: If the list cannot be read
    """
    with open(list_path, encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip()]


def filename_from_url(url: str) -> str:
    """Derive a local file name from the last segment of the URL path.

    Example:
        "https://host/share/My%20Song.mp3?dl=1" -> "My Song.mp3"
    """
    path = urlparse(url).path
    segment = unquote(path.rsplit("/", 1)[-1])
    # Decoded segments may still smuggle separators
    return Path(segment.replace("\\", "/")).name


def download_file(
    url: str,
    destination: Path,
    connect_timeout: float = DEFAULT_TIMEOUT_SECONDS,
    read_timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> Path:
    """Download a URL to a local file, replacing any file already there.

    Bytes are written to a ".part" file next to the destination and moved
    into place once the transfer completes.

    Raises:
        requests.RequestException: On connection, timeout or HTTP errors
        OSError: If the file cannot be written
    """
    temp_path = destination.with_name(destination.name + ".part")
    response = requests.get(
        url,
        stream=True,
        timeout=(connect_timeout, read_timeout),
        headers={"User-Agent": USER_AGENT},
    )
    try:
        response.raise_for_status()
        with open(temp_path, "wb") as f:
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                if chunk:
                    f.write(chunk)
        os.replace(temp_path, destination)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise
    finally:
        response.close()

    logger.info(f"Downloaded remote file to: {destination.absolute()}")
    return destination


def fetch_remote_song(
    catalog: Catalog,
    url: str,
    staging_dir: Path,
    supported_formats: Iterable[str] = DEFAULT_SUPPORTED_FORMATS,
    connect_timeout: float = DEFAULT_TIMEOUT_SECONDS,
    read_timeout: float = DEFAULT_TIMEOUT_SECONDS,
    include_album_image: bool = False,
) -> Song:
    """Download one URL into the staging folder and index it.

    Raises:
        UnsupportedRemoteFileError: If the URL does not name a supported file
        RemoteFetchError: If the URL is not an http(s) URL
        requests.RequestException: On network errors
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise RemoteFetchError(f"Not an http(s) URL: {url}")

    file_name = filename_from_url(url)
    if not file_name or not is_supported_format(file_name, supported_formats):
        raise UnsupportedRemoteFileError(url, file_name)

    destination = staging_dir / file_name
    logger.info(f"Downloading remote file: {url}")
    download_file(url, destination, connect_timeout=connect_timeout, read_timeout=read_timeout)
    return index_file(catalog, destination, include_album_image=include_album_image)


def fetch_remote_songs(
    catalog: Catalog,
    url_list: str | Path,
    staging_dir: str | Path,
    supported_formats: Iterable[str] = DEFAULT_SUPPORTED_FORMATS,
    connect_timeout: float = DEFAULT_TIMEOUT_SECONDS,
    read_timeout: float = DEFAULT_TIMEOUT_SECONDS,
    include_album_image: bool = False,
) -> RemoteFetchResult:
    """Download and index every URL in a list file.

    A failure on one URL is logged and recorded, and the remaining URLs
    are still processed. A missing list file means there are no remote
    sources.

    Args:
        catalog: Catalog receiving the songs
        url_list: Text file with one URL per line
        staging_dir: Folder the downloads are written to
        supported_formats: Extensions to accept, with leading dot
        connect_timeout: Seconds to wait for the connection
        read_timeout: Seconds to wait between received bytes
        include_album_image: Extract cover art as well

    Returns:
        RemoteFetchResult with indexed songs, skipped and failed URLs
    """
    result = RemoteFetchResult()
    formats = list(supported_formats)

    list_path = Path(url_list)
    if not list_path.exists():
        logger.info(f"{list_path} not found; skipping remote sources")
        return result
    try:
        urls = read_url_list(list_path)
    except OSError as e:
        logger.error(f"Error reading {list_path}: {e}")
        return result
    logger.info(f"Found {list_path}. Processing {len(urls)} remote URLs...")

    if not urls:
        return result

    staging = Path(staging_dir)
    try:
        staging.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Cannot create staging folder {staging}: {e}")
        result.failed.extend((url, str(e)) for url in urls)
        return result

    for url in urls:
        try:
            song = fetch_remote_song(
                catalog,
                url,
                staging,
                supported_formats=formats,
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                include_album_image=include_album_image,
            )
            result.indexed.append(song)
        except UnsupportedRemoteFileError as e:
            logger.info(f"Skipping unsupported remote file: {e.file_name or url}")
            result.skipped.append(url)
        except (requests.RequestException, RemoteFetchError, OSError, ValueError) as e:
            logger.error(f"Error processing remote URL {url}: {e}")
            result.failed.append((url, str(e)))

    logger.info(
        f"Remote sources: {len(result.indexed)} indexed, "
        f"{len(result.skipped)} skipped, {len(result.failed)} failed"
    )
    return result

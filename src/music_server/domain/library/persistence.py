"""Catalog JSON snapshots for inspection and debugging."""

import json
import os
from pathlib import Path

from loguru import logger

from .catalog import Catalog
from .models import Song


def save_catalog(catalog: Catalog, path: str | Path) -> bool:
    """Write every song in the catalog as a pretty-printed JSON array.

    The snapshot is written to a temporary file first and then moved into
    place, so a reader never sees a half-written file.

    Args:
        catalog: Catalog to dump
        path: Destination JSON file

    Returns:
        True if the snapshot was written, False otherwise
    """
    path = Path(path)
    temp_path = path.with_name(path.name + ".tmp")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(catalog.to_dicts(), f, indent=2, ensure_ascii=False)
            f.write("\n")
        os.replace(temp_path, path)
    except (OSError, TypeError, ValueError) as e:
        logger.error(f"Error saving catalog snapshot to {path}: {e}")
        try:
            temp_path.unlink()
        except OSError:
            pass
        return False

    logger.info(f"Indexed music database saved to {path} ({len(catalog)} songs)")
    return True


def load_catalog_snapshot(path: str | Path) -> list[Song]:
    """Read a snapshot written by save_catalog.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the file is not a JSON array of songs
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"Catalog snapshot {path} is not a JSON array")
    return [Song.from_dict(item) for item in data]

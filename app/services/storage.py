"""
Local filesystem storage for uploaded and processed images
"""
import logging
import os
import re
import uuid
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

SUBFOLDERS = ("original", "processed")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_filename(filename: Optional[str]) -> str:
    name = os.path.basename(filename or "image")
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name[:100] or "image"


class LocalStorage:
    """Stores files under ``<root>/<subfolder>/<unique name>``."""

    def __init__(self, root: str):
        self.root = Path(root).resolve()

    def save(self, content: bytes, filename: Optional[str], subfolder: str) -> str:
        """
        Writes ``content`` and returns its path relative to the storage root.
        """
        if subfolder not in SUBFOLDERS:
            raise ValueError(f"Unknown storage folder: {subfolder}")

        directory = self.root / subfolder
        directory.mkdir(parents=True, exist_ok=True)

        name = f"{uuid.uuid4().hex}_{sanitize_filename(filename)}"
        path = directory / name
        path.write_bytes(content)

        logger.info(f"File saved: {subfolder}/{name} ({len(content)} bytes)")
        return f"{subfolder}/{name}"

    def resolve(self, relative_path: str) -> Path:
        """
        Maps a stored relative path to an absolute one.

        Raises:
            ValueError: the path escapes the storage root
        """
        path = (self.root / relative_path).resolve()
        if path != self.root and self.root not in path.parents:
            raise ValueError(f"Path outside storage root: {relative_path}")
        return path

    def read(self, relative_path: str) -> bytes:
        path = self.resolve(relative_path)
        if not path.is_file():
            raise FileNotFoundError(relative_path)
        return path.read_bytes()

    def delete(self, relative_path: Optional[str]) -> None:
        if not relative_path:
            return
        try:
            path = self.resolve(relative_path)
            path.unlink(missing_ok=True)
        except (ValueError, OSError) as e:
            logger.warning(f"Could not delete {relative_path}: {e}")

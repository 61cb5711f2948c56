"""Durable directory store used for ledger and artifact persistence."""

import logging
import os
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class DirectoryStore(Protocol):
    """A writable directory.

    File handles are opaque to callers; they are only passed back into
    read_all/write_all of the store that produced them.
    """

    @property
    def name(self) -> str: ...

    def get_or_create_subdirectory(self, name: str) -> "DirectoryStore": ...

    def get_or_create_file(self, name: str): ...

    def has_file(self, name: str) -> bool: ...

    def read_all(self, file) -> bytes: ...

    def write_all(self, file, data: bytes) -> None: ...

    def request_write_permission(self) -> bool: ...


def generate_unique_filename(directory: DirectoryStore, base_name: str, extension: str = "") -> str:
    """Generate a unique filename by adding suffix if collision occurs.

    Args:
        directory: Target directory
        base_name: Base filename (without extension)
        extension: File extension (including dot, e.g., '.webm')

    Returns:
        Filename that does not exist in the directory yet
    """
    candidate = f"{base_name}{extension}"
    if not directory.has_file(candidate):
        return candidate

    # Try suffixes: _1, _2, _3, ...
    counter = 1
    while True:
        candidate = f"{base_name}_{counter}{extension}"
        if not directory.has_file(candidate):
            return candidate
        counter += 1


class LocalDirectoryStore:
    """DirectoryStore backed by a local filesystem directory."""

    def __init__(self, root: Path):
        self.root = root

    def __repr__(self) -> str:
        return f"LocalDirectoryStore({str(self.root)!r})"

    @property
    def name(self) -> str:
        return self.root.name

    def get_or_create_subdirectory(self, name: str) -> "LocalDirectoryStore":
        path = self.root / name
        path.mkdir(parents=True, exist_ok=True)
        return LocalDirectoryStore(path)

    def get_or_create_file(self, name: str) -> Path:
        path = self.root / name
        if not path.exists():
            self.root.mkdir(parents=True, exist_ok=True)
            path.touch()
        return path

    def has_file(self, name: str) -> bool:
        return (self.root / name).is_file()

    def read_all(self, file: Path) -> bytes:
        return file.read_bytes()

    def write_all(self, file: Path, data: bytes) -> None:
        """Overwrite the file in full via a temporary sibling."""
        temp_file = file.with_name(file.name + ".tmp")
        try:
            temp_file.write_bytes(data)
            temp_file.replace(file)
        except OSError:
            temp_file.unlink(missing_ok=True)
            raise

    def request_write_permission(self) -> bool:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create output folder {self.root}: {e}")
            return False
        granted = os.access(self.root, os.W_OK)
        if not granted:
            logger.warning(f"Write permission denied for {self.root}")
        return granted

"""Capture device interface and the staged-file capture device."""

import logging
import mimetypes
from pathlib import Path
from typing import Optional, Protocol

from .models.capture import Artifact, Still

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = {".webm", ".mp4", ".mkv", ".mov", ".avi"}
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png"}


class CaptureDevice(Protocol):
    """Video/still source driven by the recording session."""

    def start_session(self, identifier: str) -> bool: ...

    def stop_session(self) -> Optional[Artifact]: ...

    def capture_still(self) -> Optional[Still]: ...


def _fingerprint(directory: Path, extensions: set[str]) -> dict[str, int]:
    return {
        path.name: path.stat().st_mtime_ns
        for path in directory.iterdir()
        if path.is_file() and path.suffix.lower() in extensions
    }


class StagedFileCapture:
    """Capture device fed by an external recorder writing into a staging folder.

    start_session snapshots the folder; stop_session hands over the newest
    video that appeared (or changed) since then, and capture_still hands
    over the newest image. Handed-over files are removed from staging.
    """

    def __init__(self, staging_dir: Path):
        self.staging_dir = staging_dir
        self.identifier: Optional[str] = None
        self._baseline: dict[str, int] = {}

    @property
    def active(self) -> bool:
        return self.identifier is not None

    def start_session(self, identifier: str) -> bool:
        if not self.staging_dir.is_dir():
            logger.error(f"Staging folder does not exist: {self.staging_dir}")
            return False
        self._baseline = _fingerprint(self.staging_dir, VIDEO_EXTENSIONS)
        self.identifier = identifier
        logger.debug(f"Watching {self.staging_dir} for recording of {identifier}")
        return True

    def _take(self, path: Path) -> bytes:
        data = path.read_bytes()
        path.unlink()
        return data

    def stop_session(self) -> Optional[Artifact]:
        if not self.active:
            return None
        identifier = self.identifier
        self.identifier = None

        try:
            current = _fingerprint(self.staging_dir, VIDEO_EXTENSIONS)
        except OSError as e:
            logger.error(f"Cannot read staging folder {self.staging_dir}: {e}")
            return None

        fresh = [
            name for name, mtime in current.items()
            if self._baseline.get(name) != mtime
        ]
        self._baseline = {}
        if not fresh:
            logger.warning(f"No staged recording found for {identifier}")
            return None

        newest = max(fresh, key=lambda name: current[name])
        path = self.staging_dir / newest
        try:
            data = self._take(path)
        except OSError as e:
            logger.error(f"Failed to take staged recording {path}: {e}")
            return None
        return Artifact(data=data, extension=path.suffix.lower().lstrip("."))

    def capture_still(self) -> Optional[Still]:
        try:
            images = [
                path for path in self.staging_dir.iterdir()
                if path.is_file() and path.suffix.lower() in IMAGE_EXTENSIONS
            ]
        except OSError as e:
            logger.error(f"Cannot read staging folder {self.staging_dir}: {e}")
            return None
        if not images:
            return None

        newest = max(images, key=lambda path: path.stat().st_mtime_ns)
        media_type = mimetypes.guess_type(newest.name)[0] or "image/jpeg"
        try:
            data = self._take(newest)
        except OSError as e:
            logger.error(f"Failed to take staged still {newest}: {e}")
            return None
        return Still(data=data, media_type=media_type)

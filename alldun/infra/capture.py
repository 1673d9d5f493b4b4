from __future__ import annotations

import logging
from pathlib import Path

from alldun.domain.entities import CaptureSession
from alldun.domain.enums import CaptureSource
from alldun.domain.errors import CaptureUnavailable
from alldun.domain.ports import CaptureCallback

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".heic", ".webp"}


class DirectoryImageCapture:
    """
    Headless capture: the photo library is a directory and the newest image in
    it is the user's pick. There is no camera, so camera requests fall back to
    the library.
    """

    def __init__(self, library_dir: str | Path | None, *, camera_available: bool = False) -> None:
        self.library_dir = Path(library_dir) if library_dir else None
        self.camera_available = camera_available

    def present(self, session: CaptureSession, source: CaptureSource, on_result: CaptureCallback) -> None:
        if source == CaptureSource.CAMERA and not self.camera_available:
            logger.info("Camera unavailable; falling back to the photo library (session %s)", session.id)
            source = CaptureSource.LIBRARY

        if self.library_dir is None or not self.library_dir.is_dir():
            raise CaptureUnavailable(f"Photo library {self.library_dir} is not accessible.")

        try:
            image = self._newest_image()
        except OSError as exc:
            raise CaptureUnavailable(f"Photo library {self.library_dir} cannot be read: {exc}") from exc
        if image is None:
            logger.info("Photo library %s is empty; capture cancelled", self.library_dir)
            on_result(session.id, None)
            return
        on_result(session.id, str(image))

    def _newest_image(self) -> Path | None:
        images = [
            p for p in self.library_dir.iterdir()
            if p.is_file() and p.suffix.lower() in IMAGE_SUFFIXES
        ]
        if not images:
            return None
        return max(images, key=lambda p: (p.stat().st_mtime, p.name))

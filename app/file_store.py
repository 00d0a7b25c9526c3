"""
Local file storage for uploaded model files and thumbnails.

Files live flat under ``<root>/uploads``. Records point at them with a
reference such as ``/uploads/1700000000000-chair.glb``; the reference is
resolved against ``root``.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Dict, List, Optional, Union

import structlog

from app.errors import ErrorKind

logger = structlog.get_logger()

UPLOADS_DIRNAME = "uploads"
UPLOADS_PREFIX = f"/{UPLOADS_DIRNAME}/"


class FileStore:
    """Handles saving and removing files in the uploads directory."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.uploads_dir = self.root / UPLOADS_DIRNAME

    def resolve(self, reference: str) -> Path:
        """Map a stored-file reference to a filesystem path under root."""
        return self.root / reference.lstrip("/\\")

    def _is_inside_uploads(self, path: Path) -> bool:
        try:
            path.resolve().relative_to(self.uploads_dir.resolve())
        except ValueError:
            return False
        return True

    def remove(self, reference: Optional[str]) -> None:
        """
        Best-effort delete of the file behind ``reference``.

        - Empty reference: nothing to do.
        - File already gone: nothing to do.
        - Reference pointing outside the uploads directory: skipped.
        - Any OS error: logged, never raised.
        """
        if not reference:
            return

        path = self.resolve(reference)
        if not self._is_inside_uploads(path):
            logger.warning("file_remove_skipped", reference=reference, reason="outside_uploads")
            return

        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.error(
                "file_remove_failed",
                kind=ErrorKind.FILE_IO.value,
                reference=reference,
                path=str(path),
                error=str(e),
            )
            return

        logger.info("file_removed", reference=reference, path=str(path))

    def save_upload(self, filename: Optional[str], content: bytes) -> Dict[str, Union[str, int]]:
        """
        Store an uploaded payload under a timestamp-prefixed name.

        Returns the reference (as url / pathname / filePath) and the byte size.
        """
        self.uploads_dir.mkdir(parents=True, exist_ok=True)

        # Only keep the last path component of whatever name the client sent
        original = Path((filename or "").replace("\\", "/")).name or "upload"
        stored_name = f"{int(time.time() * 1000)}-{original}"

        target = self.uploads_dir / stored_name
        with open(target, "wb") as f:
            f.write(content)

        reference = f"{UPLOADS_PREFIX}{stored_name}"
        logger.info("file_uploaded", reference=reference, size=len(content))
        return {
            "url": reference,
            "pathname": reference,
            "filePath": reference,
            "size": len(content),
        }

    def list_references(self) -> List[str]:
        """References of every regular file currently in the uploads directory."""
        if not self.uploads_dir.exists():
            return []
        return sorted(
            f"{UPLOADS_PREFIX}{p.name}" for p in self.uploads_dir.iterdir() if p.is_file()
        )

    def age_seconds(self, reference: str, now: Optional[float] = None) -> float:
        """Seconds since the referenced file was last modified."""
        now = time.time() if now is None else now
        return now - self.resolve(reference).stat().st_mtime

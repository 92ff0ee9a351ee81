"""
Local storage for fetched profile images.

Files live in a single fixed upload directory and are named after the caller,
so each caller has exactly one slot: a new upload overwrites the old one and
concurrent uploads from the same caller resolve to last-writer-wins. Bytes are
written to a uniquely named temporary file first and renamed into place only
once complete, so a half-written image is never visible under the final name.
"""

import logging
import os
import re
import uuid
from pathlib import Path
from typing import BinaryIO, Optional, Tuple

logger = logging.getLogger(__name__)

UPLOAD_DIR = Path("frontend/dist/frontend/assets/public/images/uploads")
PUBLIC_UPLOAD_PREFIX = "/assets/public/images/uploads"

_CALLER_ID_RE = re.compile(r"[A-Za-z0-9_-]{1,64}")
_EXTENSION_RE = re.compile(r"[a-z]{3,4}")


def is_safe_caller_id(caller_id: Optional[str]) -> bool:
    """True if *caller_id* can be used as a file stem without escaping the upload dir."""
    return caller_id is not None and _CALLER_ID_RE.fullmatch(caller_id) is not None


class LocalImageStore:
    """Filesystem collaborator writing one image per caller."""

    def __init__(self, upload_dir: Path = UPLOAD_DIR, public_prefix: str = PUBLIC_UPLOAD_PREFIX):
        self.upload_dir = Path(upload_dir)
        self.public_prefix = public_prefix.rstrip("/")

    def _filename(self, caller_id: str, extension: str) -> str:
        if not is_safe_caller_id(caller_id):
            raise ValueError("caller id is not usable as a file name")
        if not _EXTENSION_RE.fullmatch(extension):
            raise ValueError("unsupported image extension")
        return f"{caller_id}.{extension}"

    def destination(self, caller_id: str, extension: str) -> Path:
        return self.upload_dir / self._filename(caller_id, extension)

    def public_path(self, caller_id: str, extension: str) -> str:
        return f"{self.public_prefix}/{self._filename(caller_id, extension)}"

    def open_temp(self, caller_id: str, extension: str) -> Tuple[Path, BinaryIO]:
        """Create and open a fresh temporary file next to the destination."""
        final = self.destination(caller_id, extension)
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = final.with_name(f".{final.name}.{uuid.uuid4().hex}.part")
        return tmp_path, open(tmp_path, "xb")

    def commit(self, tmp_path: Path, caller_id: str, extension: str) -> Path:
        """Atomically move a completed temporary file to its final name."""
        final = self.destination(caller_id, extension)
        os.replace(tmp_path, final)
        logger.debug("Stored profile image", extra={"caller_id": caller_id, "bytes": final.stat().st_size})
        return final

    def discard(self, tmp_path: Path) -> None:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Failed to remove temporary image file: %s", exc, extra={"file": tmp_path.name})

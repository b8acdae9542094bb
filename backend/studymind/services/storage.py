"""
Materials bucket.

Uploaded files are kept outside the database and referenced by their
`storage_path`. The bucket is a directory on disk; keys are relative paths
like `<user_id>/<uuid>_<file_name>`.
"""

import logging
import os
import re
from pathlib import Path
from typing import Optional

from studymind.config import MATERIALS_STORAGE_DIR

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class StoragePathError(ValueError):
    """Raised for keys that would escape the bucket root."""
    pass


def safe_file_name(file_name: str) -> str:
    name = _UNSAFE_CHARS.sub("_", os.path.basename(file_name or "")).strip("._")
    return name or "upload"


class MaterialStorage:
    def __init__(self, root: str = MATERIALS_STORAGE_DIR):
        self.root = Path(root).resolve()

    def _resolve(self, storage_path: str) -> Path:
        target = (self.root / storage_path).resolve()
        if target != self.root and self.root not in target.parents:
            raise StoragePathError(f"Storage path escapes bucket: {storage_path}")
        return target

    def upload(self, storage_path: str, data: bytes) -> None:
        target = self._resolve(storage_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.info(f"Stored {len(data)} bytes at {storage_path}")

    def download(self, storage_path: str) -> Optional[bytes]:
        """Return the file bytes, or None when the object does not exist or cannot be read."""
        try:
            target = self._resolve(storage_path)
            return target.read_bytes()
        except (OSError, StoragePathError) as e:
            logger.warning(f"Could not download {storage_path}: {e}")
            return None


_storage: Optional[MaterialStorage] = None


def get_storage() -> MaterialStorage:
    """FastAPI dependency returning the shared bucket."""
    global _storage
    if _storage is None:
        _storage = MaterialStorage()
    return _storage

"""
Local filesystem storage provider for development.
Each bucket is a directory under ``base_dir``.
"""
from pathlib import Path
from typing import BinaryIO, List, Optional, Union
from urllib.parse import quote

from ..config import settings
from ..errors import ObjectNotFound, StorageError
from .provider import StorageProvider


class LocalStorageProvider(StorageProvider):
    """Local filesystem storage provider for development."""

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.local_storage_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _bucket_dir(self, bucket: str) -> Path:
        bucket_dir = (self.base_dir / bucket).resolve()
        if bucket_dir.parent != self.base_dir:
            raise StorageError("Invalid storage bucket")
        return bucket_dir

    def _get_path(self, bucket: str, key: str) -> Path:
        """Filesystem path for (bucket, key); traversal outside the bucket is rejected."""
        clean_key = key.lstrip("/").replace("\\", "/")
        bucket_dir = self._bucket_dir(bucket)
        path = (bucket_dir / clean_key).resolve()
        if bucket_dir != path and bucket_dir not in path.parents:
            raise StorageError("Invalid storage path")
        return path

    def upload(
        self,
        bucket: str,
        key: str,
        data: Union[bytes, BinaryIO],
        content_type: str = "application/octet-stream",
        upsert: bool = False,
    ) -> None:
        path = self._get_path(bucket, key)
        if path.exists() and not upsert:
            raise StorageError("The resource already exists")
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(path, "wb") as f:
                f.write(data.read() if hasattr(data, "read") else data)
        except OSError as e:
            raise StorageError(str(e))

    def get_public_url(self, bucket: str, key: str) -> str:
        return f"{settings.public_base_url}/files/local/{quote(bucket)}/{quote(key.lstrip('/'))}"

    def get_download_url(self, bucket: str, key: str, expires_s: int) -> Optional[str]:
        if self.exists(bucket, key):
            return self.get_public_url(bucket, key)
        return None

    def exists(self, bucket: str, key: str) -> bool:
        return self._get_path(bucket, key).is_file()

    def list(self, bucket: str, prefix: str = "") -> List[dict]:
        folder = self._get_path(bucket, prefix) if prefix else self._bucket_dir(bucket)
        if not folder.is_dir():
            return []
        out = []
        for p in sorted(folder.iterdir()):
            out.append({
                "name": p.name,
                "is_folder": p.is_dir(),
                "size": p.stat().st_size if p.is_file() else None,
            })
        return out

    def delete(self, bucket: str, key: str) -> None:
        path = self._get_path(bucket, key)
        if not path.is_file():
            raise ObjectNotFound("Object not found")
        try:
            path.unlink()
        except FileNotFoundError:
            raise ObjectNotFound("Object not found")
        except OSError as e:
            raise StorageError(str(e))

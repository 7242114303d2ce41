"""Bucket-style object storage backed by the local data directory."""
import asyncio
import logging
import os

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


def _write_file(full_path: str, data: bytes) -> None:
    os.makedirs(os.path.dirname(full_path), exist_ok=True)
    with open(full_path, "wb") as f:
        f.write(data)


def _remove_file(full_path: str) -> bool:
    try:
        os.remove(full_path)
    except FileNotFoundError:
        return False
    return True


class ObjectStorage:
    """Stores objects under ``{root}/{bucket}/{path}`` and resolves public URLs for them."""

    def __init__(self, root_dir: str, bucket: str, public_base_url: str):
        self.root_dir = root_dir
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, path: str) -> str:
        bucket_dir = os.path.abspath(os.path.join(self.root_dir, self.bucket))
        full_path = os.path.abspath(os.path.join(bucket_dir, path))
        if os.path.commonpath([bucket_dir, full_path]) != bucket_dir or full_path == bucket_dir:
            raise StorageError(f"Invalid object path: {path}")
        return full_path

    async def upload(self, path: str, data: bytes, content_type: str = "image/jpeg", upsert: bool = False) -> str:
        full_path = self._resolve(path)
        if os.path.exists(full_path) and not upsert:
            raise StorageError(f"The resource already exists: {path}")
        try:
            await asyncio.to_thread(_write_file, full_path, data)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e
        logger.info("Stored %s (%d bytes, %s)", path, len(data), content_type)
        return path

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{path}"

    def exists(self, path: str) -> bool:
        return os.path.exists(self._resolve(path))

    async def remove(self, paths: list[str]) -> list[str]:
        """Delete objects, returning the paths that were actually removed."""
        removed = []
        for path in paths:
            full_path = self._resolve(path)
            try:
                if not await asyncio.to_thread(_remove_file, full_path):
                    continue
            except OSError as e:
                raise StorageError(f"Failed to remove {path}: {e}") from e
            removed.append(path)
        return removed

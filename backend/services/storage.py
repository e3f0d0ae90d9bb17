"""
Object storage adapter for document bytes and production output.

Two backends share one interface and are selected by settings.STORAGE_BACKEND:
Supabase Storage (default) and a local directory (development, tests).
"""
import logging
import os
import re
from pathlib import Path
from typing import Optional

from supabase import create_client, Client

from config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a storage read or write fails."""
    pass


class StorageBackend:
    """Interface implemented by every storage backend."""

    def upload(
        self,
        file_bytes: bytes,
        file_path: str,
        content_type: str = "application/octet-stream",
        upsert: bool = False,
    ) -> str:
        raise NotImplementedError

    def download(self, file_path: str) -> bytes:
        raise NotImplementedError

    def get_signed_url(self, file_path: str, expires_in: int = 3600) -> str:
        raise NotImplementedError

    def delete(self, file_path: str) -> None:
        raise NotImplementedError


class SupabaseStorage(StorageBackend):
    def __init__(self, url: str, service_key: str, bucket: str):
        self.url = url
        self.service_key = service_key
        self.bucket = bucket
        self._client: Client | None = None
        self._bucket_checked = False

    def _get_client(self) -> Client:
        """Lazy-initialize the Supabase client."""
        if self._client is None:
            if not self.url or not self.service_key:
                raise StorageError(
                    "SUPABASE_URL and SUPABASE_SERVICE_KEY must be set in .env"
                )
            self._client = create_client(self.url, self.service_key)
            logger.info("Supabase client initialized")
        return self._client

    def _ensure_bucket(self, client: Client) -> None:
        if self._bucket_checked:
            return
        buckets = client.storage.list_buckets() or []
        if not any(getattr(b, "name", None) == self.bucket for b in buckets):
            client.storage.create_bucket(
                self.bucket,
                options={"public": False, "file_size_limit": settings.MAX_FILE_SIZE_MB * 1024 * 1024},
            )
            logger.info(f"Created storage bucket '{self.bucket}'")
        self._bucket_checked = True

    def upload(self, file_bytes, file_path, content_type="application/octet-stream", upsert=False):
        try:
            client = self._get_client()
            self._ensure_bucket(client)
            client.storage.from_(self.bucket).upload(
                path=file_path,
                file=file_bytes,
                file_options={"content-type": content_type, "upsert": "true" if upsert else "false"},
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Upload of {file_path} failed: {e}") from e

        logger.info(f"Uploaded {file_path} to bucket '{self.bucket}'")
        return file_path

    def download(self, file_path):
        try:
            data = self._get_client().storage.from_(self.bucket).download(file_path)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Download of {file_path} failed: {e}") from e
        if data is None:
            raise StorageError(f"No data returned for {file_path}")
        return bytes(data)

    def get_signed_url(self, file_path, expires_in=3600):
        try:
            res = self._get_client().storage.from_(self.bucket).create_signed_url(file_path, expires_in)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Could not sign {file_path}: {e}") from e
        return res.get("signedURL") or res.get("signedUrl") or ""

    def delete(self, file_path):
        try:
            self._get_client().storage.from_(self.bucket).remove([file_path])
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Delete of {file_path} failed: {e}") from e
        logger.info(f"Deleted {file_path} from bucket '{self.bucket}'")


class LocalStorage(StorageBackend):
    """Stores objects as files under a root directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _resolve(self, file_path: str) -> Path:
        target = (self.root / file_path).resolve()
        if self.root.resolve() not in target.parents:
            raise StorageError(f"Path escapes storage root: {file_path}")
        return target

    def upload(self, file_bytes, file_path, content_type="application/octet-stream", upsert=False):
        target = self._resolve(file_path)
        if target.exists() and not upsert:
            raise StorageError(f"Object already exists: {file_path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(file_bytes)
        except OSError as e:
            raise StorageError(f"Upload of {file_path} failed: {e}") from e
        logger.debug(f"Stored {file_path} ({len(file_bytes)} bytes)")
        return file_path

    def download(self, file_path):
        target = self._resolve(file_path)
        try:
            return target.read_bytes()
        except OSError as e:
            raise StorageError(f"Download of {file_path} failed: {e}") from e

    def get_signed_url(self, file_path, expires_in=3600):
        return self._resolve(file_path).as_uri()

    def delete(self, file_path):
        target = self._resolve(file_path)
        try:
            target.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Delete of {file_path} failed: {e}") from e


_storage: Optional[StorageBackend] = None


def _build_storage() -> StorageBackend:
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "local":
        return LocalStorage(settings.LOCAL_STORAGE_DIR)
    if backend == "supabase":
        return SupabaseStorage(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY, settings.SUPABASE_BUCKET)
    raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")


def get_storage() -> StorageBackend:
    """Return the configured storage backend (built on first use)."""
    global _storage
    if _storage is None:
        _storage = _build_storage()
        logger.info(f"Storage backend: {type(_storage).__name__}")
    return _storage


def set_storage(backend: Optional[StorageBackend]) -> None:
    """Replace the active backend (None resets to the configured one)."""
    global _storage
    _storage = backend


def sanitize_filename(filename: Optional[str], fallback: str = "upload") -> str:
    """Strip path components and keep only alphanumerics, dot, hyphen and underscore."""
    safe_name = os.path.basename(filename or "")
    safe_name = re.sub(r"[^\w.\-]", "_", safe_name)
    if not safe_name or safe_name.startswith("."):
        safe_name = fallback + (os.path.splitext(safe_name)[1] if safe_name else "")
    return safe_name


def document_storage_path(matter_id: Optional[str], document_id: str, filename: str) -> str:
    """Object key for a document's original bytes."""
    return f"{matter_id or 'unassigned'}/{document_id}/{filename}"

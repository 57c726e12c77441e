# app/services/storage.py
"""
Object storage for uploaded documents.
Supabase Storage REST API in production, local disk for development and tests.
"""
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import List

import aiofiles
import httpx

from app.core.config import settings
from app.core.exceptions import StorageError

logger = logging.getLogger(__name__)


def sanitize_file_name(file_name: str) -> str:
    """Replace whitespace with underscores and drop anything outside [a-zA-Z0-9._-]"""
    name = re.sub(r"\s+", "_", file_name)
    name = re.sub(r"[^a-zA-Z0-9._-]", "", name)
    name = name.lstrip(".")
    return name or "file"


def build_storage_path(document_id, file_name: str) -> str:
    return f"uploads/{document_id}/{sanitize_file_name(file_name)}"


class ObjectStorage:
    """Minimal object store interface used by the upload and deletion flows"""

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        raise NotImplementedError

    async def remove(self, paths: List[str]) -> None:
        raise NotImplementedError


class LocalObjectStorage(ObjectStorage):

    def __init__(self, root: str, bucket: str):
        self.root = (Path(root) / bucket).resolve()

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root not in target.parents:
            raise StorageError(f"Invalid storage path: {path}")
        return target

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        target = self._resolve(path)
        if target.exists():
            raise StorageError("The resource already exists", status_code=409)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiofiles.open(target, "wb") as f:
                await f.write(data)
        except OSError as e:
            raise StorageError(str(e)) from e
        logger.info(f"✅ File saved to disk: {target}")

    async def remove(self, paths: List[str]) -> None:
        for path in paths:
            target = self._resolve(path)
            try:
                target.unlink(missing_ok=True)
            except OSError as e:
                raise StorageError(str(e)) from e
            try:
                target.parent.rmdir()
            except OSError:
                # directory not empty or already gone
                pass


class SupabaseObjectStorage(ObjectStorage):

    def __init__(self, base_url: str, service_key: str, bucket: str, timeout: float = 60.0):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{path}"
        headers = {
            **self.headers,
            "Content-Type": content_type or "application/octet-stream",
            "x-upsert": "false",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, content=data, headers=headers)
        except httpx.HTTPError as e:
            raise StorageError(f"Storage request failed: {e}") from e

        if response.status_code >= 400:
            raise StorageError(_error_message(response), status_code=response.status_code)

    async def remove(self, paths: List[str]) -> None:
        url = f"{self.base_url}/storage/v1/object/{self.bucket}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    "DELETE", url, json={"prefixes": paths}, headers=self.headers
                )
        except httpx.HTTPError as e:
            raise StorageError(f"Storage request failed: {e}") from e

        if response.status_code >= 400:
            raise StorageError(_error_message(response), status_code=response.status_code)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    return body.get("message") or body.get("error") or f"HTTP {response.status_code}"


@lru_cache()
def get_object_storage() -> ObjectStorage:
    """Dependency providing the configured storage backend"""
    if settings.STORAGE_BACKEND == "local":
        return LocalObjectStorage(settings.LOCAL_STORAGE_DIR, settings.STORAGE_BUCKET)
    return SupabaseObjectStorage(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_ROLE_KEY,
        settings.STORAGE_BUCKET,
    )

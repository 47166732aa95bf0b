from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import cloudinary
import cloudinary.uploader
from fastapi import UploadFile

from .config import settings

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

cloudinary.config(
    cloud_name=settings.cloudinary_cloud_name or None,
    api_key=settings.cloudinary_api_key or None,
    api_secret=settings.cloudinary_api_secret or None,
    secure=True,
)


@contextmanager
def claimed_file(path: Path) -> Iterator[Path]:
    """Hold a local temp file for the duration of one upload attempt."""
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)


def _staging_path(filename: str | None) -> Path:
    staging_dir = Path(settings.upload_tmp_dir)
    staging_dir.mkdir(parents=True, exist_ok=True)
    suffix = Path(filename or "").suffix[:16]
    return staging_dir / f"{uuid.uuid4().hex}{suffix}"


async def _send_to_gateway(path: Path) -> dict[str, Any] | None:
    try:
        response = await asyncio.to_thread(
            cloudinary.uploader.upload,
            str(path),
            resource_type="auto",
        )
    except Exception:
        logger.exception("Media upload failed for %s", path.name)
        return None

    if not isinstance(response, dict) or not response.get("url"):
        logger.warning("Media gateway returned no url for %s", path.name)
        return None
    return response


async def upload_on_cloudinary(local_path: str | Path | None) -> dict[str, Any] | None:
    """Upload a local file and return the gateway response, or None on failure.

    The local file is removed whatever the outcome.
    """
    if not local_path:
        return None
    with claimed_file(Path(local_path)) as path:
        return await _send_to_gateway(path)


async def _write_upload(upload: UploadFile, path: Path) -> None:
    handle = await asyncio.to_thread(path.open, "wb")
    try:
        while chunk := await upload.read(CHUNK_SIZE):
            await asyncio.to_thread(handle.write, chunk)
    finally:
        await asyncio.to_thread(handle.close)


async def upload_form_file(upload: UploadFile | None) -> str | None:
    """Stage a multipart file on disk and push it to the gateway; return its URL."""
    if upload is None or not upload.filename:
        return None
    with claimed_file(_staging_path(upload.filename)) as path:
        await _write_upload(upload, path)
        response = await upload_on_cloudinary(path)
    if response is None:
        return None
    return str(response.get("secure_url") or response["url"])

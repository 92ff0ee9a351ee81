"""Streams a trusted image URL into the caller's upload slot."""

import asyncio
import logging

import httpx

from profile_images.allowlist import IMAGE_EXTENSIONS
from profile_images.errors import FetchFailed, WriteFailed
from profile_images.storage import LocalImageStore

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "jpg"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024
CHUNK_SIZE = 64 * 1024


def guess_extension(raw_url: str) -> str:
    """Pick the stored file extension from the trailing extension of the submitted URL.

    Only the whitelisted image extensions are accepted; anything else is stored as jpg.
    """
    candidate = raw_url.rsplit(".", 1)[-1].lower() if isinstance(raw_url, str) else ""
    return candidate if candidate in IMAGE_EXTENSIONS else DEFAULT_EXTENSION


async def download_image(
    url: str,
    client: httpx.AsyncClient,
    store: LocalImageStore,
    caller_id: str,
    extension: str,
    max_bytes: int = DEFAULT_MAX_BYTES,
    correlation_id: str = "",
) -> str:
    """Fetch *url* once and store the body as the caller's profile image.

    Args:
        url: Canonical URL built from an allowlist template. Never raw input.
        client: Shared async HTTP client.
        store: Upload directory the image is written into.
        caller_id: Identity that names the destination file.
        extension: Whitelisted extension for the destination file.
        max_bytes: Largest body accepted.
        correlation_id: For log tracing.

    Returns:
        Public path of the stored image.

    Raises:
        FetchFailed: Network error, non-2xx status, empty or oversized body.
        WriteFailed: The image could not be written to the upload directory.
    """
    try:
        tmp_path, fh = await asyncio.to_thread(store.open_temp, caller_id, extension)
    except (OSError, ValueError) as exc:
        logger.error("Cannot open upload file: %s", exc, extra={"correlation_id": correlation_id})
        raise WriteFailed() from exc

    committed = False
    try:
        try:
            with fh:
                size = await _stream_to_file(url, client, fh, max_bytes)
            await asyncio.to_thread(store.commit, tmp_path, caller_id, extension)
        except OSError as exc:
            logger.error("Cannot store image: %s", exc, extra={"correlation_id": correlation_id})
            raise WriteFailed() from exc
        committed = True
    finally:
        if not committed:
            await asyncio.to_thread(store.discard, tmp_path)

    logger.info("Image downloaded successfully", extra={
        "url": url[:100],
        "size_bytes": size,
        "correlation_id": correlation_id,
    })
    return store.public_path(caller_id, extension)


async def _stream_to_file(url: str, client: httpx.AsyncClient, fh, max_bytes: int) -> int:
    total = 0
    try:
        async with client.stream("GET", url) as response:
            if not response.is_success:
                raise FetchFailed(f"Image host answered with HTTP {response.status_code}")

            async for chunk in response.aiter_bytes(CHUNK_SIZE):
                if not chunk:
                    continue
                total += len(chunk)
                if total > max_bytes:
                    raise FetchFailed("Image exceeds the maximum allowed size")
                try:
                    await asyncio.to_thread(fh.write, chunk)
                except OSError as exc:
                    raise WriteFailed() from exc
    except httpx.HTTPError as exc:
        raise FetchFailed(f"Could not retrieve image: {type(exc).__name__}") from exc

    if total == 0:
        raise FetchFailed("Image host returned an empty body")
    return total

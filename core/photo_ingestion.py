"""
Photo ingestion: turns listing photo references into local files.

Supported references:
- existing local file paths (used as-is, never deleted)
- ``data:image/<subtype>;base64,...`` URLs
- plain ``http(s)://`` image URLs
- object storage URLs (``.../storage/v1/object/public/<bucket>/<path>``)
- bare object paths, resolved against the default bucket

Every network fetch runs under its own timeout, and fetches run with bounded
parallelism. A failed photo is logged and skipped without cancelling the
others.
"""

import asyncio
import base64
import binascii
import logging
import re
import shutil
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Sequence
from urllib.parse import urlparse

import aiohttp

from core.errors import PhotoFetchError
from core.storage_client import StorageClient, parse_storage_url

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r"^data:image/([\w.+-]+);base64,(.+)$", re.DOTALL)

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "heic", "heif", "bmp", "svg", "avif", "tif", "tiff"}

SUBTYPE_EXTENSIONS = {
    "jpeg": "jpg",
    "pjpeg": "jpg",
    "svg+xml": "svg",
    "x-icon": "ico",
    "vnd.microsoft.icon": "ico",
}

CHUNK_SIZE = 64 * 1024


def extension_for_subtype(subtype: str) -> str:
    subtype = (subtype or "").strip().lower()
    return SUBTYPE_EXTENSIONS.get(subtype, subtype or "jpg")


def extension_for(source: str, content_type: str = "") -> str:
    """Prefer a recognizable extension in the source path, else the MIME subtype."""
    suffix = Path(urlparse(source).path).suffix.lower().lstrip(".")
    if suffix in IMAGE_EXTENSIONS:
        return "jpg" if suffix == "jpeg" else suffix
    mime = content_type.split(";")[0].strip().lower()
    if mime.startswith("image/"):
        return extension_for_subtype(mime[len("image/"):])
    return "jpg"


class ScratchSpace:
    """Per-job temp directory for downloaded photos."""

    def __init__(self, root: Optional[str] = None, prefix: str = "listing_"):
        if root:
            Path(root).mkdir(parents=True, exist_ok=True)
        self.path = Path(tempfile.mkdtemp(prefix=prefix, dir=root))

    def new_file(self, extension: str) -> Path:
        return self.path / f"photo_{uuid.uuid4().hex[:12]}.{extension}"

    def owns(self, path: Path) -> bool:
        try:
            Path(path).resolve().relative_to(self.path.resolve())
        except ValueError:
            return False
        return True

    def cleanup(self):
        shutil.rmtree(self.path, ignore_errors=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cleanup()


@dataclass
class ResolvedPhoto:
    source: str
    path: Path
    scratch: bool = True

    @property
    def size(self) -> int:
        return self.path.stat().st_size


def photo_source(ref: Any) -> Optional[str]:
    """Accept plain strings or photo objects carrying preview/imageUrl/url."""
    if isinstance(ref, str):
        return ref.strip() or None
    if isinstance(ref, dict):
        for key in ("preview", "imageUrl", "image_url", "url", "path"):
            value = ref.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def _describe(source: str) -> str:
    return source[:48] + "..." if len(source) > 48 else source


class PhotoIngestion:
    """Resolves photo references into files inside a ScratchSpace."""

    def __init__(
        self,
        scratch: ScratchSpace,
        storage: Optional[StorageClient] = None,
        default_bucket: str = "listing-photos",
        http_timeout: float = 45.0,
        storage_timeout: float = 60.0,
        max_parallel: int = 3,
    ):
        self.scratch = scratch
        self.storage = storage
        self.default_bucket = default_bucket
        self.http_timeout = http_timeout
        self.storage_timeout = storage_timeout
        self.max_parallel = max(1, int(max_parallel))

    async def resolve_photo(self, ref: Any) -> ResolvedPhoto:
        """Resolve one reference. Raises PhotoFetchError on any failure."""
        source = photo_source(ref)
        if not source:
            raise PhotoFetchError(f"Unsupported photo reference: {ref!r}")

        if source.startswith("data:"):
            return self._write_data_url(source)

        storage_target = parse_storage_url(source)
        if storage_target and self.storage is not None:
            return await self._download_storage(source, *storage_target)

        scheme = urlparse(source).scheme.lower()
        if scheme in ("http", "https"):
            return await self._with_timeout(self._download_http(source), self.http_timeout, source)

        local = Path(source[len("file://"):] if source.startswith("file://") else source)
        if local.is_file():
            return ResolvedPhoto(source=source, path=local, scratch=False)

        if self.storage is not None:
            return await self._download_storage(source, self.default_bucket, source.lstrip("/"))

        raise PhotoFetchError(f"Photo not found: {_describe(source)}")

    async def resolve_all(self, refs: Sequence[Any]) -> List[ResolvedPhoto]:
        """Resolve refs in input order, skipping the ones that fail."""
        semaphore = asyncio.Semaphore(self.max_parallel)

        async def bounded(ref):
            async with semaphore:
                return await self.resolve_photo(ref)

        results = await asyncio.gather(*(bounded(ref) for ref in refs), return_exceptions=True)

        resolved = []
        for index, (ref, result) in enumerate(zip(refs, results), start=1):
            if isinstance(result, ResolvedPhoto):
                resolved.append(result)
            elif isinstance(result, Exception):
                logger.warning(f"Skipping photo {index}: {result}")
            else:
                raise result
        logger.info(f"Resolved {len(resolved)}/{len(refs)} photos")
        return resolved

    async def _with_timeout(self, coro, timeout: float, source: str) -> ResolvedPhoto:
        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise PhotoFetchError(f"Timed out after {timeout:g}s fetching {_describe(source)}") from e

    def _write_data_url(self, source: str) -> ResolvedPhoto:
        match = DATA_URL_PATTERN.match(source)
        if not match:
            raise PhotoFetchError("Malformed data URL")
        subtype, encoded = match.groups()
        try:
            data = base64.b64decode(encoded, validate=False)
        except (binascii.Error, ValueError) as e:
            raise PhotoFetchError(f"Invalid base64 photo data: {e}") from e
        if not data:
            raise PhotoFetchError("Data URL decoded to an empty image")

        path = self.scratch.new_file(extension_for_subtype(subtype))
        path.write_bytes(data)
        return ResolvedPhoto(source="data-url", path=path)

    async def _download_http(self, url: str) -> ResolvedPhoto:
        path = None
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(url) as response:
                    if not 200 <= response.status < 300:
                        raise PhotoFetchError(f"HTTP {response.status} fetching {_describe(url)}")

                    content_type = response.headers.get("Content-Type", "")
                    if not content_type.lower().startswith("image/"):
                        raise PhotoFetchError(
                            f"Not an image ({content_type or 'no content type'}): {_describe(url)}"
                        )

                    path = self.scratch.new_file(extension_for(url, content_type))
                    size = 0
                    with open(path, "wb") as fh:
                        async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                            fh.write(chunk)
                            size += len(chunk)

            if size == 0:
                raise PhotoFetchError(f"Empty download: {_describe(url)}")
            return ResolvedPhoto(source=url, path=path)
        except aiohttp.ClientError as e:
            self._discard(path)
            raise PhotoFetchError(f"Download failed for {_describe(url)}: {e}") from e
        except BaseException:
            self._discard(path)
            raise

    async def _download_storage(self, source: str, bucket: str, object_path: str) -> ResolvedPhoto:
        try:
            body, content_type = await asyncio.wait_for(
                self.storage.download(bucket, object_path), timeout=self.storage_timeout
            )
        except asyncio.TimeoutError as e:
            raise PhotoFetchError(
                f"Timed out after {self.storage_timeout:g}s downloading {bucket}/{object_path}"
            ) from e
        if not body:
            raise PhotoFetchError(f"Empty storage object: {bucket}/{object_path}")

        path = self.scratch.new_file(extension_for(object_path, content_type))
        path.write_bytes(body)
        return ResolvedPhoto(source=source, path=path)

    @staticmethod
    def _discard(path: Optional[Path]):
        if path is not None:
            try:
                path.unlink()
            except FileNotFoundError:
                pass

"""
Object storage client for listing photos.

Public object URLs of the form ``<base>/storage/v1/object/public/<bucket>/<path>``
are fetched through the authenticated object endpoint instead of the public
CDN, so private buckets and freshly uploaded files work the same way.
"""

import logging
from typing import Optional, Tuple
from urllib.parse import quote, unquote, urlparse

import aiohttp

from core.errors import PhotoFetchError

logger = logging.getLogger(__name__)

PUBLIC_OBJECT_MARKER = "/storage/v1/object/public/"


def parse_storage_url(url: str) -> Optional[Tuple[str, str]]:
    """Split a public storage object URL into (bucket, path), or None."""
    if not isinstance(url, str):
        return None
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return None
    marker = parsed.path.find(PUBLIC_OBJECT_MARKER)
    if marker < 0:
        return None
    remainder = parsed.path[marker + len(PUBLIC_OBJECT_MARKER):]
    bucket, _, path = remainder.partition("/")
    if not bucket or not path:
        return None
    return bucket, unquote(path)


class StorageClient:
    """Downloads objects with the service key."""

    def __init__(self, base_url: str, service_key: str):
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key

    @property
    def headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }

    def object_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/{quote(bucket)}/{quote(path.lstrip('/'))}"

    async def download(self, bucket: str, path: str) -> Tuple[bytes, str]:
        """Return (body, content type) for one object."""
        url = self.object_url(bucket, path)
        try:
            async with aiohttp.ClientSession(headers=self.headers) as session:
                async with session.get(url) as response:
                    if response.status != 200:
                        detail = (await response.text())[:200]
                        raise PhotoFetchError(
                            f"Storage download failed for {bucket}/{path}: HTTP {response.status} {detail}"
                        )
                    content_type = response.headers.get("Content-Type", "")
                    body = await response.read()
        except aiohttp.ClientError as e:
            raise PhotoFetchError(f"Storage download failed for {bucket}/{path}: {e}") from e

        logger.debug(f"Downloaded {len(body)} bytes from storage {bucket}/{path}")
        return body, content_type

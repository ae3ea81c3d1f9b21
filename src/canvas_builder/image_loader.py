"""Image Loader - fetch and decode image sources with a bounded wait."""

import asyncio
import base64
import binascii
import io
import re
from urllib.parse import unquote_to_bytes, urlsplit

import aiohttp
from loguru import logger
from PIL import Image

from canvas_builder.errors import ImageLoadFailure

DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[^,]*?)(?P<b64>;base64)?,(?P<data>.*)$", re.DOTALL)
CHUNK_SIZE = 64 * 1024


def decode_image(data: bytes) -> Image.Image:
    """Decode encoded image bytes into an RGBA image (first frame only)."""
    if not data:
        raise ImageLoadFailure("Image payload is empty")
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            return image.convert("RGBA")
    except Image.DecompressionBombError as e:
        raise ImageLoadFailure(f"Image is too large to decode: {e}") from e
    except (OSError, SyntaxError, ValueError) as e:
        raise ImageLoadFailure(f"Could not decode image: {e}") from e


def decode_data_url(url: str) -> bytes:
    """Extract the payload of a ``data:`` URL."""
    match = DATA_URL_PATTERN.match(url)
    if not match:
        raise ImageLoadFailure("Malformed data URL")
    payload = match.group("data")
    if match.group("b64"):
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ImageLoadFailure("Unable to decode base64 image data") from e
    return unquote_to_bytes(payload)


class ImageLoader:
    """
    Resolves image sources to decoded pixels.

    Supports http(s) and data URLs, plus raw uploaded bytes. Fetch and decode
    together are bounded by ``timeout`` seconds, and payloads by ``max_bytes``.
    Every failure surfaces as ImageLoadFailure.
    """

    def __init__(
        self,
        timeout: float,
        max_bytes: int,
        session: aiohttp.ClientSession | None = None,
    ):
        self.timeout = timeout
        self.max_bytes = max_bytes
        self._session = session

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def load_url(self, url: str) -> Image.Image:
        """Fetch and decode the image at ``url``."""
        try:
            return await asyncio.wait_for(self._load_url(url), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Timed out loading image after {self.timeout}s: {url[:200]}")
            raise ImageLoadFailure(f"Timed out loading image after {self.timeout}s") from None
        except ImageLoadFailure as e:
            logger.warning(f"Failed to load image {url[:200]}: {e.message}")
            raise

    async def load_bytes(self, data: bytes) -> Image.Image:
        """Decode an uploaded image payload."""
        if len(data) > self.max_bytes:
            raise ImageLoadFailure(f"Image exceeds {self.max_bytes} bytes")
        try:
            return await asyncio.wait_for(asyncio.to_thread(decode_image, data), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise ImageLoadFailure(f"Timed out decoding image after {self.timeout}s") from None

    async def _load_url(self, url: str) -> Image.Image:
        scheme = urlsplit(url).scheme.lower()
        if scheme == "data":
            data = decode_data_url(url)
        elif scheme in ("http", "https"):
            data = await self._download(url)
        else:
            raise ImageLoadFailure(f"Unsupported image URL scheme: {scheme or 'none'}")

        if len(data) > self.max_bytes:
            raise ImageLoadFailure(f"Image exceeds {self.max_bytes} bytes")
        return await asyncio.to_thread(decode_image, data)

    async def _download(self, url: str) -> bytes:
        try:
            async with self._get_session().get(url) as response:
                if response.status >= 400:
                    raise ImageLoadFailure(f"Image request failed with HTTP {response.status}")
                if response.content_length and response.content_length > self.max_bytes:
                    raise ImageLoadFailure(f"Image exceeds {self.max_bytes} bytes")

                data = bytearray()
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    data.extend(chunk)
                    if len(data) > self.max_bytes:
                        raise ImageLoadFailure(f"Image exceeds {self.max_bytes} bytes")
                return bytes(data)
        except aiohttp.ClientError as e:
            raise ImageLoadFailure(f"Could not fetch image: {e}") from e

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

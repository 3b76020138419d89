"""
Asynchronous image loading for the composer.

A photo reference may be raw bytes, a data: URL, an http(s) URL, a file
path (or file:// URL) or bare base64. Fetching is awaited; decoding runs in
the default executor so the event loop keeps serving other work. Every
failure surfaces as an ImageLoadError carrying the cell key.
"""

import asyncio
import base64
import binascii
import hashlib
import io
import os
from typing import Dict, Optional
from urllib.parse import unquote, unquote_to_bytes, urlparse

import aiofiles
import aiohttp
from PIL import Image, ImageOps, UnidentifiedImageError
from loguru import logger

from .errors import ImageLoadError
from .models import PhotoRef


class ImageLoader:
    """Loads and decodes photo references; one instance per render pass"""

    def __init__(self, timeout: float = 30.0, session: Optional[aiohttp.ClientSession] = None):
        self.timeout = timeout
        self._session = session
        self._owns_session = False
        self._cache: Dict[str, Image.Image] = {}

    async def __aenter__(self) -> "ImageLoader":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None
        self._owns_session = False
        self._cache.clear()

    async def _http_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session

    async def load_bytes(self, source: PhotoRef) -> bytes:
        """Resolve a photo reference to encoded image bytes"""
        if isinstance(source, (bytes, bytearray, memoryview)):
            return bytes(source)

        src = str(source).strip()
        if src.startswith("data:"):
            return decode_data_url(src)

        if src.startswith(("http://", "https://")):
            session = await self._http_session()
            async with session.get(src) as response:
                response.raise_for_status()
                return await response.read()

        path = src
        if src.startswith("file://"):
            path = unquote(urlparse(src).path)
        if os.path.isfile(path):
            async with aiofiles.open(path, "rb") as f:
                return await f.read()

        # last resort: bare base64 payload
        try:
            return base64.b64decode(_pad_base64(src), validate=True)
        except (binascii.Error, ValueError):
            raise FileNotFoundError(f"Not a readable file, URL or base64 image: {src[:70]}")

    async def load(self, key: str, source: PhotoRef) -> Image.Image:
        """Fetch and decode the image for cell `key`."""
        cache_key = _cache_key(source)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            data = await self.load_bytes(source)
        except ImageLoadError:
            raise
        except Exception as e:
            logger.warning(f"Failed to fetch image for cell {key}: {type(e).__name__}: {e}")
            raise ImageLoadError(key, source, f"{type(e).__name__}: {e}") from e

        if not data:
            raise ImageLoadError(key, source, "empty image data")

        loop = asyncio.get_running_loop()
        try:
            image = await loop.run_in_executor(None, decode_image, data)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
            logger.warning(f"Failed to decode image for cell {key}: {e}")
            raise ImageLoadError(key, source, f"cannot decode image ({e})") from e

        logger.debug(f"Loaded image for cell {key}: {image.size} {image.mode}")
        self._cache[cache_key] = image
        return image


def decode_image(data: bytes) -> Image.Image:
    """Decode bytes into an upright RGB/RGBA image, fully loaded in memory"""
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        img = ImageOps.exif_transpose(img)
        has_alpha = img.mode in ("RGBA", "LA") or (
            img.mode == "P" and "transparency" in img.info
        )
        return img.convert("RGBA" if has_alpha else "RGB")


def decode_data_url(url: str) -> bytes:
    """Payload of a data: URL (base64 or percent-encoded)"""
    try:
        header, payload = url.split(",", 1)
    except ValueError:
        raise ValueError("data URL has no payload")
    if header.endswith(";base64"):
        return base64.b64decode(_pad_base64(payload))
    return unquote_to_bytes(payload)


def _pad_base64(payload: str) -> str:
    payload = "".join(payload.split())
    return payload + "=" * (-len(payload) % 4)


def _cache_key(source: PhotoRef) -> str:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return "bytes:" + hashlib.sha1(bytes(source)).hexdigest()
    return "ref:" + str(source)

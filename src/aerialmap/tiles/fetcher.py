"""HTTP loading and decoding of XYZ tiles.

The tile source is a URL template with ``{x}``, ``{y}`` and ``{z}``
placeholders, e.g. ``https://tile.openstreetmap.org/{z}/{x}/{y}.png``.
"""

from __future__ import annotations

import asyncio
import logging
import ssl
from http import HTTPStatus
from io import BytesIO
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

import aiohttp
import certifi
import numpy as np
from PIL import Image, UnidentifiedImageError

from aerialmap.shared.constants import (
    HTTP_5XX_MAX,
    HTTP_5XX_MIN,
    HTTP_BACKOFF_FACTOR,
    HTTP_RETRIES_DEFAULT,
    HTTP_TIMEOUT_DEFAULT,
    HTTP_USER_AGENT,
    TILE_URL_PLACEHOLDERS,
)

if TYPE_CHECKING:
    from aerialmap.tiles.area import TileId

logger = logging.getLogger(__name__)


class TileFetchError(RuntimeError):
    """A tile could not be loaded from its source."""


class _RetryableStatus(Exception):
    """Rate limit or server error; the request is worth repeating."""


def validate_tile_url(template: str) -> None:
    """Raise ValueError unless the template addresses XYZ tiles."""
    if not template or not template.strip():
        msg = 'Tile URL is not set'
        raise ValueError(msg)
    missing = [p for p in TILE_URL_PLACEHOLDERS if p not in template]
    if missing:
        msg = f'Tile URL template is missing placeholders: {", ".join(missing)}'
        raise ValueError(msg)


def is_valid_tile_index(tile_id: TileId) -> bool:
    """y must lie inside the world; x wraps around the antimeridian."""
    return 0 <= tile_id.y < 2**tile_id.zoom


def format_tile_url(template: str, tile_id: TileId) -> str:
    """Fill a URL template for one tile."""
    if not is_valid_tile_index(tile_id):
        msg = f'Tile {tile_id} lies outside the map'
        raise ValueError(msg)
    x = tile_id.x % (2**tile_id.zoom)
    return (
        template.replace('{x}', str(x))
        .replace('{y}', str(tile_id.y))
        .replace('{z}', str(tile_id.zoom))
    )


def loggable_url(url: str) -> str:
    """URL without query string, so access tokens never reach the log."""
    parts = urlsplit(url)
    return f'{parts.scheme}://{parts.netloc}{parts.path}'


def decode_tile_image(data: bytes) -> np.ndarray:
    """Decode PNG/JPEG bytes into an RGBA uint8 array (H x W x 4)."""
    try:
        with Image.open(BytesIO(data)) as img:
            rgba = img.convert('RGBA')
    except (UnidentifiedImageError, OSError) as e:
        msg = f'Cannot decode tile image: {e}'
        raise TileFetchError(msg) from e
    return np.asarray(rgba, dtype=np.uint8)


def make_http_session() -> aiohttp.ClientSession:
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    connector = aiohttp.TCPConnector(ssl=ssl_context)
    return aiohttp.ClientSession(
        connector=connector,
        headers={'User-Agent': HTTP_USER_AGENT},
    )


class HttpTileLoader:
    """Async callable loading raw tile bytes for a TileId.

    The session is created lazily, inside the event loop that first awaits
    the loader.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        timeout: float = HTTP_TIMEOUT_DEFAULT,
        retries: int = HTTP_RETRIES_DEFAULT,
        backoff: float = HTTP_BACKOFF_FACTOR,
    ) -> None:
        self._session = session
        self._owns_session = session is None
        self.timeout = timeout
        self.retries = max(1, retries)
        self.backoff = backoff

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = make_http_session()
        return self._session

    async def __call__(self, tile_id: TileId) -> bytes:
        url = format_tile_url(tile_id.source_key, tile_id)
        path = loggable_url(url)
        session = self._get_session()

        last_exc: Exception | None = None
        for attempt in range(self.retries):
            try:
                return await self._get_once(session, url, path, tile_id)
            except TileFetchError:
                raise
            except (aiohttp.ClientError, TimeoutError, _RetryableStatus) as e:
                last_exc = e
            logger.debug('Retrying tile %s (attempt %d): %s', tile_id, attempt + 1, last_exc)
            if attempt + 1 < self.retries:
                await asyncio.sleep(self.backoff**attempt)
        msg = f'Failed to load tile z/x/y={tile_id}: {last_exc}'
        raise TileFetchError(msg)

    async def _get_once(
        self,
        session: aiohttp.ClientSession,
        url: str,
        path: str,
        tile_id: TileId,
    ) -> bytes:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with session.get(url, timeout=timeout) as resp:
            sc = resp.status
            if sc == HTTPStatus.OK:
                return await resp.read()
            if sc in (HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN):
                msg = f'Access denied (HTTP {sc}) for tile z/x/y={tile_id} path={path}'
                raise TileFetchError(msg)
            if sc == HTTPStatus.NOT_FOUND:
                msg = f'Tile not found (404) z/x/y={tile_id} path={path}'
                raise TileFetchError(msg)
            if sc == HTTPStatus.TOO_MANY_REQUESTS or HTTP_5XX_MIN <= sc < HTTP_5XX_MAX:
                msg = f'HTTP {sc} while loading tile z/x/y={tile_id} path={path}'
                raise _RetryableStatus(msg)
            msg = f'Unexpected HTTP {sc} for tile z/x/y={tile_id} path={path}'
            raise TileFetchError(msg)

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None


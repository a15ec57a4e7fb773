"""Poll-based tile cache with background loading.

TileCache implements the request/ready/purge/error_rate contract used by the
display. Loads run as coroutines on an asyncio loop owned by a daemon
thread, so none of the public methods ever block on I/O.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import zlib
from collections import deque
from functools import partial
from typing import TYPE_CHECKING

from aerialmap.shared.constants import DOWNLOAD_CONCURRENCY, ERROR_RATE_WINDOW
from aerialmap.tiles.fetcher import (
    HttpTileLoader,
    decode_tile_image,
    is_valid_tile_index,
    validate_tile_url,
)
from aerialmap.tiles.protocol import ReadyTile

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from concurrent.futures import Future

    import numpy as np

    from aerialmap.tiles.area import Area, TileId
    from aerialmap.tiles.store import TileStore

logger = logging.getLogger(__name__)


def texture_name(tile_id: TileId) -> str:
    """Stable texture name for a tile; the source is folded into a checksum."""
    source_crc = zlib.crc32(tile_id.source_key.encode('utf-8'))
    return f'tile_{tile_id.zoom}_{tile_id.x}_{tile_id.y}_{source_crc:08x}'


class TileCache:
    """Tile cache with a background loader thread.

    Features:
    - request() schedules loads and returns immediately
    - optional TileStore consulted before the network
    - rolling per-source error rate over the last ERROR_RATE_WINDOW loads
    - purge() drops ready tiles and cancels loads outside an area

    Usage:
        cache = TileCache(store=TileStore())
        cache.request(Area(center, blocks=1))
        tile = cache.ready(center)  # None until loaded
        cache.close()
    """

    def __init__(
        self,
        loader: Callable[[TileId], Awaitable[bytes]] | None = None,
        store: TileStore | None = None,
        *,
        max_concurrency: int = DOWNLOAD_CONCURRENCY,
        error_window: int = ERROR_RATE_WINDOW,
        decoder: Callable[[bytes], np.ndarray] = decode_tile_image,
    ) -> None:
        self._loader = loader or HttpTileLoader()
        self._store = store
        self._decode = decoder
        self._max_concurrency = max(1, max_concurrency)
        self._error_window = max(1, error_window)

        self._lock = threading.RLock()
        self._idle = threading.Condition(self._lock)
        self._ready: dict[TileId, ReadyTile] = {}
        self._pending: dict[TileId, Future] = {}
        self._outcomes: dict[str, deque[bool]] = {}
        self._stats = {'loaded': 0, 'failed': 0, 'store_hits': 0}

        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._semaphore: asyncio.Semaphore | None = None
        self._closed = False

    # -- loop thread

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop

        loop = asyncio.new_event_loop()
        started = threading.Event()

        def _run() -> None:
            asyncio.set_event_loop(loop)
            self._semaphore = asyncio.Semaphore(self._max_concurrency)
            started.set()
            loop.run_forever()

        self._loop = loop
        self._thread = threading.Thread(target=_run, name='TileCacheLoop', daemon=True)
        self._thread.start()
        started.wait()
        logger.info('TileCache loader thread started')
        return loop

    # -- contract

    def request(self, area: Area) -> None:
        validate_tile_url(area.center.source_key)
        with self._lock:
            if self._closed:
                msg = 'TileCache is closed'
                raise RuntimeError(msg)
            loop = self._ensure_loop()
            scheduled = 0
            for tile_id in area.tile_ids():
                if tile_id in self._ready or tile_id in self._pending:
                    continue
                if not is_valid_tile_index(tile_id):
                    continue
                future = asyncio.run_coroutine_threadsafe(self._load(tile_id), loop)
                self._pending[tile_id] = future
                future.add_done_callback(partial(self._on_done, tile_id))
                scheduled += 1
        logger.debug('Requested %d tiles around %s, %d scheduled', len(area), area.center, scheduled)

    def ready(self, tile_id: TileId) -> ReadyTile | None:
        with self._lock:
            return self._ready.get(tile_id)

    def purge(self, area: Area) -> None:
        with self._lock:
            stale = [t for t in self._ready if t not in area]
            for tile_id in stale:
                del self._ready[tile_id]
            cancelled = [t for t in self._pending if t not in area]
            for tile_id in cancelled:
                self._pending.pop(tile_id).cancel()
            if cancelled:
                self._idle.notify_all()
        if stale or cancelled:
            logger.debug('Purged %d ready and %d pending tiles', len(stale), len(cancelled))

    def error_rate(self, source_key: str) -> float:
        with self._lock:
            outcomes = self._outcomes.get(source_key)
            if not outcomes:
                return 0.0
            return outcomes.count(False) / len(outcomes)

    # -- loading

    async def _load(self, tile_id: TileId) -> None:
        assert self._semaphore is not None
        async with self._semaphore:
            data = None
            if self._store is not None:
                data = await asyncio.to_thread(self._store.get, tile_id)
            from_network = data is None
            if from_network:
                try:
                    data = await self._loader(tile_id)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self._record(tile_id, ok=False)
                    logger.warning('Failed to load tile %s: %s', tile_id, e)
                    return
            else:
                with self._lock:
                    self._stats['store_hits'] += 1

            try:
                image = self._decode(data)
            except Exception as e:
                if from_network:
                    self._record(tile_id, ok=False)
                elif self._store is not None:
                    # next request goes to the network
                    await asyncio.to_thread(self._store.delete, tile_id)
                logger.warning('Failed to decode tile %s: %s', tile_id, e)
                return

            if from_network:
                self._record(tile_id, ok=True)
                if self._store is not None:
                    await asyncio.to_thread(self._store.put, tile_id, data)

        tile = ReadyTile(tile_id=tile_id, texture_name=texture_name(tile_id), image=image)
        with self._lock:
            # A purge while loading removes the tile from _pending: drop the result.
            if tile_id in self._pending:
                self._ready[tile_id] = tile

    def _record(self, tile_id: TileId, *, ok: bool) -> None:
        with self._lock:
            outcomes = self._outcomes.setdefault(
                tile_id.source_key, deque(maxlen=self._error_window)
            )
            outcomes.append(ok)
            self._stats['loaded' if ok else 'failed'] += 1

    def _on_done(self, tile_id: TileId, future: Future) -> None:
        if not future.cancelled() and future.exception() is not None:
            logger.error('Tile load task for %s crashed', tile_id, exc_info=future.exception())
        with self._lock:
            if self._pending.get(tile_id) is future:
                del self._pending[tile_id]
            self._idle.notify_all()

    # -- housekeeping

    @property
    def stats(self) -> dict[str, int]:
        with self._lock:
            return {**self._stats, 'ready': len(self._ready), 'pending': len(self._pending)}

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no load is pending. Returns False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: not self._pending, timeout)

    def close(self, timeout: float = 5.0) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for future in self._pending.values():
                future.cancel()
            self._pending.clear()
            self._ready.clear()

        loop = self._loop
        if loop is not None:
            close_loader = getattr(self._loader, 'close', None)
            if close_loader is not None:
                try:
                    asyncio.run_coroutine_threadsafe(close_loader(), loop).result(timeout)
                except Exception:
                    logger.warning('Failed to close tile loader', exc_info=True)
            loop.call_soon_threadsafe(loop.stop)
            if self._thread is not None:
                self._thread.join(timeout=timeout)
                if self._thread.is_alive():
                    logger.warning('TileCache loader thread did not stop within timeout')
            if not loop.is_running():
                loop.close()
            self._loop = None

        if self._store is not None:
            self._store.close()
        logger.info('TileCache closed: %s', self._stats)

    def __enter__(self) -> TileCache:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

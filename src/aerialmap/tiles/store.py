"""SQLite-backed persistent tile storage.

One database file per zoom level, rows keyed by (x, y, source). Used by
TileCache as a disk layer in front of the network loader.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path

from aerialmap.geo.mercator import TileCoordinate
from aerialmap.shared.constants import TILE_STORE_DIR, TILE_STORE_MAX_SIZE_MB
from aerialmap.tiles.area import TileId

logger = logging.getLogger(__name__)

_SCHEMA = '''
    CREATE TABLE IF NOT EXISTS tiles (
        x INTEGER NOT NULL,
        y INTEGER NOT NULL,
        source TEXT NOT NULL,
        tile_data BLOB NOT NULL,
        fetched_at INTEGER NOT NULL,
        last_used_at INTEGER NOT NULL,
        size_bytes INTEGER NOT NULL,
        PRIMARY KEY (x, y, source)
    );

    CREATE INDEX IF NOT EXISTS idx_tiles_last_used ON tiles(last_used_at);
'''


@dataclass
class StoreStats:
    """Totals across all zoom databases."""

    total_tiles: int
    total_size_bytes: int
    tiles_by_zoom: dict[int, int]


class TileStore:
    """Persistent tile bytes keyed by TileId.

    Usage:
        with TileStore(cache_dir) as store:
            store.put(tile_id, data)
            data = store.get(tile_id)
    """

    def __init__(self, cache_dir: str | Path | None = None) -> None:
        self.cache_dir = Path(cache_dir or Path.home() / TILE_STORE_DIR)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._connections: dict[int, sqlite3.Connection] = {}
        self._lock = threading.Lock()
        logger.info('TileStore initialized at %s', self.cache_dir)

    def _db_path(self, zoom: int) -> Path:
        return self.cache_dir / f'zoom_{zoom}.db'

    def _connection(self, zoom: int) -> sqlite3.Connection:
        if zoom not in self._connections:
            conn = sqlite3.connect(str(self._db_path(zoom)), check_same_thread=False)
            conn.execute('PRAGMA journal_mode=WAL')
            conn.execute('PRAGMA synchronous=NORMAL')
            conn.executescript(_SCHEMA)
            conn.commit()
            self._connections[zoom] = conn
        return self._connections[zoom]

    def _zoom_levels(self) -> list[int]:
        zooms = []
        for db_file in self.cache_dir.glob('zoom_*.db'):
            try:
                zooms.append(int(db_file.stem.split('_')[1]))
            except (IndexError, ValueError):
                continue
        return sorted(zooms)

    def get(self, tile_id: TileId) -> bytes | None:
        """Tile bytes or None; a hit refreshes last_used_at for LRU cleanup."""
        key = (tile_id.x, tile_id.y, tile_id.source_key)
        with self._lock:
            conn = self._connection(tile_id.zoom)
            row = conn.execute(
                'SELECT tile_data FROM tiles WHERE x = ? AND y = ? AND source = ?',
                key,
            ).fetchone()
            if row is None:
                return None
            conn.execute(
                'UPDATE tiles SET last_used_at = ? WHERE x = ? AND y = ? AND source = ?',
                (int(time.time()), *key),
            )
            conn.commit()
        return row[0]

    def exists(self, tile_id: TileId) -> bool:
        with self._lock:
            row = self._connection(tile_id.zoom).execute(
                'SELECT 1 FROM tiles WHERE x = ? AND y = ? AND source = ?',
                (tile_id.x, tile_id.y, tile_id.source_key),
            ).fetchone()
        return row is not None

    def put(self, tile_id: TileId, data: bytes, fetched_at: int | None = None) -> None:
        now = int(time.time())
        with self._lock:
            conn = self._connection(tile_id.zoom)
            conn.execute(
                '''INSERT OR REPLACE INTO tiles
                   (x, y, source, tile_data, fetched_at, last_used_at, size_bytes)
                   VALUES (?, ?, ?, ?, ?, ?, ?)''',
                (tile_id.x, tile_id.y, tile_id.source_key, data, fetched_at or now, now, len(data)),
            )
            conn.commit()

    def delete(self, tile_id: TileId) -> bool:
        with self._lock:
            conn = self._connection(tile_id.zoom)
            cursor = conn.execute(
                'DELETE FROM tiles WHERE x = ? AND y = ? AND source = ?',
                (tile_id.x, tile_id.y, tile_id.source_key),
            )
            conn.commit()
        return cursor.rowcount > 0

    def get_stats(self) -> StoreStats:
        total_tiles = 0
        total_size = 0
        tiles_by_zoom: dict[int, int] = {}
        with self._lock:
            for zoom in self._zoom_levels():
                count, size = self._connection(zoom).execute(
                    'SELECT COUNT(*), COALESCE(SUM(size_bytes), 0) FROM tiles'
                ).fetchone()
                tiles_by_zoom[zoom] = count
                total_tiles += count
                total_size += size
        return StoreStats(total_tiles=total_tiles, total_size_bytes=total_size, tiles_by_zoom=tiles_by_zoom)

    def cleanup_lru(self, max_size_mb: float | None = None) -> int:
        """Delete least recently used tiles until the store fits max_size_mb.

        Returns:
            Number of bytes freed.
        """
        if max_size_mb is None:
            max_size_mb = TILE_STORE_MAX_SIZE_MB
        bytes_to_free = self.get_stats().total_size_bytes - int(max_size_mb * 1024 * 1024)
        if bytes_to_free <= 0:
            return 0

        candidates: list[tuple[int, TileId, int]] = []  # (last_used_at, tile, size)
        with self._lock:
            for zoom in self._zoom_levels():
                for x, y, source, size, last_used in self._connection(zoom).execute(
                    'SELECT x, y, source, size_bytes, last_used_at FROM tiles'
                ):
                    candidates.append((last_used, TileId(source, TileCoordinate(x, y), zoom), size))
        candidates.sort(key=lambda c: c[0])

        bytes_freed = 0
        for _, tile_id, size in candidates:
            if bytes_freed >= bytes_to_free:
                break
            if self.delete(tile_id):
                bytes_freed += size

        logger.info('LRU cleanup: freed %.1f MB', bytes_freed / 1024 / 1024)
        return bytes_freed

    def close(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()
        logger.info('TileStore closed')

    def __enter__(self) -> TileStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

"""Tile identity, cache contract and the reference tile cache.

This module provides:
- TileId / Area: cache keys and square tile blocks around a center tile
- TileCacheClient: request/ready/purge/error_rate contract
- TileCache: background-loading implementation of the contract
- TileStore: SQLite persistent storage for tile bytes
- HttpTileLoader: aiohttp loader for XYZ URL templates
"""

from aerialmap.tiles.area import Area, TileId
from aerialmap.tiles.cache import TileCache
from aerialmap.tiles.errors import TileRequestStatus, classify_error_rate
from aerialmap.tiles.fetcher import HttpTileLoader, TileFetchError
from aerialmap.tiles.protocol import ReadyTile, TileCacheClient
from aerialmap.tiles.store import StoreStats, TileStore

__all__ = [
    'Area',
    'HttpTileLoader',
    'ReadyTile',
    'StoreStats',
    'TileCache',
    'TileCacheClient',
    'TileFetchError',
    'TileId',
    'TileRequestStatus',
    'TileStore',
    'classify_error_rate',
]

"""Pytest configuration and fixtures for aerialmap tests."""

import sys
from pathlib import Path

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

import numpy as np
import pytest

from aerialmap.tiles.protocol import ReadyTile


class FakeTileCache:
    """In-memory TileCacheClient; tiles become ready through make_ready()."""

    def __init__(self):
        self.calls = []
        self.requested = []
        self.purged = []
        self.tiles = {}
        self.rates = {}
        self.request_error = None

    def make_ready(self, tile_ids):
        for tile_id in tile_ids:
            self.tiles[tile_id] = ReadyTile(
                tile_id=tile_id,
                texture_name=f'tex_{tile_id.zoom}_{tile_id.x}_{tile_id.y}',
                image=np.zeros((1, 1, 4), dtype=np.uint8),
            )

    def request(self, area):
        self.calls.append(('request', area))
        if self.request_error is not None:
            raise self.request_error
        self.requested.append(area)

    def ready(self, tile_id):
        self.calls.append(('ready', tile_id))
        return self.tiles.get(tile_id)

    def purge(self, area):
        self.calls.append(('purge', area))
        self.purged.append(area)

    def error_rate(self, source_key):
        return self.rates.get(source_key, 0.0)


@pytest.fixture
def fake_cache():
    return FakeTileCache()

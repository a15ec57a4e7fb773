"""Geo module - Web Mercator tile math."""

from .mercator import (
    GeoPoint,
    TileCoordinate,
    meters_per_pixel,
    tile_size_meters,
    tile_to_geo,
    to_tile_coordinate,
    to_tile_index,
)

__all__ = [
    'GeoPoint',
    'TileCoordinate',
    'meters_per_pixel',
    'tile_size_meters',
    'tile_to_geo',
    'to_tile_coordinate',
    'to_tile_index',
]

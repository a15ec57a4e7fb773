"""Web Mercator (slippy map) tile math.

See https://wiki.openstreetmap.org/wiki/Slippy_map_tilenames for the tiling
scheme: x grows eastwards, y grows southwards, the world is 2^zoom tiles wide.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, TypeVar

from aerialmap.shared.constants import (
    EARTH_RADIUS_M,
    MAX_ZOOM,
    MERCATOR_MAX_LAT_DEG,
    TILE_SIZE,
    WORLD_LAT_MAX_DEG,
    WORLD_LNG_HALF_SPAN_DEG,
    WORLD_LNG_SPAN_DEG,
)

N = TypeVar('N', int, float)


@dataclass(frozen=True)
class GeoPoint:
    """WGS84 point in degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True)
class TileCoordinate(Generic[N]):
    """Tile coordinate; int for a tile index, float for a position inside a tile."""

    x: N
    y: N

    def floor(self) -> TileCoordinate[int]:
        return TileCoordinate(math.floor(self.x), math.floor(self.y))

    def fraction(self) -> tuple[float, float]:
        """Offset inside the containing tile, both components in [0, 1)."""
        return self.x - math.floor(self.x), self.y - math.floor(self.y)


def _check_latitude(lat_deg: float) -> None:
    if not -MERCATOR_MAX_LAT_DEG <= lat_deg <= MERCATOR_MAX_LAT_DEG:
        msg = f'Latitude {lat_deg} is outside the Web Mercator range ±{MERCATOR_MAX_LAT_DEG}'
        raise ValueError(msg)


def _check_zoom(zoom: int) -> None:
    if not 0 <= zoom <= MAX_ZOOM:
        msg = f'Zoom {zoom} is outside [0, {MAX_ZOOM}]'
        raise ValueError(msg)


def to_tile_coordinate(point: GeoPoint, zoom: int) -> TileCoordinate[float]:
    """Convert a WGS84 point to a fractional tile coordinate at the given zoom."""
    _check_latitude(point.latitude)
    _check_zoom(zoom)
    n = float(2**zoom)
    lat_rad = math.radians(point.latitude)
    x = (point.longitude + WORLD_LNG_HALF_SPAN_DEG) / WORLD_LNG_SPAN_DEG * n
    y = (1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi) / 2.0 * n
    return TileCoordinate(x, y)


def to_tile_index(point: GeoPoint, zoom: int) -> TileCoordinate[int]:
    """Integer tile containing the point."""
    return to_tile_coordinate(point, zoom).floor()


def tile_to_geo(coord: TileCoordinate, zoom: int) -> GeoPoint:
    """Inverse projection: tile coordinate -> WGS84 point.

    Integer coordinates give the north-west corner of the tile.
    """
    _check_zoom(zoom)
    n = float(2**zoom)
    lng = coord.x / n * WORLD_LNG_SPAN_DEG - WORLD_LNG_HALF_SPAN_DEG
    lat = math.degrees(math.atan(math.sinh(math.pi * (1.0 - 2.0 * coord.y / n))))
    return GeoPoint(latitude=max(-WORLD_LAT_MAX_DEG, min(WORLD_LAT_MAX_DEG, lat)), longitude=lng)


def meters_per_pixel(lat_deg: float, zoom: int) -> float:
    """Ground resolution of a 256 px tile pixel at the given latitude and zoom."""
    _check_latitude(lat_deg)
    _check_zoom(zoom)
    lat_rad = math.radians(lat_deg)
    return (math.cos(lat_rad) * 2 * math.pi * EARTH_RADIUS_M) / (TILE_SIZE * (2**zoom))


def tile_size_meters(lat_deg: float, zoom: int) -> float:
    """Ground distance spanned by one tile edge.

    The pixel size cancels out; it is kept so the value stays dimensionally
    tied to meters_per_pixel.
    """
    return TILE_SIZE * meters_per_pixel(lat_deg, zoom)

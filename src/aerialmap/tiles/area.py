"""Tile identity and square tile areas around a center tile."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from aerialmap.geo.mercator import TileCoordinate

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass(frozen=True)
class TileId:
    """Cache key of one tile: source (URL template), tile index and zoom."""

    source_key: str
    coord: TileCoordinate[int]
    zoom: int

    @property
    def x(self) -> int:
        return self.coord.x

    @property
    def y(self) -> int:
        return self.coord.y

    def with_coord(self, x: int, y: int) -> TileId:
        return TileId(self.source_key, TileCoordinate(x, y), self.zoom)

    def with_source(self, source_key: str) -> TileId:
        return TileId(source_key, self.coord, self.zoom)

    def __str__(self) -> str:
        return f'{self.zoom}/{self.x}/{self.y}'


@dataclass(frozen=True)
class Area:
    """Inclusive square of tiles, center ± blocks on both axes."""

    center: TileId
    blocks: int

    @property
    def top_left(self) -> TileCoordinate[int]:
        return TileCoordinate(self.center.x - self.blocks, self.center.y - self.blocks)

    @property
    def bottom_right(self) -> TileCoordinate[int]:
        return TileCoordinate(self.center.x + self.blocks, self.center.y + self.blocks)

    @property
    def side(self) -> int:
        return 2 * self.blocks + 1

    def __len__(self) -> int:
        return self.side * self.side

    def __iter__(self) -> Iterator[TileCoordinate[int]]:
        # Raster order: x outer (west -> east), y inner (north -> south).
        # Slot pools rely on this order staying fixed.
        top_left, bottom_right = self.top_left, self.bottom_right
        for x in range(top_left.x, bottom_right.x + 1):
            for y in range(top_left.y, bottom_right.y + 1):
                yield TileCoordinate(x, y)

    def tile_ids(self) -> Iterator[TileId]:
        for coord in self:
            yield TileId(self.center.source_key, coord, self.center.zoom)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, TileId):
            if item.source_key != self.center.source_key or item.zoom != self.center.zoom:
                return False
            item = item.coord
        if not isinstance(item, TileCoordinate):
            return False
        top_left, bottom_right = self.top_left, self.bottom_right
        return top_left.x <= item.x <= bottom_right.x and top_left.y <= item.y <= bottom_right.y

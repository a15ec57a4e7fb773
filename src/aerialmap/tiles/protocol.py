"""Contract between the display and a tile cache."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    import numpy as np

    from aerialmap.tiles.area import Area, TileId


@dataclass(frozen=True)
class ReadyTile:
    """A loaded tile texture. Owned by the cache; consumers only borrow it."""

    tile_id: TileId
    texture_name: str
    image: np.ndarray = field(repr=False, compare=False)


class TileCacheClient(Protocol):
    """Request/poll/purge interface of a tile cache.

    All methods are non-blocking.
    """

    def request(self, area: Area) -> None:
        """Declare that every tile in the area is wanted.

        Raises ValueError synchronously for a malformed source key.
        """

    def ready(self, tile_id: TileId) -> ReadyTile | None:
        """Return the tile if it finished loading, otherwise None."""

    def purge(self, area: Area) -> None:
        """Release tiles outside the area."""

    def error_rate(self, source_key: str) -> float:
        """Fraction in [0, 1] of recent loads for the source that failed."""

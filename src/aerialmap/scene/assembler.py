"""Incremental assembly of the tile grid from cache readiness.

The local grid frame is ENU with the bottom-left corner of the center tile at
the origin. Tile rows grow southwards, so the y axis is flipped when placing
quads; the texture v axis is flipped along with it. sub_tile_offset() in the
transform pipeline applies the same flip.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from aerialmap.geo.mercator import tile_size_meters
from aerialmap.shared.constants import (
    ALPHA_OPAQUE_THRESHOLD,
    SLOT_MATERIAL_PREFIX,
    SLOT_OBJECT_PREFIX,
)
from aerialmap.scene.slots import BlendMode, Material, QuadGeometry, RenderQueue, TileSlot
from aerialmap.tiles.area import Area

if TYPE_CHECKING:
    from aerialmap.tiles.area import TileId
    from aerialmap.tiles.protocol import ReadyTile, TileCacheClient

logger = logging.getLogger(__name__)

# Vertex order: bottom-left, top-right, top-left, bottom-left, bottom-right, top-right
_QUAD_CORNERS = np.array([
    [0.0, 0.0],
    [1.0, 1.0],
    [0.0, 1.0],
    [0.0, 0.0],
    [1.0, 0.0],
    [1.0, 1.0],
])
_QUAD_NORMALS = np.tile([0.0, 0.0, 1.0], (6, 1))


class AssemblyError(RuntimeError):
    """The slot pool does not match the requested grid."""


def grid_cell_count(blocks: int) -> int:
    return (2 * blocks + 1) ** 2


def quad_geometry(dx: int, dy: int, tile_size_m: float) -> QuadGeometry:
    """Quad of the tile ``dx`` columns east and ``dy`` rows south of the center tile."""
    origin = np.array([dx * tile_size_m, -dy * tile_size_m])
    xy = origin + _QUAD_CORNERS * tile_size_m
    positions = np.column_stack([xy, np.zeros(len(xy))])
    # (0, 0) is the top-left of the loaded image: assigning it to the bottom-left
    # vertex flips the texture along v.
    uvs = _QUAD_CORNERS.copy()
    return QuadGeometry(positions=positions, uvs=uvs, normals=_QUAD_NORMALS.copy())


class GridAssembler:
    """Owns the tile slot pool and refreshes it from the cache.

    Slot ``i`` always shows the ``i``-th cell of Area iteration order, so the
    pool is only recreated when blocks or zoom change.
    """

    def __init__(self) -> None:
        self._slots: list[TileSlot] = []
        self._generation = 0

    @property
    def slots(self) -> tuple[TileSlot, ...]:
        return tuple(self._slots)

    @property
    def is_built(self) -> bool:
        return bool(self._slots)

    def build(self, blocks: int) -> None:
        """(Re)create the pool with one hidden slot per grid cell."""
        self.destroy()
        self._generation += 1
        suffix = f'{self._generation}_'
        self._slots = [
            TileSlot(
                index=i,
                name=f'{SLOT_OBJECT_PREFIX}{suffix}{i}',
                material=Material(name=f'{SLOT_MATERIAL_PREFIX}{suffix}{i}'),
            )
            for i in range(grid_cell_count(blocks))
        ]
        logger.debug('Created %d tile slots (generation %d)', len(self._slots), self._generation)

    def destroy(self) -> None:
        self._slots = []

    def assemble(
        self,
        center: TileId,
        blocks: int,
        latitude: float,
        cache: TileCacheClient,
        *,
        alpha: float,
        draw_behind: bool,
    ) -> bool:
        """Run one assembly pass.

        Returns:
            True if every tile of the area was ready.
        """
        if not self._slots:
            msg = 'No objects to draw on, build the tile grid first'
            raise AssemblyError(msg)
        area = Area(center, blocks)
        if len(self._slots) != len(area):
            msg = f'Slot pool has {len(self._slots)} slots, grid needs {len(area)}'
            raise AssemblyError(msg)

        tile_size_m = tile_size_meters(latitude, center.zoom)
        loaded_all = True

        for slot, tile_id in zip(self._slots, area.tile_ids()):
            tile = cache.ready(tile_id)
            if tile is None:
                # don't show tiles with old textures
                slot.visible = False
                loaded_all = False
                continue

            slot.visible = True
            self._apply_material(slot, tile, alpha=alpha, draw_behind=draw_behind)
            # tile size depends on latitude, so geometry is rebuilt on every pass
            slot.geometry = quad_geometry(tile_id.x - center.x, tile_id.y - center.y, tile_size_m)

        # every poll of this pass is done; only now may the cache drop tiles
        cache.purge(area)
        return loaded_all

    @staticmethod
    def _apply_material(slot: TileSlot, tile: ReadyTile, *, alpha: float, draw_behind: bool) -> None:
        material = slot.material
        material.texture_name = tile.texture_name
        if alpha >= ALPHA_OPAQUE_THRESHOLD:
            material.blend_mode = BlendMode.REPLACE
            material.depth_write = not draw_behind
        else:
            material.blend_mode = BlendMode.TRANSPARENT_ALPHA
            material.depth_write = False
        material.alpha = alpha
        slot.render_queue = RenderQueue.BACKGROUND if draw_behind else RenderQueue.MAIN

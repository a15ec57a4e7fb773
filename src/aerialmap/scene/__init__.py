"""Tile slot pool and scene assembly."""

from aerialmap.scene.assembler import AssemblyError, GridAssembler, grid_cell_count, quad_geometry
from aerialmap.scene.slots import (
    BlendMode,
    Material,
    QuadGeometry,
    RenderQueue,
    SceneNode,
    TileSlot,
)

__all__ = [
    'AssemblyError',
    'BlendMode',
    'GridAssembler',
    'Material',
    'QuadGeometry',
    'RenderQueue',
    'SceneNode',
    'TileSlot',
    'grid_cell_count',
    'quad_geometry',
]

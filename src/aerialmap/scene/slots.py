"""Renderer-neutral scene objects produced by the grid assembler."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum

import numpy as np

from aerialmap.shared.constants import TILE_DEPTH_BIAS
from aerialmap.transform import quaternion as quat


class BlendMode(str, Enum):
    REPLACE = 'replace'
    TRANSPARENT_ALPHA = 'transparent_alpha'


class RenderQueue(IntEnum):
    BACKGROUND = 3
    MAIN = 50


class TextureFiltering(str, Enum):
    BILINEAR = 'bilinear'


@dataclass
class Material:
    """Texture binding and blending state of one tile."""

    name: str
    texture_name: str | None = None
    blend_mode: BlendMode = BlendMode.TRANSPARENT_ALPHA
    depth_write: bool = False
    alpha: float = 1.0
    depth_bias: float = TILE_DEPTH_BIAS
    lighting: bool = False
    culling: bool = False
    receive_shadows: bool = False
    filtering: TextureFiltering = TextureFiltering.BILINEAR


@dataclass
class QuadGeometry:
    """Two triangles (6 vertices) of one tile in the local grid frame."""

    positions: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    uvs: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))
    normals: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))

    @property
    def is_empty(self) -> bool:
        return len(self.positions) == 0

    def clear(self) -> None:
        self.positions = np.zeros((0, 3))
        self.uvs = np.zeros((0, 2))
        self.normals = np.zeros((0, 3))


@dataclass
class TileSlot:
    """One renderable tile: geometry plus material, hidden until its tile is ready."""

    index: int
    name: str
    material: Material
    geometry: QuadGeometry = field(default_factory=QuadGeometry)
    visible: bool = False
    render_queue: RenderQueue = RenderQueue.MAIN


@dataclass
class SceneNode:
    """Placement of the whole tile grid in the fixed frame."""

    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    orientation: np.ndarray = field(default_factory=lambda: quat.IDENTITY.copy())

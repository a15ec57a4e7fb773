"""Two-stage placement of the tile grid in the fixed frame.

Three frames are involved:

* the frame of the position fix (rigidly attached to the vehicle),
* the ENU anchor frame ``map`` the tiles are rigidly attached to,
* the fixed (render) frame, which may be re-estimated on every tick.

Stage 1 runs only when the center tile changes: it resolves the fix frame in
the anchor frame at the fix's timestamp and stores the offset of the tile
grid origin (bottom-left corner of the center tile) from the anchor.
Stage 2 runs every tick: it resolves the anchor in the fixed frame at the
latest time and applies the stored offset. Resolving the fix frame at render
rate would re-sample its noisy transform every tick and make the grid
jitter, so the two cadences must stay separate.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from aerialmap.geo.mercator import GeoPoint, tile_size_meters, to_tile_coordinate
from aerialmap.shared.constants import MAP_FRAME
from aerialmap.transform import quaternion as quat

if TYPE_CHECKING:
    from aerialmap.scene.slots import SceneNode
    from aerialmap.transform.frames import FrameLookup, Pose

logger = logging.getLogger(__name__)


class TransformError(RuntimeError):
    """A frame could not be resolved; the message is meant for the user."""


def sub_tile_offset(point: GeoPoint, zoom: int) -> np.ndarray:
    """Position of ``point`` relative to the bottom-left corner of its tile, in meters.

    Tile rows grow southwards, so the vertical fraction is flipped to match
    the ENU grid built by the scene assembler.
    """
    coord = to_tile_coordinate(point, zoom)
    fx, fy = coord.fraction()
    size = tile_size_meters(point.latitude, zoom)
    return np.array([fx * size, (1.0 - fy) * size, 0.0])


class TransformPipeline:
    def __init__(self, frames: FrameLookup, anchor_frame: str = MAP_FRAME) -> None:
        self.frames = frames
        self.anchor_frame = anchor_frame
        self._anchor_offset = np.zeros(3)
        self._has_offset = False

    @property
    def anchor_offset(self) -> np.ndarray:
        return self._anchor_offset.copy()

    @property
    def has_offset(self) -> bool:
        return self._has_offset

    def reset(self) -> None:
        self._anchor_offset = np.zeros(3)
        self._has_offset = False

    def _lookup(self, frame: str, stamp: float | None) -> Pose:
        pose = self.frames.lookup(frame, stamp)
        if pose is None:
            reason = self.frames.diagnose(frame, stamp)
            if not reason:
                reason = f'Could not transform from [{frame}] to Fixed Frame for an unknown reason'
            raise TransformError(reason)
        return pose

    def update_anchor_offset(
        self,
        frame_id: str,
        stamp: float | None,
        point: GeoPoint,
        zoom: int,
    ) -> np.ndarray:
        """Stage 1: recompute the grid origin offset from the anchor frame.

        Both lookups use the fix's own timestamp. On failure the previous
        offset is kept and TransformError is raised.
        """
        fix_in_fixed = self._lookup(frame_id, stamp)
        anchor_in_fixed = self._lookup(self.anchor_frame, stamp)
        fix_in_anchor = fix_in_fixed.relative_to(anchor_in_fixed)

        offset = fix_in_anchor.translation - sub_tile_offset(point, zoom)
        # Single assignment: stage 2 only ever sees a complete offset.
        self._anchor_offset = offset
        self._has_offset = True
        logger.debug(
            'Anchor offset updated: %s (tile size %.1fm)',
            np.array2string(offset, precision=3),
            tile_size_meters(point.latitude, zoom),
        )
        return offset.copy()

    def place(self, node: SceneNode) -> Pose:
        """Stage 2: move the grid node using the latest anchor pose.

        On failure the node keeps its previous placement.
        """
        anchor_in_fixed = self._lookup(self.anchor_frame, None)
        offset = self._anchor_offset
        node.position = anchor_in_fixed.translation + quat.rotate(anchor_in_fixed.rotation, offset)
        node.orientation = anchor_in_fixed.rotation.copy()
        return anchor_in_fixed

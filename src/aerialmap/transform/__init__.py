"""Frame lookup and the two-stage grid placement."""

from aerialmap.transform.frames import FrameLookup, Pose, TransformBuffer
from aerialmap.transform.pipeline import TransformError, TransformPipeline, sub_tile_offset

__all__ = [
    'FrameLookup',
    'Pose',
    'TransformBuffer',
    'TransformError',
    'TransformPipeline',
    'sub_tile_offset',
]

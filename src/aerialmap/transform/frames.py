"""Rigid poses and frame lookup.

A FrameLookup resolves the pose of a named frame with respect to the current
fixed (render) frame at a given time. ``stamp=None`` asks for the latest
available pose.
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from typing import Protocol

import numpy as np

from aerialmap.shared.constants import MAP_FRAME, TRANSFORM_BUFFER_SIZE, TRANSFORM_LOOKUP_TOLERANCE_S
from aerialmap.transform import quaternion as quat

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Pose:
    """Translation (x, y, z) and unit quaternion rotation (w, x, y, z)."""

    translation: np.ndarray
    rotation: np.ndarray

    def __post_init__(self) -> None:
        translation = np.asarray(self.translation, dtype=np.float64).reshape(3)
        if not np.all(np.isfinite(translation)):
            msg = f'Invalid translation {self.translation!r}'
            raise ValueError(msg)
        object.__setattr__(self, 'translation', translation)
        object.__setattr__(self, 'rotation', quat.as_quaternion(self.rotation))

    @classmethod
    def identity(cls) -> Pose:
        return cls(np.zeros(3), quat.IDENTITY)

    def inverse(self) -> Pose:
        r_inv = quat.inverse(self.rotation)
        return Pose(-quat.rotate(r_inv, self.translation), r_inv)

    def compose(self, other: Pose) -> Pose:
        """self * other: other expressed in the parent frame of self."""
        return Pose(
            self.translation + quat.rotate(self.rotation, other.translation),
            quat.multiply(self.rotation, other.rotation),
        )

    def relative_to(self, base: Pose) -> Pose:
        """This pose expressed in the frame of ``base``; both share a parent frame."""
        return base.inverse().compose(self)

    def transform_point(self, point) -> np.ndarray:
        return self.translation + quat.rotate(self.rotation, point)


class FrameLookup(Protocol):
    @property
    def fixed_frame(self) -> str:
        """Name of the current fixed (render) frame."""

    def lookup(self, frame: str, stamp: float | None) -> Pose | None:
        """Pose of ``frame`` w.r.t. the fixed frame, or None if unresolvable."""

    def diagnose(self, frame: str, stamp: float | None) -> str | None:
        """Human-readable reason why ``lookup`` fails, or None if unknown."""


class TransformBuffer:
    """Timestamped poses of frames w.r.t. one fixed frame.

    A stamped lookup uses the newest sample not after the stamp, as long as
    it is at most ``tolerance`` seconds older.
    """

    def __init__(
        self,
        fixed_frame: str = MAP_FRAME,
        *,
        tolerance: float = TRANSFORM_LOOKUP_TOLERANCE_S,
        max_samples: int = TRANSFORM_BUFFER_SIZE,
    ) -> None:
        self._fixed_frame = fixed_frame
        self.tolerance = tolerance
        self.max_samples = max(1, max_samples)
        self._stamps: dict[str, list[float]] = {}
        self._poses: dict[str, list[Pose]] = {}

    @property
    def fixed_frame(self) -> str:
        return self._fixed_frame

    def set_fixed_frame(self, frame: str) -> None:
        """Switch the fixed frame; stored samples refer to the old one and are dropped."""
        if frame != self._fixed_frame:
            logger.info('Fixed frame changed: %s -> %s', self._fixed_frame, frame)
            self._fixed_frame = frame
            self.clear()

    def set_transform(self, frame: str, pose: Pose, stamp: float) -> None:
        stamps = self._stamps.setdefault(frame, [])
        poses = self._poses.setdefault(frame, [])
        idx = bisect.bisect_right(stamps, stamp)
        stamps.insert(idx, stamp)
        poses.insert(idx, pose)
        if len(stamps) > self.max_samples:
            del stamps[0]
            del poses[0]

    def clear(self) -> None:
        self._stamps.clear()
        self._poses.clear()

    def _sample_index(self, frame: str, stamp: float) -> int | None:
        stamps = self._stamps.get(frame)
        if not stamps:
            return None
        idx = bisect.bisect_right(stamps, stamp) - 1
        if idx < 0 or stamp - stamps[idx] > self.tolerance:
            return None
        return idx

    def lookup(self, frame: str, stamp: float | None) -> Pose | None:
        if frame == self._fixed_frame:
            return Pose.identity()
        poses = self._poses.get(frame)
        if not poses:
            return None
        if stamp is None:
            return poses[-1]
        idx = self._sample_index(frame, stamp)
        return None if idx is None else poses[idx]

    def diagnose(self, frame: str, stamp: float | None) -> str | None:
        if frame == self._fixed_frame:
            return None
        stamps = self._stamps.get(frame)
        if not stamps:
            return f'Frame [{frame}] does not exist'
        if stamp is None or self._sample_index(frame, stamp) is not None:
            return None
        if stamp < stamps[0]:
            return (
                f'Lookup of [{frame}] would require extrapolation into the past: '
                f'requested {stamp:.3f}, earliest data {stamps[0]:.3f}'
            )
        if stamp > stamps[-1]:
            return (
                f'Lookup of [{frame}] would require extrapolation into the future: '
                f'requested {stamp:.3f}, latest data {stamps[-1]:.3f}'
            )
        return f'No data for [{frame}] within {self.tolerance:.3f}s of {stamp:.3f}'

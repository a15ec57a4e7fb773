"""Unit quaternion helpers on numpy arrays, component order (w, x, y, z)."""

from __future__ import annotations

import numpy as np

IDENTITY = np.array([1.0, 0.0, 0.0, 0.0])


def as_quaternion(q) -> np.ndarray:
    """Normalized float64 copy of a quaternion-like sequence."""
    arr = np.asarray(q, dtype=np.float64).reshape(4)
    norm = np.linalg.norm(arr)
    if norm == 0.0 or not np.isfinite(norm):
        msg = f'Invalid quaternion {q!r}'
        raise ValueError(msg)
    return arr / norm


def multiply(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Hamilton product a * b (apply b first, then a)."""
    aw, ax, ay, az = a
    bw, bx, by, bz = b
    return np.array([
        aw * bw - ax * bx - ay * by - az * bz,
        aw * bx + ax * bw + ay * bz - az * by,
        aw * by - ax * bz + ay * bw + az * bx,
        aw * bz + ax * by - ay * bx + az * bw,
    ])


def inverse(q: np.ndarray) -> np.ndarray:
    """Inverse of a unit quaternion (its conjugate)."""
    return np.array([q[0], -q[1], -q[2], -q[3]])


def rotate(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Rotate a 3-vector by a unit quaternion."""
    w = q[0]
    u = np.asarray(q[1:], dtype=np.float64)
    v = np.asarray(v, dtype=np.float64)
    t = 2.0 * np.cross(u, v)
    return v + w * t + np.cross(u, t)


def from_axis_angle(axis, angle_rad: float) -> np.ndarray:
    axis = np.asarray(axis, dtype=np.float64)
    axis = axis / np.linalg.norm(axis)
    half = 0.5 * angle_rad
    return np.concatenate(([np.cos(half)], np.sin(half) * axis))


def from_yaw(yaw_rad: float) -> np.ndarray:
    """Rotation about +z."""
    return from_axis_angle((0.0, 0.0, 1.0), yaw_rad)

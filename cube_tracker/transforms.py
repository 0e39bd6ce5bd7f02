"""Vector and quaternion utilities for marker pose handling.

Quaternions are numpy arrays laid out as [w, x, y, z]. scipy's Rotation
uses [x, y, z, w]; the conversion happens only inside this module.
"""

from __future__ import annotations

import math

import numpy as np
from scipy.spatial.transform import Rotation, Slerp

_EPS = 1e-9


def q_identity() -> np.ndarray:
    return np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float64)


def q_normalize(q: np.ndarray) -> np.ndarray:
    q = np.asarray(q, dtype=np.float64)
    n = float(np.linalg.norm(q))
    if n < 1e-12:
        return q_identity()
    return q / n


def _to_rotation(q: np.ndarray) -> Rotation:
    w, x, y, z = q_normalize(q)
    return Rotation.from_quat([x, y, z, w])


def _from_rotation(rot: Rotation) -> np.ndarray:
    """[w, x, y, z] with w >= 0."""
    x, y, z, w = rot.as_quat()
    q = np.array([w, x, y, z], dtype=np.float64)
    return -q if q[0] < 0.0 else q


def q_conj(q: np.ndarray) -> np.ndarray:
    return np.array([q[0], -q[1], -q[2], -q[3]], dtype=np.float64)


def q_mul(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    # NaN components pass through to the result.
    aw, ax, ay, az = a
    bw, bx, by, bz = b
    return np.array(
        [
            aw * bw - ax * bx - ay * by - az * bz,
            aw * bx + ax * bw + ay * bz - az * by,
            aw * by - ax * bz + ay * bw + az * bx,
            aw * bz + ax * by - ay * bx + az * bw,
        ],
        dtype=np.float64,
    )


def q_rotate_vec(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Rotate vector v by unit quaternion q: v' = q*(0,v)*q^{-1}."""
    q = q_normalize(q)
    vq = np.array([0.0, float(v[0]), float(v[1]), float(v[2])], dtype=np.float64)
    return q_mul(q_mul(q, vq), q_conj(q))[1:]


def euler_to_q(x_deg: float, y_deg: float, z_deg: float) -> np.ndarray:
    """
    Engine-style Euler angles in degrees.

    The rotation is applied about z first, then x, then y:
      q = q_y * q_x * q_z
    which is scipy's intrinsic "YXZ" sequence.
    """
    return _from_rotation(Rotation.from_euler("YXZ", [y_deg, x_deg, z_deg], degrees=True))


def _clamp01(t: float) -> float:
    return min(1.0, max(0.0, float(t)))


def q_slerp(a: np.ndarray, b: np.ndarray, t: float) -> np.ndarray:
    """
    Spherical interpolation along the shortest arc, t clamped to [0, 1].

    The result is kept in the hemisphere of `a`.
    """
    t = _clamp01(t)
    a = q_normalize(a)
    b = q_normalize(b)
    if t == 0.0:
        return a.copy()
    key_rots = Rotation.from_quat([_to_rotation(a).as_quat(), _to_rotation(b).as_quat()])
    out = _from_rotation(Slerp([0.0, 1.0], key_rots)(t))
    if float(np.dot(out, a)) < 0.0:
        out = -out
    return out


def v_lerp(a: np.ndarray, b: np.ndarray, t: float) -> np.ndarray:
    t = _clamp01(t)
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    return a + (b - a) * t


def _orthogonal_axis(u: np.ndarray) -> np.ndarray:
    axis = np.cross(u, [1.0, 0.0, 0.0])
    if np.linalg.norm(axis) < 1e-6:
        axis = np.cross(u, [0.0, 1.0, 0.0])
    return axis / np.linalg.norm(axis)


def v_slerp(a: np.ndarray, b: np.ndarray, t: float) -> np.ndarray:
    """
    Interpolate two vectors as directions.

    The direction is rotated by the interpolated angle and the magnitude is
    interpolated linearly. Zero-length and parallel inputs fall back to
    linear interpolation. Antiparallel inputs turn about an axis orthogonal
    to `a` (the one from `a x X`, or `a x Y` when `a` lies along X), so the
    result never passes through the origin.
    """
    t = _clamp01(t)
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    la = float(np.linalg.norm(a))
    lb = float(np.linalg.norm(b))
    if la < _EPS or lb < _EPS:
        return v_lerp(a, b, t)

    ua = a / la
    ub = b / lb
    dot = float(np.clip(np.dot(ua, ub), -1.0, 1.0))
    magnitude = la + (lb - la) * t
    theta = math.acos(dot)
    sin_theta = math.sin(theta)
    if abs(sin_theta) < 1e-6:
        if dot > 0.0:
            return v_lerp(a, b, t)
        turn = Rotation.from_rotvec(_orthogonal_axis(ua) * (math.pi * t))
        return turn.apply(ua) * magnitude

    direction = (math.sin((1.0 - t) * theta) * ua + math.sin(t * theta) * ub) / sin_theta
    return direction * magnitude


def has_nan(*arrays) -> bool:
    return any(bool(np.isnan(np.asarray(a, dtype=np.float64)).any()) for a in arrays)


def rotmat_to_q(R: np.ndarray) -> np.ndarray:
    """Convert 3x3 rotation matrix to unit quaternion [w, x, y, z]."""
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"Expected 3x3 rotation matrix, got {R.shape}")
    return _from_rotation(Rotation.from_matrix(R))


def rvec_to_q(rvec: np.ndarray) -> np.ndarray:
    """Convert an OpenCV rotation vector (3,) or (3,1) to a quaternion."""
    rvec = np.asarray(rvec, dtype=np.float64).reshape(3)
    return _from_rotation(Rotation.from_rotvec(rvec))

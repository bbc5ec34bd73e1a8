"""Rigid transformations with JPL quaternions and pose covariance blocks."""

from __future__ import annotations

import math

import numpy as np

COV_P = 0
"""Start row/column of the position block in a 6x6 pose covariance."""
COV_Q = 3
"""Start row/column of the orientation block in a 6x6 pose covariance."""


def _cross_matrix(v: np.ndarray) -> np.ndarray:
    return np.array(
        [
            [0.0, -v[2], v[1]],
            [v[2], 0.0, -v[0]],
            [-v[1], v[0], 0.0],
        ]
    )


def quat_multiply(a, b) -> np.ndarray:
    """Multiply two JPL quaternions given as ``(x, y, z, w)``.

    The product satisfies ``R(a * b) == R(a) @ R(b)``.
    """
    qa = np.asarray(a, dtype=float)
    qb = np.asarray(b, dtype=float)
    va, wa = qa[:3], qa[3]
    vb, wb = qb[:3], qb[3]
    w = wa * wb - float(np.dot(va, vb))
    v = wa * vb + wb * va - np.cross(va, vb)
    return np.array([v[0], v[1], v[2], w])


def quat_to_rotation(q) -> np.ndarray:
    """Return the rotation matrix of a JPL quaternion ``(x, y, z, w)``."""
    quat = np.asarray(q, dtype=float)
    v, w = quat[:3], quat[3]
    return (
        (2.0 * w * w - 1.0) * np.eye(3)
        - 2.0 * w * _cross_matrix(v)
        + 2.0 * np.outer(v, v)
    )


def _rotation_to_quat(c: np.ndarray) -> np.ndarray:
    """Return the unit JPL quaternion of a rotation matrix."""
    diag_sum = float(c[0, 0] + c[1, 1] + c[2, 2])
    if diag_sum > 0.0:
        s = 2.0 * math.sqrt(diag_sum + 1.0)
        w = 0.25 * s
        x = (c[2, 1] - c[1, 2]) / s
        y = (c[0, 2] - c[2, 0]) / s
        z = (c[1, 0] - c[0, 1]) / s
    elif c[0, 0] > c[1, 1] and c[0, 0] > c[2, 2]:
        s = 2.0 * math.sqrt(1.0 + c[0, 0] - c[1, 1] - c[2, 2])
        w = (c[2, 1] - c[1, 2]) / s
        x = 0.25 * s
        y = (c[0, 1] + c[1, 0]) / s
        z = (c[0, 2] + c[2, 0]) / s
    elif c[1, 1] > c[2, 2]:
        s = 2.0 * math.sqrt(1.0 + c[1, 1] - c[0, 0] - c[2, 2])
        w = (c[0, 2] - c[2, 0]) / s
        x = (c[0, 1] + c[1, 0]) / s
        y = 0.25 * s
        z = (c[1, 2] + c[2, 1]) / s
    else:
        s = 2.0 * math.sqrt(1.0 + c[2, 2] - c[0, 0] - c[1, 1])
        w = (c[1, 0] - c[0, 1]) / s
        x = (c[0, 2] + c[2, 0]) / s
        y = (c[1, 2] + c[2, 1]) / s
        z = 0.25 * s
    # Hamilton (x, y, z, w) computed above; the JPL quaternion is its conjugate.
    quat = np.array([-x, -y, -z, w])
    return quat / np.linalg.norm(quat)


class Transformation:
    """A rigid transformation ``[C(q) t; 0 1]`` with a JPL quaternion."""

    __slots__ = ("q", "t")

    def __init__(self, q=(0.0, 0.0, 0.0, 1.0), t=(0.0, 0.0, 0.0)):
        quat = np.array(q, dtype=float).ravel()
        trans = np.array(t, dtype=float).ravel()
        if quat.shape != (4,):
            raise ValueError("quaternion must have 4 components (x, y, z, w)")
        if trans.shape != (3,):
            raise ValueError("translation must have 3 components")
        self.q = quat
        self.t = trans

    @classmethod
    def from_matrix(cls, matrix) -> "Transformation":
        """Build a transformation from a 4x4 homogeneous matrix."""
        m = np.asarray(matrix, dtype=float)
        if m.shape != (4, 4):
            raise ValueError("a homogeneous transformation must be 4x4")
        return cls(_rotation_to_quat(m[:3, :3]), m[:3, 3])

    def rotation_matrix(self) -> np.ndarray:
        """Return the 3x3 rotation matrix."""
        return quat_to_rotation(self.q)

    def matrix(self) -> np.ndarray:
        """Return the 4x4 homogeneous matrix."""
        m = np.eye(4)
        m[:3, :3] = self.rotation_matrix()
        m[:3, 3] = self.t
        return m

    def inverse(self) -> "Transformation":
        """Return the inverse transformation."""
        c_t = self.rotation_matrix().T
        q_inv = np.array([-self.q[0], -self.q[1], -self.q[2], self.q[3]])
        return Transformation(q_inv, -c_t @ self.t)

    def normalized(self) -> "Transformation":
        """Return a copy whose quaternion has unit length."""
        norm = float(np.linalg.norm(self.q))
        if norm == 0.0:
            raise ValueError("cannot normalize a zero quaternion")
        return Transformation(self.q / norm, self.t)

    def __mul__(self, other):
        if not isinstance(other, Transformation):
            return NotImplemented
        return Transformation(
            quat_multiply(self.q, other.q),
            self.rotation_matrix() @ other.t + self.t,
        )

    def __repr__(self) -> str:
        return f"Transformation(q={self.q.tolist()}, t={self.t.tolist()})"


def sincos(x: float) -> tuple[float, float]:
    """Return ``(sin(x), cos(x))``."""
    return math.sin(x), math.cos(x)


def _cov_matrix(cov) -> np.ndarray:
    values = np.array(cov, dtype=float).ravel()
    if values.size != 36:
        raise ValueError("a pose covariance holds exactly 36 values")
    # The flat array is read column by column.
    return values.reshape((6, 6), order="F")


def _check_start(start_row: int, start_col: int) -> None:
    for start in (start_row, start_col):
        if not 0 <= start <= 3:
            raise ValueError("block start must lie between 0 and 3")


def cov_block(cov, start_row: int, start_col: int) -> np.ndarray:
    """Return the 3x3 block of a flat 36-entry pose covariance."""
    _check_start(start_row, start_col)
    matrix = _cov_matrix(cov)
    return matrix[start_row:start_row + 3, start_col:start_col + 3].copy()


def set_cov_block(cov, block, start_row: int, start_col: int) -> np.ndarray:
    """Return a copy of ``cov`` with a 3x3 block replaced.

    Off-diagonal blocks are mirrored, transposed, into the opposite block.
    """
    _check_start(start_row, start_col)
    new_block = np.asarray(block, dtype=float)
    if new_block.shape != (3, 3):
        raise ValueError("covariance block must be 3x3")
    matrix = _cov_matrix(cov)
    matrix[start_row:start_row + 3, start_col:start_col + 3] = new_block
    if start_row != start_col:
        matrix[start_col:start_col + 3, start_row:start_row + 3] = new_block.T
    return matrix.ravel(order="F")
"""SE(3) transformation utilities for marker pose handling."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import cv2
import numpy as np
from scipy.spatial.transform import Rotation


def rvec_tvec_to_matrix(rvec: np.ndarray, tvec: np.ndarray) -> np.ndarray:
    """
    Convert rotation vector and translation vector to 4x4 transformation matrix.

    Args:
        rvec: Rotation vector (3,) or (3,1)
        tvec: Translation vector (3,) or (3,1)

    Returns:
        4x4 homogeneous transformation matrix
    """
    rvec = np.array(rvec, dtype=np.float64).reshape(3)
    tvec = np.array(tvec, dtype=np.float64).reshape(3)

    R, _ = cv2.Rodrigues(rvec)

    T = np.eye(4)
    T[:3, :3] = R
    T[:3, 3] = tvec

    return T


def invert_transform(T: np.ndarray) -> np.ndarray:
    """
    Invert a 4x4 homogeneous transformation matrix.

    For SE(3): T^-1 = [R^T, -R^T * t; 0, 1]
    """
    T_inv = np.eye(4)
    R = T[:3, :3]
    t = T[:3, 3]

    R_T = R.T
    T_inv[:3, :3] = R_T
    T_inv[:3, 3] = -R_T @ t

    return T_inv


def normalize_quaternion(q: Sequence[float]) -> np.ndarray:
    """
    Unit-normalise an (x, y, z, w) quaternion and flip it so w >= 0.

    Raises ValueError for a zero or non-finite quaternion.
    """
    q = np.array(q, dtype=np.float64).reshape(4)
    n = float(np.linalg.norm(q))
    if not np.isfinite(n) or n < 1e-12:
        raise ValueError(f"degenerate quaternion: {q.tolist()}")
    q = q / n
    if q[3] < 0.0:
        q = -q
    return q


def rotation_matrix_to_quaternion(R: np.ndarray) -> np.ndarray:
    """Quaternion (x, y, z, w) of a proper rotation matrix."""
    return normalize_quaternion(Rotation.from_matrix(np.asarray(R, dtype=np.float64)).as_quat())


@dataclass(frozen=True)
class RigidTransform:
    """
    Rigid-body transform `target <- source`.

    Applying it to a point p expressed in the source frame yields
    R @ p + t in the target frame. Rotation is stored as a unit
    quaternion (x, y, z, w).
    """

    translation: np.ndarray
    rotation: np.ndarray

    @classmethod
    def create(cls, translation: Sequence[float], rotation: Sequence[float]) -> "RigidTransform":
        t = np.array(translation, dtype=np.float64).reshape(3)
        if not np.all(np.isfinite(t)):
            raise ValueError(f"non-finite translation: {t.tolist()}")
        return cls(t, normalize_quaternion(rotation))

    @classmethod
    def identity(cls) -> "RigidTransform":
        return cls(np.zeros(3), np.array([0.0, 0.0, 0.0, 1.0]))

    @classmethod
    def from_matrix(cls, T: np.ndarray) -> "RigidTransform":
        T = np.asarray(T, dtype=np.float64)
        return cls.create(T[:3, 3], rotation_matrix_to_quaternion(T[:3, :3]))

    @classmethod
    def from_rvec_tvec(cls, rvec: np.ndarray, tvec: np.ndarray) -> "RigidTransform":
        return cls.from_matrix(rvec_tvec_to_matrix(rvec, tvec))

    @property
    def rotation_matrix(self) -> np.ndarray:
        return Rotation.from_quat(self.rotation).as_matrix()

    def as_matrix(self) -> np.ndarray:
        T = np.eye(4)
        T[:3, :3] = self.rotation_matrix
        T[:3, 3] = self.translation
        return T

    def inverse(self) -> "RigidTransform":
        return RigidTransform.from_matrix(invert_transform(self.as_matrix()))

    def compose(self, other: "RigidTransform") -> "RigidTransform":
        """
        Chain two transforms: (self ∘ other).

        With self = T_a_b and other = T_b_c the result is T_a_c:
        rotation R_ab @ R_bc, translation R_ab @ t_bc + t_ab.
        """
        rot = Rotation.from_quat(self.rotation) * Rotation.from_quat(other.rotation)
        t = Rotation.from_quat(self.rotation).apply(other.translation) + self.translation
        return RigidTransform.create(t, rot.as_quat())

    def __matmul__(self, other: "RigidTransform") -> "RigidTransform":
        return self.compose(other)

    def apply(self, points: np.ndarray) -> np.ndarray:
        pts = np.asarray(points, dtype=np.float64)
        return Rotation.from_quat(self.rotation).apply(pts) + self.translation

    def is_close(self, other: "RigidTransform", atol: float = 1e-6) -> bool:
        # q and -q are the same rotation
        same_rot = min(
            np.linalg.norm(self.rotation - other.rotation),
            np.linalg.norm(self.rotation + other.rotation),
        ) <= atol
        return bool(same_rot and np.allclose(self.translation, other.translation, atol=atol))

"""Lie algebra operations for SE(3) and SO(3).

Pure NumPy implementation, with scipy used for quaternion conversions.
Based on Lynch and Park (2017), Chapters 3 and 8.

Twists and spatial accelerations are ordered [omega, v] (angular first),
wrenches and momenta [moment, force].
"""

from typing import Tuple

import numpy as np
from scipy.spatial.transform import Rotation


def skew(v: np.ndarray) -> np.ndarray:
    """Convert a 3-vector to a skew-symmetric matrix.

    [v]^ = [[ 0, -v3,  v2],
            [v3,   0, -v1],
            [-v2, v1,   0]]

    Args:
        v: (3,) vector.

    Returns:
        (3, 3) skew-symmetric matrix.
    """
    v = np.asarray(v, dtype=np.float64).flatten()
    return np.array([
        [0, -v[2], v[1]],
        [v[2], 0, -v[0]],
        [-v[1], v[0], 0]
    ], dtype=np.float64)


def unskew(S: np.ndarray) -> np.ndarray:
    """Convert a skew-symmetric matrix to a 3-vector.

    Args:
        S: (3, 3) skew-symmetric matrix.

    Returns:
        (3,) vector.
    """
    return np.array([S[2, 1], S[0, 2], S[1, 0]], dtype=np.float64)


def so3_exp(omega: np.ndarray, theta: float = None) -> np.ndarray:
    """Compute the matrix exponential of so(3) element.

    Rodrigues' formula:
        exp([omega]^*theta) = I + sin(theta)*[omega]^ + (1-cos(theta))*[omega]^2

    Args:
        omega: (3,) rotation axis (unit vector if theta given separately).
        theta: Rotation angle [rad]. If None, uses norm of omega.

    Returns:
        (3, 3) rotation matrix in SO(3).
    """
    omega = np.asarray(omega, dtype=np.float64).flatten()

    if theta is None:
        theta = np.linalg.norm(omega)
        if theta < 1e-10:
            return np.eye(3)
        omega = omega / theta

    if abs(theta) < 1e-10:
        return np.eye(3)

    omega_hat = skew(omega)
    omega_hat_sq = omega_hat @ omega_hat

    R = np.eye(3) + np.sin(theta) * omega_hat + (1 - np.cos(theta)) * omega_hat_sq
    return R


def adjoint(R: np.ndarray, p: np.ndarray) -> np.ndarray:
    """Compute the Adjoint representation [Ad_T] of T = (R, p).

        [Ad_T] = [[R,       0],
                  [[p]*R,   R]]

    Maps twists [omega, v] expressed in the from-frame of T to the to-frame.

    Args:
        R: (3, 3) rotation matrix.
        p: (3,) translation vector.

    Returns:
        (6, 6) Adjoint matrix.
    """
    Ad_T = np.zeros((6, 6), dtype=np.float64)
    Ad_T[:3, :3] = R
    Ad_T[3:, :3] = skew(p) @ R
    Ad_T[3:, 3:] = R
    return Ad_T


def ad(twist: np.ndarray) -> np.ndarray:
    """Compute the Lie bracket operator [ad_V].

    Based on Equation 8.38:
        [ad_V] = [[[omega],    0    ],
                  [ [v]  , [omega] ]]

    where twist V = (omega, v). [ad_V] @ W is the spatial motion cross
    product V x W.

    Args:
        twist: (6,) twist [omega, v].

    Returns:
        (6, 6) ad matrix.
    """
    twist = np.asarray(twist, dtype=np.float64).flatten()
    omega_hat = skew(twist[:3])

    ad_V = np.zeros((6, 6), dtype=np.float64)
    ad_V[:3, :3] = omega_hat
    ad_V[3:, :3] = skew(twist[3:])
    ad_V[3:, 3:] = omega_hat

    return ad_V


def ad_transpose(twist: np.ndarray) -> np.ndarray:
    """Compute the transpose of the Lie bracket operator [ad_V]^T.

    -[ad_V]^T @ F is the spatial force cross product V x* F.

    Args:
        twist: (6,) twist [omega, v].

    Returns:
        (6, 6) ad^T matrix.
    """
    return ad(twist).T


def orthonormal_complement(axis: np.ndarray) -> np.ndarray:
    """Two unit vectors spanning the plane perpendicular to ``axis``.

    Args:
        axis: (3,) unit vector.

    Returns:
        (3, 2) matrix whose columns together with ``axis`` form a right-handed
        orthonormal basis.
    """
    axis = np.asarray(axis, dtype=np.float64).flatten()
    # pick the coordinate axis least aligned with the input
    helper = np.zeros(3)
    helper[np.argmin(np.abs(axis))] = 1.0
    n1 = np.cross(axis, helper)
    n1 /= np.linalg.norm(n1)
    n2 = np.cross(axis, n1)
    return np.column_stack([n1, n2])


# Quaternions are stored scalar-first: [w, x, y, z].

def quat_to_rotation(quat: np.ndarray) -> Rotation:
    """Convert a scalar-first quaternion to a scipy Rotation."""
    w, x, y, z = np.asarray(quat, dtype=np.float64).flatten()
    return Rotation.from_quat([x, y, z, w])


def rotation_to_quat(rotation: Rotation) -> np.ndarray:
    """Convert a scipy Rotation to a scalar-first quaternion."""
    x, y, z, w = rotation.as_quat()
    return np.array([w, x, y, z], dtype=np.float64)


def quat_multiply(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """Hamilton product q1 * q2 of scalar-first quaternions."""
    w1, x1, y1, z1 = q1
    w2, x2, y2, z2 = q2
    return np.array([
        w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
        w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
        w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
        w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
    ], dtype=np.float64)


def random_unit_quaternion() -> np.ndarray:
    """Draw a quaternion uniformly distributed on the unit 3-sphere.

    Uses the global ``np.random`` state so that ``np.random.seed`` makes
    draws reproducible.
    """
    quat = np.random.normal(size=4)
    return quat / np.linalg.norm(quat)


def rotation_vector_rate(phi: np.ndarray, omega: np.ndarray) -> np.ndarray:
    """Time derivative of a rotation vector given body angular velocity.

    Args:
        phi: (3,) rotation vector.
        omega: (3,) angular velocity expressed in the rotated (body) frame.

    Returns:
        (3,) rate of change of ``phi``.
    """
    theta = np.linalg.norm(phi)
    phi_dot = np.array(omega, dtype=np.float64)
    if theta > np.finfo(np.float64).eps:
        phi_cross_omega = np.cross(phi, omega)
        k = (1.0 - (theta * np.sin(theta)) / (2.0 * (1.0 - np.cos(theta)))) / theta ** 2
        phi_dot += 0.5 * phi_cross_omega + k * np.cross(phi, phi_cross_omega)
    return phi_dot


def rotation_vector_between(R0: Rotation, R: Rotation) -> Tuple[np.ndarray, Rotation]:
    """Rotation vector of R0^{-1} * R together with R0^{-1}.

    Args:
        R0: Reference rotation.
        R: Rotation to express relative to ``R0``.

    Returns:
        Tuple of the (3,) rotation vector and the inverse reference rotation.
    """
    R0_inv = R0.inv()
    return (R0_inv * R).as_rotvec(), R0_inv

"""Spatial inertia matrix utilities.

This module provides functions for computing 6x6 spatial inertia matrices
using the twist convention [ω, v] (angular velocity, linear velocity), and
the frame-aware ``SpatialInertia`` used by the mechanism state.

The spatial inertia matrix relates twists to wrenches:
    F = G @ V̇ - ad_V^T @ G @ V

where F = [τ, f] is a wrench (torque, force) in [ω, v] convention.
"""

from typing import Optional, Union

import numpy as np

from mechanism_dynamics.lie_algebra import ad_transpose, skew, unskew
from mechanism_dynamics.spatial import (
    CartesianFrame3D,
    GeometricJacobian,
    Momentum,
    MomentumMatrix,
    SpatialAcceleration,
    Transform3D,
    Twist,
    Wrench,
    framecheck,
)


def spatial_inertia_at_com(
    mass: float,
    inertia: np.ndarray,
) -> np.ndarray:
    """Compute 6x6 spatial inertia matrix at center of mass.

    For convention [ω, v]:
        G = [[I_c,    0    ],
             [0,      m*I_3]]

    Args:
        mass: Link mass [kg].
        inertia: (3, 3) rotational inertia tensor at CoM [kg*m^2].

    Returns:
        (6, 6) spatial inertia matrix at CoM.
    """
    G = np.zeros((6, 6))
    G[:3, :3] = np.asarray(inertia)
    G[3:, 3:] = mass * np.eye(3)
    return G


def spatial_inertia_at_frame(
    mass: float,
    inertia_at_com: np.ndarray,
    com_position: np.ndarray,
) -> np.ndarray:
    """Compute 6x6 spatial inertia matrix at a frame displaced from the CoM.

    When the frame is displaced from CoM by vector p (from frame origin to
    CoM), the parallel axis theorem gives:
        G = [[I_c + m*[p]×[p]×^T,    m*[p]×   ],
             [m*[p]×^T,              m*I_3    ]]

    Args:
        mass: Link mass [kg].
        inertia_at_com: (3, 3) rotational inertia tensor at CoM [kg*m^2].
        com_position: (3,) position vector from frame origin to CoM [m].

    Returns:
        (6, 6) spatial inertia matrix at the frame origin.
    """
    p = np.asarray(com_position, dtype=np.float64).ravel()
    p_skew = skew(p)

    G = np.zeros((6, 6))
    # [p]×[p]×^T = ||p||^2*I - p*p^T
    G[:3, :3] = np.asarray(inertia_at_com) + mass * (np.dot(p, p) * np.eye(3) - np.outer(p, p))
    G[:3, 3:] = mass * p_skew
    G[3:, :3] = -mass * p_skew
    G[3:, 3:] = mass * np.eye(3)
    return G


def transform_spatial_inertia(
    G: np.ndarray,
    tf: Transform3D,
) -> np.ndarray:
    """Transform spatial inertia matrix to a new frame.

    If G_a is the spatial inertia in frame A, and T_ba is the
    transformation from A to B, then:
        G_b = Ad_{T_ba}^{-T} @ G_a @ Ad_{T_ba}^{-1}

    Args:
        G: (6, 6) spatial inertia matrix in frame A.
        tf: Transform from frame A to frame B.

    Returns:
        (6, 6) spatial inertia matrix in frame B.
    """
    Ad_inv = tf.inv().adjoint()
    return Ad_inv.T @ G @ Ad_inv


def is_positive_definite(G: np.ndarray, tol: float = 1e-10) -> bool:
    """Check if spatial inertia matrix is positive definite."""
    eigenvalues = np.linalg.eigvalsh(G)
    return bool(np.all(eigenvalues > tol))


def is_symmetric(G: np.ndarray, tol: float = 1e-10) -> bool:
    """Check if spatial inertia matrix is symmetric."""
    return np.allclose(G, G.T, atol=tol)


class SpatialInertia:
    """A 6x6 spatial inertia expressed in ``frame``.

    Attributes:
        frame: Frame the inertia is expressed in.
        matrix: (6, 6) symmetric positive semi-definite matrix.
    """

    __slots__ = ('frame', 'matrix')

    def __init__(self, frame: CartesianFrame3D, matrix: np.ndarray) -> None:
        self.frame = frame
        self.matrix = np.asarray(matrix, dtype=np.float64).reshape(6, 6)

    @classmethod
    def from_mass_properties(
        cls,
        frame: CartesianFrame3D,
        mass: float,
        com: Optional[np.ndarray] = None,
        inertia_at_com: Optional[np.ndarray] = None,
    ) -> 'SpatialInertia':
        """Build from mass, CoM position and rotational inertia about the CoM.

        Args:
            frame: Frame in which ``com`` and ``inertia_at_com`` are expressed.
            mass: Mass [kg].
            com: (3,) CoM position in ``frame`` [m]. Defaults to the origin.
            inertia_at_com: (3, 3) inertia about the CoM [kg*m^2]. Defaults
                to zero (point mass).
        """
        com = np.zeros(3) if com is None else com
        inertia_at_com = np.zeros((3, 3)) if inertia_at_com is None else inertia_at_com
        return cls(frame, spatial_inertia_at_frame(mass, inertia_at_com, com))

    @classmethod
    def zero(cls, frame: CartesianFrame3D) -> 'SpatialInertia':
        return cls(frame, np.zeros((6, 6)))

    @property
    def mass(self) -> float:
        return float(self.matrix[3, 3])

    @property
    def cross_part(self) -> np.ndarray:
        """Mass times CoM position, m*p."""
        return unskew(self.matrix[:3, 3:])

    @property
    def center_of_mass(self) -> np.ndarray:
        mass = self.mass
        if mass == 0.0:
            return np.zeros(3)
        return self.cross_part / mass

    @property
    def moment(self) -> np.ndarray:
        """(3, 3) rotational inertia about the origin of ``frame``."""
        return self.matrix[:3, :3]

    def __add__(self, other: 'SpatialInertia') -> 'SpatialInertia':
        if not isinstance(other, SpatialInertia):
            return NotImplemented
        framecheck(other.frame, self.frame)
        return SpatialInertia(self.frame, self.matrix + other.matrix)

    def transform(self, tf: Transform3D) -> 'SpatialInertia':
        framecheck(self.frame, tf.from_frame)
        return SpatialInertia(tf.to_frame, transform_spatial_inertia(self.matrix, tf))

    def __matmul__(
        self, other: Union[Twist, SpatialAcceleration, GeometricJacobian]
    ) -> Union[Momentum, Wrench, MomentumMatrix]:
        if isinstance(other, Twist):
            framecheck(other.frame, self.frame)
            return Momentum.from_vector(self.frame, self.matrix @ other.vector)
        if isinstance(other, SpatialAcceleration):
            framecheck(other.frame, self.frame)
            return Wrench.from_vector(self.frame, self.matrix @ other.vector)
        if isinstance(other, GeometricJacobian):
            framecheck(other.frame, self.frame)
            return MomentumMatrix.from_matrix(self.frame, self.matrix @ other.matrix)
        return NotImplemented

    def kinetic_energy(self, twist: Twist) -> float:
        """T = 1/2 V^T G V."""
        framecheck(twist.frame, self.frame)
        V = twist.vector
        return 0.5 * float(V @ self.matrix @ V)

    def newton_euler(self, accel: SpatialAcceleration, twist: Twist) -> Wrench:
        """Net wrench required for the given motion.

        F = G @ V̇ - ad_V^T @ G @ V   (Lynch and Park, Eq. 8.41)
        """
        framecheck(accel.frame, self.frame)
        framecheck(twist.frame, self.frame)
        V = twist.vector
        F = self.matrix @ accel.vector - ad_transpose(V) @ (self.matrix @ V)
        return Wrench.from_vector(self.frame, F)

    def isapprox(self, other: 'SpatialInertia', atol: float = 1e-10) -> bool:
        return self.frame is other.frame and np.allclose(self.matrix, other.matrix, atol=atol)

    def __repr__(self) -> str:
        return (
            f"SpatialInertia(frame={self.frame.name}, mass={self.mass}, "
            f"com={self.center_of_mass.tolist()})"
        )

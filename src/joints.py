"""Joint types and the joints that connect rigid bodies.

A ``JointType`` describes the kinematics of one kind of joint (revolute,
prismatic, fixed, floating) independent of any frames. A ``Joint`` pairs a
joint type with its own ``frame_before`` (fixed to the predecessor body) and
``frame_after`` (fixed to the successor body) and forwards every operation
with those frames filled in.

Joint twists, bias accelerations and motion subspaces describe the motion of
``frame_after`` with respect to ``frame_before``, expressed in ``frame_after``.
The joint transform maps ``frame_after`` coordinates to ``frame_before``.
"""

from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np
from scipy.spatial.transform import Rotation

from mechanism_dynamics.lie_algebra import (
    orthonormal_complement,
    quat_multiply,
    quat_to_rotation,
    random_unit_quaternion,
    rotation_to_quat,
    rotation_vector_between,
    rotation_vector_rate,
    so3_exp,
)
from mechanism_dynamics.spatial import (
    CartesianFrame3D,
    MotionSubspace,
    SpatialAcceleration,
    Transform3D,
    Twist,
    WrenchSubspace,
)


def _unit_axis(axis) -> np.ndarray:
    axis = np.asarray(axis, dtype=np.float64).flatten()
    norm = np.linalg.norm(axis)
    if axis.shape != (3,) or norm < 1e-12:
        raise ValueError(f"Joint axis must be a nonzero 3-vector, got {axis}")
    return axis / norm


class JointType(ABC):
    """Kinematic description of a kind of joint."""

    @property
    @abstractmethod
    def num_positions(self) -> int:
        """Number of configuration variables (nq)."""

    @property
    @abstractmethod
    def num_velocities(self) -> int:
        """Number of velocity variables (nv)."""

    @abstractmethod
    def joint_transform(self, frame_after, frame_before, q: np.ndarray) -> Transform3D:
        """Transform from ``frame_after`` to ``frame_before`` at ``q``."""

    @abstractmethod
    def joint_twist(self, frame_after, frame_before, q: np.ndarray, v: np.ndarray) -> Twist:
        """Twist of ``frame_after`` wrt ``frame_before`` in ``frame_after``."""

    @abstractmethod
    def motion_subspace(self, frame_after, frame_before, q: np.ndarray) -> MotionSubspace:
        """Motion subspace in ``frame_after``, one column per velocity."""

    @abstractmethod
    def constraint_wrench_subspace(self, joint_transform: Transform3D) -> WrenchSubspace:
        """Basis of constraint wrenches in ``frame_after``.

        Its columns are orthogonal to the motion subspace: S^T T = 0.
        """

    def bias_acceleration(
        self, frame_after, frame_before, q: np.ndarray, v: np.ndarray
    ) -> SpatialAcceleration:
        """Joint acceleration at zero v̇. Zero for every joint type here."""
        return SpatialAcceleration.zero(frame_after, frame_before, frame_after)

    def velocity_to_configuration_derivative(self, q: np.ndarray, v: np.ndarray) -> np.ndarray:
        return np.array(v, dtype=np.float64)

    def zero_configuration(self, q: np.ndarray) -> None:
        """Write the zero (identity) configuration into ``q`` in place."""
        q[:] = 0.0

    @abstractmethod
    def rand_configuration(self, q: np.ndarray) -> None:
        """Write a random configuration on the joint's manifold into ``q``."""

    def local_coordinates(
        self, q0: np.ndarray, q: np.ndarray, v: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Chart coordinates of ``q`` around ``q0`` and their rate.

        Returns:
            Tuple (phi, phi_dot), each of length nv.
        """
        return np.asarray(q - q0, dtype=np.float64), np.array(v, dtype=np.float64)

    def global_coordinates(self, q0: np.ndarray, phi: np.ndarray) -> np.ndarray:
        """Inverse of ``local_coordinates``: configuration from chart coordinates."""
        return np.asarray(q0 + phi, dtype=np.float64)

    def normalize_configuration(self, q: np.ndarray) -> None:
        """Project ``q`` back onto the joint's manifold in place."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Revolute(JointType):
    """Single rotational degree of freedom about ``axis``."""

    def __init__(self, axis) -> None:
        self.axis = _unit_axis(axis)
        self._constraint_angular = np.hstack([orthonormal_complement(self.axis), np.zeros((3, 3))])
        self._constraint_linear = np.hstack([np.zeros((3, 2)), np.eye(3)])

    @property
    def num_positions(self) -> int:
        return 1

    @property
    def num_velocities(self) -> int:
        return 1

    def joint_transform(self, frame_after, frame_before, q):
        return Transform3D(frame_after, frame_before, so3_exp(self.axis, q[0]))

    def joint_twist(self, frame_after, frame_before, q, v):
        return Twist(frame_after, frame_before, frame_after, self.axis * v[0], np.zeros(3))

    def motion_subspace(self, frame_after, frame_before, q):
        return MotionSubspace(
            frame_after, frame_before, frame_after,
            self.axis.reshape(3, 1), np.zeros((3, 1)),
        )

    def constraint_wrench_subspace(self, joint_transform):
        return WrenchSubspace(joint_transform.from_frame, self._constraint_angular, self._constraint_linear)

    def rand_configuration(self, q):
        q[:] = np.random.uniform(-np.pi, np.pi, size=1)

    def __repr__(self) -> str:
        return f"Revolute(axis={self.axis.tolist()})"


class Prismatic(JointType):
    """Single translational degree of freedom along ``axis``."""

    def __init__(self, axis) -> None:
        self.axis = _unit_axis(axis)
        self._constraint_angular = np.hstack([np.eye(3), np.zeros((3, 2))])
        self._constraint_linear = np.hstack([np.zeros((3, 3)), orthonormal_complement(self.axis)])

    @property
    def num_positions(self) -> int:
        return 1

    @property
    def num_velocities(self) -> int:
        return 1

    def joint_transform(self, frame_after, frame_before, q):
        return Transform3D(frame_after, frame_before, np.eye(3), self.axis * q[0])

    def joint_twist(self, frame_after, frame_before, q, v):
        return Twist(frame_after, frame_before, frame_after, np.zeros(3), self.axis * v[0])

    def motion_subspace(self, frame_after, frame_before, q):
        return MotionSubspace(
            frame_after, frame_before, frame_after,
            np.zeros((3, 1)), self.axis.reshape(3, 1),
        )

    def constraint_wrench_subspace(self, joint_transform):
        return WrenchSubspace(joint_transform.from_frame, self._constraint_angular, self._constraint_linear)

    def rand_configuration(self, q):
        q[:] = np.random.uniform(-1.0, 1.0, size=1)

    def __repr__(self) -> str:
        return f"Prismatic(axis={self.axis.tolist()})"


class Fixed(JointType):
    """Rigid connection without degrees of freedom."""

    @property
    def num_positions(self) -> int:
        return 0

    @property
    def num_velocities(self) -> int:
        return 0

    def joint_transform(self, frame_after, frame_before, q):
        return Transform3D(frame_after, frame_before)

    def joint_twist(self, frame_after, frame_before, q, v):
        return Twist.zero(frame_after, frame_before, frame_after)

    def motion_subspace(self, frame_after, frame_before, q):
        return MotionSubspace(frame_after, frame_before, frame_after, np.zeros((3, 0)), np.zeros((3, 0)))

    def constraint_wrench_subspace(self, joint_transform):
        return WrenchSubspace(
            joint_transform.from_frame,
            np.hstack([np.eye(3), np.zeros((3, 3))]),
            np.hstack([np.zeros((3, 3)), np.eye(3)]),
        )

    def rand_configuration(self, q):
        pass


class QuaternionFloating(JointType):
    """Six degree-of-freedom joint parameterized by a unit quaternion.

    Configuration q = [w, x, y, z, px, py, pz]: scalar-first rotation of
    ``frame_after`` relative to ``frame_before`` and the position of its
    origin in ``frame_before``. Velocity v = [ω, ν], both expressed in
    ``frame_after``.
    """

    @property
    def num_positions(self) -> int:
        return 7

    @property
    def num_velocities(self) -> int:
        return 6

    def joint_transform(self, frame_after, frame_before, q):
        rotation = quat_to_rotation(q[:4]).as_matrix()
        return Transform3D(frame_after, frame_before, rotation, q[4:7])

    def joint_twist(self, frame_after, frame_before, q, v):
        return Twist(frame_after, frame_before, frame_after, v[:3], v[3:6])

    def motion_subspace(self, frame_after, frame_before, q):
        eye = np.eye(6)
        return MotionSubspace(frame_after, frame_before, frame_after, eye[:3], eye[3:])

    def constraint_wrench_subspace(self, joint_transform):
        return WrenchSubspace(joint_transform.from_frame, np.zeros((3, 0)), np.zeros((3, 0)))

    def velocity_to_configuration_derivative(self, q, v):
        quat = np.asarray(q[:4], dtype=np.float64)
        quat_dot = 0.5 * quat_multiply(quat, np.concatenate([[0.0], v[:3]]))
        position_dot = quat_to_rotation(quat).apply(v[3:6])
        return np.concatenate([quat_dot, position_dot])

    def zero_configuration(self, q):
        q[:4] = [1.0, 0.0, 0.0, 0.0]
        q[4:7] = 0.0

    def rand_configuration(self, q):
        q[:4] = random_unit_quaternion()
        q[4:7] = np.random.normal(size=3)

    def local_coordinates(self, q0, q, v):
        R0 = quat_to_rotation(q0[:4])
        R = quat_to_rotation(q[:4])
        phi_rot, R0_inv = rotation_vector_between(R0, R)
        phi_trans = R0_inv.apply(q[4:7] - q0[4:7])

        phi_rot_dot = rotation_vector_rate(phi_rot, v[:3])
        phi_trans_dot = Rotation.from_rotvec(phi_rot).apply(v[3:6])
        return np.concatenate([phi_rot, phi_trans]), np.concatenate([phi_rot_dot, phi_trans_dot])

    def global_coordinates(self, q0, phi):
        R0 = quat_to_rotation(q0[:4])
        R = R0 * Rotation.from_rotvec(phi[:3])
        quat = rotation_to_quat(R)
        # keep the hemisphere of q0 so that small steps give small changes in q
        if np.dot(quat, q0[:4]) < 0:
            quat = -quat
        position = q0[4:7] + R0.apply(phi[3:6])
        return np.concatenate([quat, position])

    def normalize_configuration(self, q):
        q[:4] /= np.linalg.norm(q[:4])


class Joint:
    """A named joint with its own ``frame_before`` and ``frame_after``.

    Hashable by identity, so joints can key dictionaries.
    """

    def __init__(self, name: str, joint_type: JointType) -> None:
        self.name = name
        self.joint_type = joint_type
        self.frame_before = CartesianFrame3D(f"before_{name}")
        self.frame_after = CartesianFrame3D(f"after_{name}")

    @property
    def num_positions(self) -> int:
        return self.joint_type.num_positions

    @property
    def num_velocities(self) -> int:
        return self.joint_type.num_velocities

    def joint_transform(self, q: np.ndarray) -> Transform3D:
        return self.joint_type.joint_transform(self.frame_after, self.frame_before, q)

    def joint_twist(self, q: np.ndarray, v: np.ndarray) -> Twist:
        return self.joint_type.joint_twist(self.frame_after, self.frame_before, q, v)

    def bias_acceleration(self, q: np.ndarray, v: np.ndarray) -> SpatialAcceleration:
        return self.joint_type.bias_acceleration(self.frame_after, self.frame_before, q, v)

    def motion_subspace(self, q: np.ndarray) -> MotionSubspace:
        return self.joint_type.motion_subspace(self.frame_after, self.frame_before, q)

    def constraint_wrench_subspace(self, joint_transform: Transform3D) -> WrenchSubspace:
        return self.joint_type.constraint_wrench_subspace(joint_transform)

    def velocity_to_configuration_derivative(self, q: np.ndarray, v: np.ndarray) -> np.ndarray:
        return self.joint_type.velocity_to_configuration_derivative(q, v)

    def zero_configuration(self, q: np.ndarray) -> None:
        self.joint_type.zero_configuration(q)

    def rand_configuration(self, q: np.ndarray) -> None:
        self.joint_type.rand_configuration(q)

    def local_coordinates(self, q0, q, v) -> Tuple[np.ndarray, np.ndarray]:
        return self.joint_type.local_coordinates(q0, q, v)

    def global_coordinates(self, q0, phi) -> np.ndarray:
        return self.joint_type.global_coordinates(q0, phi)

    def normalize_configuration(self, q: np.ndarray) -> None:
        self.joint_type.normalize_configuration(q)

    def __repr__(self) -> str:
        return f"Joint({self.name!r}, {self.joint_type!r})"

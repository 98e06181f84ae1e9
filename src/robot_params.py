"""Serial robot parameters and their conversion to a ``Mechanism``.

Robots are described by DH parameters plus per-link mass properties, the
way robot vendors publish them. ``build_mechanism`` turns such a description
into a chain of revolute joints about the local z axes.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Literal, Optional

import numpy as np

from mechanism_dynamics.joints import Joint, Revolute
from mechanism_dynamics.lie_algebra import so3_exp
from mechanism_dynamics.mechanism import Mechanism, RigidBody
from mechanism_dynamics.spatial import CartesianFrame3D, Transform3D
from mechanism_dynamics.spatial_inertia import (
    SpatialInertia,
    is_positive_definite,
    is_symmetric,
    spatial_inertia_at_com,
)

logger = logging.getLogger(__name__)


@dataclass
class RobotParametersBase(ABC):
    """Abstract base class for robot kinematic and dynamic parameters.

    Attributes:
        n_joints: Number of joints in the robot.
        dh_params: DH parameters array of shape (n_joints, 3).
                   For standard DH: each row is [d, a, alpha].
                   For modified DH: each row is [a, d, alpha].
        dh_convention: DH convention used ("standard" or "modified").
        link_masses: Array of link masses [kg] of shape (n_joints,).
        link_com_positions: CoM positions relative to link frame [m],
                            shape (n_joints, 3).
        link_inertias: Inertia tensors at CoM [kg*m^2],
                       shape (n_joints, 3, 3).
    """

    n_joints: int
    dh_params: np.ndarray
    dh_convention: Literal["standard", "modified"]
    link_masses: np.ndarray
    link_com_positions: np.ndarray
    link_inertias: np.ndarray

    def __post_init__(self):
        """Validate array shapes against n_joints."""
        n = self.n_joints
        if self.dh_convention not in ("standard", "modified"):
            raise ValueError(f"dh_convention must be 'standard' or 'modified', got {self.dh_convention!r}")
        expected = {
            'dh_params': (n, 3),
            'link_masses': (n,),
            'link_com_positions': (n, 3),
            'link_inertias': (n, 3, 3),
        }
        for name, shape in expected.items():
            actual = np.shape(getattr(self, name))
            if actual != shape:
                raise ValueError(f"{name} must have shape {shape}, got {actual}")
        if np.any(np.asarray(self.link_masses) <= 0):
            raise ValueError("link_masses must be positive")
        for i, G in enumerate(self.get_all_spatial_inertias_at_com()):
            if not (is_symmetric(G) and is_positive_definite(G)):
                raise ValueError(f"link_inertias[{i}] must be symmetric positive definite")

    @property
    @abstractmethod
    def robot_name(self) -> str:
        """Return the robot model name."""

    def get_spatial_inertia_at_com(self, link_index: int) -> np.ndarray:
        """Get 6x6 spatial inertia matrix at link CoM.

        Args:
            link_index: 0-indexed link number.

        Returns:
            (6, 6) spatial inertia matrix at CoM.
        """
        if not 0 <= link_index < self.n_joints:
            raise ValueError(f"link_index must be 0-{self.n_joints-1}, got {link_index}")
        return spatial_inertia_at_com(self.link_masses[link_index], self.link_inertias[link_index])

    def get_all_spatial_inertias_at_com(self) -> List[np.ndarray]:
        return [self.get_spatial_inertia_at_com(i) for i in range(self.n_joints)]


@dataclass
class UR5eParameters(RobotParametersBase):
    """UR5e robot parameters.

    DH parameters are in Modified DH convention (Craig): [a, d, alpha].
    Inertial properties are approximate values from URDF specifications.
    """

    n_joints: int = 6
    dh_convention: str = "modified"

    dh_params: np.ndarray = field(default_factory=lambda: np.array([
        [0.0,       0.089159,   np.pi / 2],   # Joint 1
        [-0.425,    0.0,        0.0],          # Joint 2
        [-0.392,    0.0,        0.0],          # Joint 3
        [0.0,       0.10915,    np.pi / 2],   # Joint 4
        [0.0,       0.09465,   -np.pi / 2],   # Joint 5
        [0.0,       0.0823,     0.0],          # Joint 6
    ], dtype=np.float64))

    link_masses: np.ndarray = field(default_factory=lambda: np.array([
        3.7,     # Link 1 (shoulder)
        8.393,   # Link 2 (upper arm)
        2.275,   # Link 3 (forearm)
        1.219,   # Link 4 (wrist 1)
        1.219,   # Link 5 (wrist 2)
        0.1879,  # Link 6 (wrist 3)
    ], dtype=np.float64))

    # [x, y, z] in link frame when theta = 0
    link_com_positions: np.ndarray = field(default_factory=lambda: np.array([
        [0.0, -0.02561, 0.00193],
        [-0.2125, 0.0, 0.11336],
        [-0.15, 0.0, 0.0265],
        [0.0, -0.0018, 0.01634],
        [0.0, 0.0018, 0.01634],
        [0.0, 0.0, -0.001159],
    ], dtype=np.float64))

    link_inertias: np.ndarray = field(default_factory=lambda: np.array([
        np.diag([0.010267, 0.010267, 0.00666]),
        np.diag([0.22689, 0.22689, 0.0151074]),
        np.diag([0.049443, 0.049443, 0.004095]),
        np.diag([0.111172, 0.111172, 0.21942]),
        np.diag([0.111172, 0.111172, 0.21942]),
        np.diag([0.0171364, 0.0171364, 0.033822]),
    ], dtype=np.float64))

    @property
    def robot_name(self) -> str:
        return "UR5e"


def create_ur5e_parameters() -> UR5eParameters:
    """Factory function to create UR5e parameters."""
    return UR5eParameters()


def _rot_x_trans(alpha: float, translation: np.ndarray, frame_from, frame_to) -> Transform3D:
    return Transform3D(frame_from, frame_to, so3_exp(np.array([1.0, 0.0, 0.0]), alpha), translation)


def build_mechanism(
    params: RobotParametersBase,
    gravity: Optional[np.ndarray] = None,
) -> Mechanism:
    """Build a serial chain of revolute joints from DH parameters.

    Modified DH (Craig): joint i is mounted on link i-1 with pose
        RotX(alpha_{i-1}) * TransX(a_{i-1}) * TransZ(d_i)
    and link i's frame coincides with the joint's frame_after.

    Standard DH: joint i is mounted at the origin of link i-1's frame and
    link i's frame sits at
        TransZ(d_i) * TransX(a_i) * RotX(alpha_i)
    relative to the joint's frame_after.

    Link CoM positions and inertias are expressed in the link frames.

    Args:
        params: Robot description.
        gravity: (3,) gravity in the base frame. Defaults to [0, 0, -9.81].

    Returns:
        Mechanism with a massless base body named "base" and links
        "link1" ... "linkN" connected by joints "joint1" ... "jointN".
    """
    mechanism = Mechanism(RigidBody("base"), gravity=gravity)
    z_axis = np.array([0.0, 0.0, 1.0])
    predecessor = mechanism.root_body
    # DH frame of the previous link; the next joint is placed relative to it
    parent_frame = predecessor.default_frame

    for i in range(params.n_joints):
        link_frame = CartesianFrame3D(f"link{i + 1}")
        # CoM frame is axis-aligned with the link frame
        com_frame = CartesianFrame3D(f"link{i + 1}_com")
        com_to_link = Transform3D(com_frame, link_frame, translation=params.link_com_positions[i])
        inertia = SpatialInertia(com_frame, params.get_spatial_inertia_at_com(i)).transform(com_to_link)
        body = RigidBody(f"link{i + 1}", inertia)
        joint = Joint(f"joint{i + 1}", Revolute(z_axis))

        if params.dh_convention == "modified":
            a, d, alpha = params.dh_params[i]
            R = so3_exp(np.array([1.0, 0.0, 0.0]), alpha)
            joint_pose = Transform3D(
                joint.frame_before, parent_frame, R, R @ np.array([a, 0.0, d])
            )
            successor_pose = None
        else:
            d, a, alpha = params.dh_params[i]
            joint_pose = Transform3D(joint.frame_before, parent_frame)
            # link frame -> frame_after
            successor_pose = _rot_x_trans(alpha, np.array([a, 0.0, d]), link_frame, joint.frame_after)

        mechanism.attach(predecessor, joint, body, joint_pose=joint_pose, successor_pose=successor_pose)
        predecessor = body
        parent_frame = link_frame

    logger.debug(f"Built {params.robot_name} mechanism with {params.n_joints} joints")
    return mechanism

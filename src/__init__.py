"""Rigid-body dynamics of articulated mechanisms.

This package provides:
- Spatial algebra types with frame checking (transforms, twists, wrenches)
- Joint types and mechanism topology (kinematic tree plus loop joints)
- MechanismState: lazily cached kinematics and dynamics quantities
- Mass matrix (CRBA) and inverse dynamics (RNEA)

Based on Lynch and Park 2017, Chapter 8, and Featherstone 2008.
Uses the [ω, v] twist convention throughout.
"""

from mechanism_dynamics.cache_element import CacheElement
from mechanism_dynamics.contact import (
    ContactEnvironment,
    ContactPoint,
    HalfSpace3D,
    SoftContactModel,
    SoftContactState,
)
from mechanism_dynamics.joints import (
    Fixed,
    Joint,
    JointType,
    Prismatic,
    QuaternionFloating,
    Revolute,
)
from mechanism_dynamics.mechanism import Mechanism, PathDirection, RigidBody, TreePath
from mechanism_dynamics.mechanism_algorithms import (
    center_of_mass,
    dynamics_bias,
    geometric_jacobian,
    inverse_dynamics,
    mass,
    mass_matrix,
    momentum_matrix,
    subtree_mass,
)
from mechanism_dynamics.mechanism_state import MechanismState, MechanismStateConfig
from mechanism_dynamics.robot_params import (
    RobotParametersBase,
    UR5eParameters,
    build_mechanism,
    create_ur5e_parameters,
)
from mechanism_dynamics.spatial import (
    CartesianFrame3D,
    GeometricJacobian,
    Momentum,
    MomentumMatrix,
    MotionSubspace,
    Point3D,
    SpatialAcceleration,
    Transform3D,
    Twist,
    Wrench,
    WrenchSubspace,
)
from mechanism_dynamics.spatial_inertia import (
    SpatialInertia,
    spatial_inertia_at_com,
    spatial_inertia_at_frame,
    transform_spatial_inertia,
)

__all__ = [
    # spatial
    'CartesianFrame3D',
    'Transform3D',
    'Point3D',
    'Twist',
    'SpatialAcceleration',
    'Wrench',
    'Momentum',
    'GeometricJacobian',
    'MotionSubspace',
    'WrenchSubspace',
    'MomentumMatrix',
    # spatial_inertia
    'SpatialInertia',
    'spatial_inertia_at_com',
    'spatial_inertia_at_frame',
    'transform_spatial_inertia',
    # joints
    'JointType',
    'Joint',
    'Revolute',
    'Prismatic',
    'Fixed',
    'QuaternionFloating',
    # contact
    'HalfSpace3D',
    'ContactEnvironment',
    'ContactPoint',
    'SoftContactModel',
    'SoftContactState',
    # mechanism
    'RigidBody',
    'Mechanism',
    'TreePath',
    'PathDirection',
    # robot_params
    'RobotParametersBase',
    'UR5eParameters',
    'create_ur5e_parameters',
    'build_mechanism',
    # cache_element / mechanism_state
    'CacheElement',
    'MechanismState',
    'MechanismStateConfig',
    # mechanism_algorithms
    'mass',
    'subtree_mass',
    'center_of_mass',
    'geometric_jacobian',
    'mass_matrix',
    'momentum_matrix',
    'inverse_dynamics',
    'dynamics_bias',
]

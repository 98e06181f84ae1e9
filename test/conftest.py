"""Pytest fixtures for mechanism_dynamics tests."""

from typing import Dict

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from mechanism_dynamics.joints import Fixed, Joint, Prismatic, QuaternionFloating, Revolute
from mechanism_dynamics.mechanism import Mechanism, RigidBody
from mechanism_dynamics.mechanism_state import MechanismState
from mechanism_dynamics.robot_params import UR5eParameters, build_mechanism
from mechanism_dynamics.spatial import CartesianFrame3D, Transform3D
from mechanism_dynamics.spatial_inertia import SpatialInertia

PENDULUM_MASS = 2.0
PENDULUM_LENGTH = 0.75


def random_spatial_inertia(frame: CartesianFrame3D) -> SpatialInertia:
    """Random physically valid spatial inertia expressed in ``frame``."""
    mass = np.random.uniform(0.5, 2.0)
    com = np.random.uniform(-0.2, 0.2, 3)
    A = 0.1 * np.random.normal(size=(3, 3))
    inertia = A @ A.T + 0.01 * np.eye(3)
    return SpatialInertia.from_mass_properties(frame, mass, com, inertia)


def random_transform(from_frame: CartesianFrame3D, to_frame: CartesianFrame3D) -> Transform3D:
    rotation = Rotation.from_rotvec(np.random.normal(size=3)).as_matrix()
    return Transform3D(from_frame, to_frame, rotation, np.random.normal(size=3))


def random_axis() -> np.ndarray:
    axis = np.random.normal(size=3)
    return axis / np.linalg.norm(axis)


@pytest.fixture
def tree_mechanism() -> Mechanism:
    """Branching tree with floating, revolute, prismatic and fixed joints."""
    np.random.seed(42)
    world = RigidBody("world")
    mechanism = Mechanism(world)
    joint_types = [
        QuaternionFloating(),
        Revolute(random_axis()),
        Prismatic(random_axis()),
        Revolute(random_axis()),
        Fixed(),
        Revolute(random_axis()),
        Prismatic(random_axis()),
        Revolute(random_axis()),
    ]
    for i, joint_type in enumerate(joint_types):
        bodies = mechanism.bodies()
        parent = world if i == 0 else bodies[np.random.randint(1, len(bodies))]
        body = RigidBody(f"body{i}", random_spatial_inertia(CartesianFrame3D(f"body{i}")))
        joint = Joint(f"joint{i}", joint_type)
        mechanism.attach(
            parent, joint, body,
            joint_pose=random_transform(joint.frame_before, parent.default_frame),
        )
    return mechanism


@pytest.fixture
def tree_state(tree_mechanism) -> MechanismState:
    """State over tree_mechanism with random q and v."""
    state = MechanismState(tree_mechanism)
    np.random.seed(43)
    state.rand()
    return state


@pytest.fixture
def pendulum() -> Dict:
    """Single link hanging from a revolute joint about the y axis.

    CoM sits PENDULUM_LENGTH below the joint axis at q = 0.
    """
    world = RigidBody("world")
    mechanism = Mechanism(world)
    link_frame = CartesianFrame3D("link")
    inertia = SpatialInertia.from_mass_properties(
        link_frame, PENDULUM_MASS, np.array([0.0, 0.0, -PENDULUM_LENGTH]), 0.01 * np.eye(3)
    )
    body = RigidBody("link", inertia)
    joint = Joint("shoulder", Revolute([0.0, 1.0, 0.0]))
    mechanism.attach(world, joint, body)
    return {
        'mechanism': mechanism,
        'body': body,
        'joint': joint,
        'mass': PENDULUM_MASS,
        'length': PENDULUM_LENGTH,
    }


@pytest.fixture
def double_pendulum() -> Dict:
    """Two links in a vertical plane, with a loop-closing joint from the
    second link back to the world.

    The non-tree joint is mounted so that the loop closes at q_closed.
    """
    world = RigidBody("world")
    mechanism = Mechanism(world)
    y_axis = np.array([0.0, 1.0, 0.0])

    link1 = RigidBody("link1", SpatialInertia.from_mass_properties(
        CartesianFrame3D("link1"), 1.0, np.array([0.0, 0.0, -0.5]), 0.01 * np.eye(3)))
    joint1 = Joint("joint1", Revolute(y_axis))
    mechanism.attach(world, joint1, link1)

    link2 = RigidBody("link2", SpatialInertia.from_mass_properties(
        CartesianFrame3D("link2"), 0.5, np.array([0.0, 0.0, -0.4]), 0.005 * np.eye(3)))
    joint2 = Joint("joint2", Revolute(y_axis))
    mechanism.attach(
        link1, joint2, link2,
        joint_pose=Transform3D(joint2.frame_before, link1.default_frame, translation=[0.0, 0.0, -1.0]),
    )

    q_closed = np.array([0.3, -0.6])
    state = MechanismState(mechanism)
    state.set_configuration(q_closed)
    link2_to_world = state.transform_to_root(link2)

    loop_joint = Joint("loop", Revolute(y_axis))
    mechanism.attach(
        world, loop_joint, link2,
        joint_pose=Transform3D(
            loop_joint.frame_before, world.default_frame,
            link2_to_world.rotation, link2_to_world.translation,
        ),
    )
    return {
        'mechanism': mechanism,
        'links': (link1, link2),
        'joints': (joint1, joint2),
        'loop_joint': loop_joint,
        'q_closed': q_closed,
    }


@pytest.fixture
def ur5e_params() -> UR5eParameters:
    """Fixture providing UR5e robot parameters."""
    return UR5eParameters()


@pytest.fixture
def ur5e_mechanism(ur5e_params) -> Mechanism:
    return build_mechanism(ur5e_params)


@pytest.fixture
def random_config() -> np.ndarray:
    """Random joint configuration within limits."""
    np.random.seed(42)
    return np.random.uniform(-np.pi, np.pi, 6)


@pytest.fixture
def random_velocity() -> np.ndarray:
    """Random joint velocity."""
    np.random.seed(43)
    return np.random.uniform(-1.0, 1.0, 6)


@pytest.fixture
def random_acceleration() -> np.ndarray:
    """Random joint acceleration."""
    np.random.seed(44)
    return np.random.uniform(-0.5, 0.5, 6)

"""Tests for robot parameter containers and DH-based mechanism construction."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from mechanism_dynamics.mechanism_algorithms import mass
from mechanism_dynamics.mechanism_state import MechanismState
from mechanism_dynamics.robot_params import (
    RobotParametersBase,
    UR5eParameters,
    build_mechanism,
    create_ur5e_parameters,
)
from mechanism_dynamics.spatial_inertia import is_positive_definite, is_symmetric, spatial_inertia_at_frame


class PlanarArmParameters(RobotParametersBase):
    """Two-link planar arm in standard DH convention."""

    @property
    def robot_name(self) -> str:
        return "PlanarArm"


def planar_arm(link_lengths=(1.0, 0.8)) -> PlanarArmParameters:
    return PlanarArmParameters(
        n_joints=2,
        dh_params=np.array([[0.0, link_lengths[0], 0.0], [0.0, link_lengths[1], 0.0]]),
        dh_convention="standard",
        link_masses=np.array([1.0, 0.5]),
        link_com_positions=np.array([[-0.5, 0.0, 0.0], [-0.4, 0.0, 0.0]]),
        link_inertias=np.array([0.01 * np.eye(3), 0.01 * np.eye(3)]),
    )


def body_fixed_frame(body, name: str):
    return next(frame for frame in body.frame_definitions if frame.name == name)


def modified_dh(a, d, alpha, theta) -> np.ndarray:
    """Craig's link transform RotX(alpha) TransX(a) RotZ(theta) TransZ(d)."""
    ca, sa = np.cos(alpha), np.sin(alpha)
    ct, st = np.cos(theta), np.sin(theta)
    return np.array([
        [ct, -st, 0.0, a],
        [st * ca, ct * ca, -sa, -sa * d],
        [st * sa, ct * sa, ca, ca * d],
        [0.0, 0.0, 0.0, 1.0],
    ])


class TestUR5eParameters:

    def test_defaults(self, ur5e_params):
        assert ur5e_params.robot_name == "UR5e"
        assert ur5e_params.n_joints == 6
        assert ur5e_params.dh_convention == "modified"
        assert ur5e_params.dh_params.shape == (6, 3)

    def test_factory(self):
        params = create_ur5e_parameters()
        assert isinstance(params, UR5eParameters)

    def test_spatial_inertias_at_com(self, ur5e_params):
        inertias = ur5e_params.get_all_spatial_inertias_at_com()
        assert len(inertias) == 6
        for G, m in zip(inertias, ur5e_params.link_masses):
            assert G.shape == (6, 6)
            assert is_symmetric(G)
            assert is_positive_definite(G)
            assert_allclose(G[3:, 3:], m * np.eye(3))

    def test_link_index_out_of_range(self, ur5e_params):
        with pytest.raises(ValueError):
            ur5e_params.get_spatial_inertia_at_com(6)
        with pytest.raises(ValueError):
            ur5e_params.get_spatial_inertia_at_com(-1)

    def test_invalid_shapes(self):
        with pytest.raises(ValueError):
            UR5eParameters(dh_params=np.zeros((5, 3)))
        with pytest.raises(ValueError):
            UR5eParameters(link_inertias=np.zeros((6, 3)))

    def test_invalid_convention(self):
        with pytest.raises(ValueError):
            UR5eParameters(dh_convention="craig")

    def test_invalid_inertia(self):
        params = create_ur5e_parameters()
        asymmetric = params.link_inertias.copy()
        asymmetric[2, 0, 1] = 0.05
        with pytest.raises(ValueError, match="link_inertias\\[2\\]"):
            UR5eParameters(link_inertias=asymmetric)
        indefinite = params.link_inertias.copy()
        indefinite[4] = np.diag([0.1, 0.1, -0.01])
        with pytest.raises(ValueError, match="link_inertias\\[4\\]"):
            UR5eParameters(link_inertias=indefinite)

    def test_nonpositive_mass(self):
        with pytest.raises(ValueError):
            UR5eParameters(link_masses=np.array([3.7, 8.393, 0.0, 1.219, 1.219, 0.1879]))


class TestBuildMechanism:

    def test_topology(self, ur5e_mechanism):
        assert ur5e_mechanism.num_positions() == 6
        assert ur5e_mechanism.num_velocities() == 6
        assert ur5e_mechanism.root_body.name == "base"
        assert [body.name for body in ur5e_mechanism.non_root_bodies()] == [f"link{i}" for i in range(1, 7)]
        for i in range(1, 6):
            link = ur5e_mechanism.find_body(f"link{i}")
            child = ur5e_mechanism.find_body(f"link{i + 1}")
            assert ur5e_mechanism.parent(child) is link
        assert not ur5e_mechanism.non_tree_joints()

    def test_mass(self, ur5e_mechanism, ur5e_params):
        assert mass(ur5e_mechanism) == pytest.approx(ur5e_params.link_masses.sum())

    def test_custom_gravity(self, ur5e_params):
        mechanism = build_mechanism(ur5e_params, gravity=np.array([0.0, 0.0, -1.62]))
        assert_allclose(mechanism.gravity, [0.0, 0.0, -1.62])

    def test_modified_dh_forward_kinematics(self, ur5e_mechanism, ur5e_params, random_config):
        state = MechanismState(ur5e_mechanism)
        state.set_configuration(random_config)
        T = np.eye(4)
        for i, (a, d, alpha) in enumerate(ur5e_params.dh_params):
            T = T @ modified_dh(a, d, alpha, random_config[i])
            link = ur5e_mechanism.find_body(f"link{i + 1}")
            assert_allclose(state.transform_to_root(link).matrix, T, atol=1e-12)

    def test_link_com_in_link_frame(self, ur5e_mechanism, ur5e_params):
        for i, com in enumerate(ur5e_params.link_com_positions):
            link = ur5e_mechanism.find_body(f"link{i + 1}")
            assert_allclose(link.inertia.center_of_mass, com, atol=1e-12)
            assert link.inertia.mass == pytest.approx(ur5e_params.link_masses[i])

    def test_link_inertia_from_com_inertia(self, ur5e_mechanism, ur5e_params):
        """Link inertias are the CoM inertias moved to the link frame."""
        for i in range(ur5e_params.n_joints):
            link = ur5e_mechanism.find_body(f"link{i + 1}")
            expected = spatial_inertia_at_frame(
                ur5e_params.link_masses[i],
                ur5e_params.link_inertias[i],
                ur5e_params.link_com_positions[i],
            )
            assert_allclose(link.inertia.matrix, expected, atol=1e-12)

    def test_standard_dh_planar_arm(self):
        mechanism = build_mechanism(planar_arm())
        state = MechanismState(mechanism)
        q = np.array([0.4, -1.1])
        state.set_configuration(q)
        # the DH link frame stays body-fixed after the default frame moves to frame_after
        tip = state.transform_to_root(body_fixed_frame(mechanism.find_body("link2"), "link2"))
        expected = [
            np.cos(q[0]) + 0.8 * np.cos(q[0] + q[1]),
            np.sin(q[0]) + 0.8 * np.sin(q[0] + q[1]),
            0.0,
        ]
        assert_allclose(tip.translation, expected, atol=1e-12)

    def test_standard_dh_default_frame_at_joint(self):
        mechanism = build_mechanism(planar_arm())
        state = MechanismState(mechanism)
        q = np.array([0.4, -1.1])
        state.set_configuration(q)
        elbow = state.transform_to_root(mechanism.find_body("link2"))
        assert_allclose(elbow.translation, [np.cos(q[0]), np.sin(q[0]), 0.0], atol=1e-12)

    def test_standard_dh_com_follows_link(self):
        mechanism = build_mechanism(planar_arm())
        state = MechanismState(mechanism)
        state.zero()
        link1 = mechanism.find_body("link1")
        # CoM sits halfway along the first link at q = 0
        assert_allclose(state.spatial_inertia(link1).center_of_mass, [0.5, 0.0, 0.0], atol=1e-12)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

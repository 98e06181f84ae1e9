"""Tests for spatial_inertia module."""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from mechanism_dynamics.spatial import (
    CartesianFrame3D,
    MotionSubspace,
    SpatialAcceleration,
    Transform3D,
    Twist,
)
from mechanism_dynamics.lie_algebra import so3_exp
from mechanism_dynamics.spatial_inertia import (
    SpatialInertia,
    is_positive_definite,
    is_symmetric,
    spatial_inertia_at_com,
    spatial_inertia_at_frame,
    transform_spatial_inertia,
)


class TestSpatialInertiaAtCom:
    """Tests for spatial inertia at center of mass."""

    def test_block_diagonal(self):
        """At CoM, spatial inertia should be block diagonal.

        For [ω, v] convention:
            G = [[I_c,    0    ],
                 [0,      m*I_3]]
        """
        mass = 2.5
        inertia = np.diag([0.1, 0.2, 0.3])
        G = spatial_inertia_at_com(mass, inertia)

        np.testing.assert_array_almost_equal(G[:3, :3], inertia)
        np.testing.assert_array_almost_equal(G[3:, 3:], mass * np.eye(3))
        np.testing.assert_array_almost_equal(G[:3, 3:], np.zeros((3, 3)))
        np.testing.assert_array_almost_equal(G[3:, :3], np.zeros((3, 3)))

    def test_positive_definite(self):
        G = spatial_inertia_at_com(2.0, np.eye(3) * 0.1)
        assert is_positive_definite(G)
        assert is_symmetric(G)


class TestSpatialInertiaAtFrame:
    """Tests for spatial inertia at arbitrary frame."""

    def test_zero_offset(self):
        """Zero offset should give same as at_com."""
        inertia = np.diag([0.1, 0.2, 0.3])
        G_com = spatial_inertia_at_com(2.0, inertia)
        G_frame = spatial_inertia_at_frame(2.0, inertia, np.zeros(3))
        np.testing.assert_array_almost_equal(G_frame, G_com)

    def test_parallel_axis_theorem(self):
        """Offset along x adds m*d^2 to Iyy and Izz."""
        mass, d = 2.0, 0.5
        inertia = np.diag([0.1, 0.2, 0.3])
        G = spatial_inertia_at_frame(mass, inertia, np.array([d, 0.0, 0.0]))
        np.testing.assert_array_almost_equal(
            np.diag(G[:3, :3]), [0.1, 0.2 + mass * d ** 2, 0.3 + mass * d ** 2]
        )

    def test_matches_transformed_com_inertia(self):
        """Translating the CoM inertia gives the same matrix as the closed form."""
        mass = 1.5
        inertia = np.diag([0.02, 0.03, 0.04])
        p = np.array([0.1, -0.2, 0.3])
        com_frame = CartesianFrame3D("com")
        body_frame = CartesianFrame3D("body")
        tf = Transform3D(com_frame, body_frame, np.eye(3), p)
        G = transform_spatial_inertia(spatial_inertia_at_com(mass, inertia), tf)
        assert_allclose(G, spatial_inertia_at_frame(mass, inertia, p), atol=1e-12)


class TestSpatialInertiaClass:
    """Tests for the frame-aware SpatialInertia."""

    @pytest.fixture
    def inertia(self):
        frame = CartesianFrame3D("body")
        return SpatialInertia.from_mass_properties(
            frame, 3.0, np.array([0.1, 0.2, -0.3]), np.diag([0.05, 0.06, 0.07])
        )

    def test_mass_properties(self, inertia):
        assert inertia.mass == pytest.approx(3.0)
        assert_allclose(inertia.center_of_mass, [0.1, 0.2, -0.3])

    def test_transform_preserves_mass_and_moves_com(self, inertia):
        to = CartesianFrame3D("world")
        R = so3_exp(np.array([0.2, -0.4, 0.9]))
        p = np.array([1.0, 2.0, 3.0])
        moved = inertia.transform(Transform3D(inertia.frame, to, R, p))
        assert moved.frame is to
        assert moved.mass == pytest.approx(inertia.mass)
        assert_allclose(moved.center_of_mass, R @ inertia.center_of_mass + p, atol=1e-12)
        assert is_symmetric(moved.matrix)

    def test_kinetic_energy_invariant_under_transform(self, inertia):
        to = CartesianFrame3D("world")
        tf = Transform3D(inertia.frame, to, so3_exp(np.array([0.3, 0.1, -0.2])), [0.5, -0.5, 1.0])
        twist = Twist(inertia.frame, to, inertia.frame, [0.1, -0.3, 0.2], [1.0, 0.5, -0.4])
        assert inertia.transform(tf).kinetic_energy(twist.transform(tf)) == pytest.approx(
            inertia.kinetic_energy(twist)
        )

    def test_matmul_twist_gives_momentum(self, inertia):
        twist = Twist(inertia.frame, inertia.frame, inertia.frame, [0.1, 0.2, 0.3], [1.0, 0.0, 0.0])
        momentum = inertia @ twist
        assert momentum.frame is inertia.frame
        assert_allclose(momentum.vector, inertia.matrix @ twist.vector)

    def test_matmul_subspace_gives_momentum_matrix(self, inertia):
        S = MotionSubspace(inertia.frame, inertia.frame, inertia.frame, np.eye(3), np.zeros((3, 3)))
        A = inertia @ S
        assert_allclose(A.matrix, inertia.matrix[:, :3])

    def test_newton_euler_at_rest(self, inertia):
        accel = SpatialAcceleration(inertia.frame, inertia.frame, inertia.frame, np.zeros(3), [0.0, 0.0, 9.81])
        twist = Twist.zero(inertia.frame, inertia.frame, inertia.frame)
        wrench = inertia.newton_euler(accel, twist)
        assert_allclose(wrench.linear, [0.0, 0.0, 3.0 * 9.81])

    def test_add_requires_same_frame(self, inertia):
        other = SpatialInertia.zero(CartesianFrame3D("other"))
        with pytest.raises(ValueError):
            inertia + other

    def test_add(self, inertia):
        total = inertia + inertia
        assert total.mass == pytest.approx(6.0)
        assert_allclose(total.center_of_mass, inertia.center_of_mass)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

"""Spatial vector algebra with frame bookkeeping.

Every quantity carries the frames it relates, and combining quantities
expressed in different frames raises ``ValueError`` instead of silently
producing wrong physics.

Conventions (Lynch and Park 2017, Chapter 8):
    Twist / spatial acceleration: [omega, v] (angular first).
    Wrench / momentum:            [moment, force].
    Transform3D(from_frame, to_frame) maps coordinates in ``from_frame`` to
    coordinates in ``to_frame``.
"""

import itertools
from typing import Optional

import numpy as np

from mechanism_dynamics.lie_algebra import ad, adjoint


class CartesianFrame3D:
    """A named coordinate frame, compared by identity."""

    _ids = itertools.count()

    __slots__ = ('name', 'id')

    def __init__(self, name: Optional[str] = None) -> None:
        self.id = next(CartesianFrame3D._ids)
        self.name = name if name is not None else f"frame_{self.id}"

    def __repr__(self) -> str:
        return f"CartesianFrame3D({self.name!r})"


def framecheck(actual: CartesianFrame3D, expected: CartesianFrame3D) -> None:
    """Raise ValueError unless ``actual`` is ``expected``."""
    if actual is not expected:
        raise ValueError(f"Frame mismatch: got {actual}, expected {expected}")


def _vec3(x) -> np.ndarray:
    if x is None:
        return np.zeros(3)
    return np.asarray(x, dtype=np.float64).reshape(3)


class Transform3D:
    """Rigid transform from ``from_frame`` to ``to_frame``.

    Attributes:
        rotation: (3, 3) rotation matrix.
        translation: (3,) origin of ``from_frame`` expressed in ``to_frame``.
    """

    __slots__ = ('from_frame', 'to_frame', 'rotation', 'translation')

    def __init__(
        self,
        from_frame: CartesianFrame3D,
        to_frame: CartesianFrame3D,
        rotation: Optional[np.ndarray] = None,
        translation: Optional[np.ndarray] = None,
    ) -> None:
        self.from_frame = from_frame
        self.to_frame = to_frame
        if rotation is None:
            self.rotation = np.eye(3)
        else:
            self.rotation = np.asarray(rotation, dtype=np.float64).reshape(3, 3)
        self.translation = _vec3(translation)

    @classmethod
    def identity(cls, frame: CartesianFrame3D) -> 'Transform3D':
        return cls(frame, frame)

    @classmethod
    def from_matrix(
        cls,
        from_frame: CartesianFrame3D,
        to_frame: CartesianFrame3D,
        T: np.ndarray,
    ) -> 'Transform3D':
        """Create from a (4, 4) homogeneous transformation matrix."""
        T = np.asarray(T, dtype=np.float64)
        return cls(from_frame, to_frame, T[:3, :3], T[:3, 3])

    @property
    def matrix(self) -> np.ndarray:
        """(4, 4) homogeneous transformation matrix."""
        T = np.eye(4, dtype=np.float64)
        T[:3, :3] = self.rotation
        T[:3, 3] = self.translation
        return T

    def __matmul__(self, other: 'Transform3D') -> 'Transform3D':
        if not isinstance(other, Transform3D):
            return NotImplemented
        framecheck(self.from_frame, other.to_frame)
        return Transform3D(
            other.from_frame,
            self.to_frame,
            self.rotation @ other.rotation,
            self.rotation @ other.translation + self.translation,
        )

    def inv(self) -> 'Transform3D':
        """T^{-1} = [[R^T, -R^T*p], [0, 1]]."""
        R_T = self.rotation.T
        return Transform3D(self.to_frame, self.from_frame, R_T, -R_T @ self.translation)

    def adjoint(self) -> np.ndarray:
        """(6, 6) Adjoint matrix [Ad_T] acting on [omega, v] twists."""
        return adjoint(self.rotation, self.translation)

    def transform_point(self, point: 'Point3D') -> 'Point3D':
        framecheck(point.frame, self.from_frame)
        return Point3D(self.to_frame, self.rotation @ point.v + self.translation)

    def isapprox(self, other: 'Transform3D', atol: float = 1e-10) -> bool:
        return (
            self.from_frame is other.from_frame
            and self.to_frame is other.to_frame
            and np.allclose(self.rotation, other.rotation, atol=atol)
            and np.allclose(self.translation, other.translation, atol=atol)
        )

    def __repr__(self) -> str:
        return (
            f"Transform3D(from={self.from_frame.name}, to={self.to_frame.name}, "
            f"rotation={self.rotation.tolist()}, translation={self.translation.tolist()})"
        )


class Point3D:
    """A point expressed in ``frame``."""

    __slots__ = ('frame', 'v')

    def __init__(self, frame: CartesianFrame3D, v=None) -> None:
        self.frame = frame
        self.v = _vec3(v)

    def __repr__(self) -> str:
        return f"Point3D(frame={self.frame.name}, v={self.v.tolist()})"


class _SpatialMotionVector:
    """Shared behaviour of twists and spatial accelerations.

    Describes the motion of ``body`` with respect to ``base``, expressed in
    ``frame``.
    """

    __slots__ = ('body', 'base', 'frame', 'angular', 'linear')

    def __init__(self, body, base, frame, angular=None, linear=None) -> None:
        self.body = body
        self.base = base
        self.frame = frame
        self.angular = _vec3(angular)
        self.linear = _vec3(linear)

    @classmethod
    def zero(cls, body, base, frame):
        return cls(body, base, frame)

    @classmethod
    def from_vector(cls, body, base, frame, vector: np.ndarray):
        vector = np.asarray(vector, dtype=np.float64)
        return cls(body, base, frame, vector[:3], vector[3:])

    @property
    def vector(self) -> np.ndarray:
        """(6,) vector [angular, linear]."""
        return np.concatenate([self.angular, self.linear])

    def __add__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        framecheck(other.frame, self.frame)
        angular = self.angular + other.angular
        linear = self.linear + other.linear
        if self.body is other.base:
            return type(self)(other.body, self.base, self.frame, angular, linear)
        if self.base is other.body:
            return type(self)(self.body, other.base, self.frame, angular, linear)
        raise ValueError(
            f"Cannot add {type(self).__name__}s: body/base frames do not chain "
            f"({self.body}/{self.base} and {other.body}/{other.base})"
        )

    def __neg__(self):
        return type(self)(self.base, self.body, self.frame, -self.angular, -self.linear)

    def __sub__(self, other):
        return self + (-other)

    def change_base(self, base: CartesianFrame3D):
        """Relabel the base frame, for bases rigidly attached to each other."""
        return type(self)(self.body, base, self.frame, self.angular, self.linear)

    def isapprox(self, other, atol: float = 1e-10) -> bool:
        return (
            self.body is other.body
            and self.base is other.base
            and self.frame is other.frame
            and np.allclose(self.vector, other.vector, atol=atol)
        )

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(body={self.body.name}, base={self.base.name}, "
            f"frame={self.frame.name}, angular={self.angular.tolist()}, "
            f"linear={self.linear.tolist()})"
        )


class Twist(_SpatialMotionVector):
    """Spatial velocity of ``body`` relative to ``base``, expressed in ``frame``."""

    __slots__ = ()

    def transform(self, tf: Transform3D) -> 'Twist':
        framecheck(self.frame, tf.from_frame)
        return Twist.from_vector(self.body, self.base, tf.to_frame, tf.adjoint() @ self.vector)


class SpatialAcceleration(_SpatialMotionVector):
    """Time derivative of a twist, expressed in ``frame``."""

    __slots__ = ()

    def transform(
        self,
        tf: Transform3D,
        twist_of_current_wrt_new: Twist,
        twist_of_body_wrt_base: Twist,
    ) -> 'SpatialAcceleration':
        """Re-express in ``tf.to_frame``.

        Unlike twists, spatial accelerations pick up a velocity cross term
        when the current frame moves relative to the new one:

            a_new = Ad_T (a_cur + ad(V_cur/new) V_body/base)

        Args:
            tf: Transform from the current frame to the new frame.
            twist_of_current_wrt_new: Twist of the current frame with
                respect to the new frame, expressed in the current frame.
            twist_of_body_wrt_base: Twist of ``body`` with respect to
                ``base``, expressed in the current frame.
        """
        if self.frame is tf.to_frame:
            return self
        framecheck(tf.from_frame, self.frame)
        framecheck(twist_of_current_wrt_new.frame, self.frame)
        framecheck(twist_of_current_wrt_new.body, self.frame)
        framecheck(twist_of_current_wrt_new.base, tf.to_frame)
        framecheck(twist_of_body_wrt_base.frame, self.frame)
        framecheck(twist_of_body_wrt_base.body, self.body)
        framecheck(twist_of_body_wrt_base.base, self.base)

        cross_term = ad(twist_of_current_wrt_new.vector) @ twist_of_body_wrt_base.vector
        vector = tf.adjoint() @ (self.vector + cross_term)
        return SpatialAcceleration.from_vector(self.body, self.base, tf.to_frame, vector)


class _SpatialForceVector:
    """Shared behaviour of wrenches and momenta, expressed in ``frame``."""

    __slots__ = ('frame', 'angular', 'linear')

    def __init__(self, frame, angular=None, linear=None) -> None:
        self.frame = frame
        self.angular = _vec3(angular)
        self.linear = _vec3(linear)

    @classmethod
    def zero(cls, frame):
        return cls(frame)

    @classmethod
    def from_vector(cls, frame, vector: np.ndarray):
        vector = np.asarray(vector, dtype=np.float64)
        return cls(frame, vector[:3], vector[3:])

    @property
    def vector(self) -> np.ndarray:
        """(6,) vector [angular, linear]."""
        return np.concatenate([self.angular, self.linear])

    def __add__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        framecheck(other.frame, self.frame)
        return type(self)(self.frame, self.angular + other.angular, self.linear + other.linear)

    def __neg__(self):
        return type(self)(self.frame, -self.angular, -self.linear)

    def __sub__(self, other):
        return self + (-other)

    def transform(self, tf: Transform3D):
        """Re-express in ``tf.to_frame`` using [Ad_{T^-1}]^T."""
        framecheck(self.frame, tf.from_frame)
        return type(self).from_vector(tf.to_frame, tf.inv().adjoint().T @ self.vector)

    def isapprox(self, other, atol: float = 1e-10) -> bool:
        return self.frame is other.frame and np.allclose(self.vector, other.vector, atol=atol)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(frame={self.frame.name}, "
            f"angular={self.angular.tolist()}, linear={self.linear.tolist()})"
        )


class Wrench(_SpatialForceVector):
    """Spatial force [moment, force] expressed in ``frame``."""

    __slots__ = ()


class Momentum(_SpatialForceVector):
    """Spatial momentum [angular, linear] expressed in ``frame``."""

    __slots__ = ()


def _columns(x, n_rows: int = 3) -> np.ndarray:
    x = np.asarray(x, dtype=np.float64)
    return x.reshape(n_rows, -1)


class GeometricJacobian:
    """Linear map from (joint) velocities to the twist of ``body`` wrt ``base``.

    Attributes:
        angular: (3, n) angular part.
        linear: (3, n) linear part.
    """

    __slots__ = ('body', 'base', 'frame', 'angular', 'linear')

    def __init__(self, body, base, frame, angular, linear) -> None:
        self.body = body
        self.base = base
        self.frame = frame
        self.angular = _columns(angular)
        self.linear = _columns(linear)

    @classmethod
    def from_matrix(cls, body, base, frame, matrix: np.ndarray):
        matrix = np.asarray(matrix, dtype=np.float64).reshape(6, -1)
        return cls(body, base, frame, matrix[:3], matrix[3:])

    @property
    def matrix(self) -> np.ndarray:
        """(6, n) matrix with angular rows first."""
        return np.vstack([self.angular, self.linear])

    @property
    def num_cols(self) -> int:
        return self.angular.shape[1]

    def transform(self, tf: Transform3D):
        framecheck(self.frame, tf.from_frame)
        return type(self).from_matrix(self.body, self.base, tf.to_frame, tf.adjoint() @ self.matrix)

    def change_base(self, base: CartesianFrame3D):
        return type(self)(self.body, base, self.frame, self.angular, self.linear)

    def __neg__(self):
        return type(self)(self.base, self.body, self.frame, -self.angular, -self.linear)

    def __matmul__(self, v: np.ndarray) -> Twist:
        return Twist.from_vector(self.body, self.base, self.frame, self.matrix @ np.asarray(v))

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(body={self.body.name}, base={self.base.name}, "
            f"frame={self.frame.name}, num_cols={self.num_cols})"
        )


class MotionSubspace(GeometricJacobian):
    """Basis of the twists a joint can produce, one column per velocity."""

    __slots__ = ()


class WrenchSubspace:
    """Basis of the wrenches a joint can transmit, expressed in ``frame``."""

    __slots__ = ('frame', 'angular', 'linear')

    def __init__(self, frame, angular, linear) -> None:
        self.frame = frame
        self.angular = _columns(angular)
        self.linear = _columns(linear)

    @property
    def matrix(self) -> np.ndarray:
        return np.vstack([self.angular, self.linear])

    @property
    def num_cols(self) -> int:
        return self.angular.shape[1]

    def transform(self, tf: Transform3D) -> 'WrenchSubspace':
        framecheck(self.frame, tf.from_frame)
        matrix = tf.inv().adjoint().T @ self.matrix
        return WrenchSubspace(tf.to_frame, matrix[:3], matrix[3:])


class MomentumMatrix:
    """Columns are momenta (or wrenches) expressed in ``frame``."""

    __slots__ = ('frame', 'angular', 'linear')

    def __init__(self, frame, angular, linear) -> None:
        self.frame = frame
        self.angular = _columns(angular)
        self.linear = _columns(linear)

    @classmethod
    def from_matrix(cls, frame, matrix: np.ndarray) -> 'MomentumMatrix':
        matrix = np.asarray(matrix, dtype=np.float64).reshape(6, -1)
        return cls(frame, matrix[:3], matrix[3:])

    @property
    def matrix(self) -> np.ndarray:
        return np.vstack([self.angular, self.linear])

    def __matmul__(self, v: np.ndarray) -> Momentum:
        return Momentum.from_vector(self.frame, self.matrix @ np.asarray(v))


def joint_torque(S: GeometricJacobian, wrench: Wrench) -> np.ndarray:
    """Project a wrench onto a motion subspace: tau = S^T F."""
    framecheck(wrench.frame, S.frame)
    return S.matrix.T @ wrench.vector

"""Soft contact bookkeeping.

Only the state layout lives here: which contact points exist, how many
auxiliary state variables each of them needs per environment half-space, and
views of those variables inside a mechanism state's ``s`` vector. Contact
force computation is outside this package.

The model classes are descriptors: this package reads only their
``num_states``. Their gains and ``HalfSpace3D.separation`` are kept for the
force models that consume a mechanism state's contact states.
"""

from dataclasses import dataclass, field
from typing import List

import numpy as np

from mechanism_dynamics.spatial import CartesianFrame3D, Point3D


@dataclass
class HalfSpace3D:
    """Half-space {x : n·(x - p) <= 0} expressed in ``frame``."""

    frame: CartesianFrame3D
    point: np.ndarray
    outward_normal: np.ndarray

    def __post_init__(self):
        self.point = np.asarray(self.point, dtype=np.float64).reshape(3)
        normal = np.asarray(self.outward_normal, dtype=np.float64).reshape(3)
        norm = np.linalg.norm(normal)
        if norm < 1e-12:
            raise ValueError("outward_normal must be nonzero")
        self.outward_normal = normal / norm

    def separation(self, x: np.ndarray) -> float:
        """Signed distance of ``x`` above the boundary.

        Args:
            x: (3,) point, expressed in ``self.frame``.

        Returns:
            Positive outside the half-space, negative when penetrating.
        """
        return float(np.dot(self.outward_normal, np.asarray(x) - self.point))


@dataclass
class ContactEnvironment:
    half_spaces: List[HalfSpace3D] = field(default_factory=list)

    def add_half_space(self, half_space: HalfSpace3D) -> None:
        self.half_spaces.append(half_space)

    def __len__(self) -> int:
        return len(self.half_spaces)


@dataclass
class HuntCrossleyModel:
    """Stateless normal force model, f_n = k * x^n * (1 + lam * x_dot).

    Attributes:
        k: Stiffness [N/m^n].
        lam: Hunt-Crossley damping factor [s/m].
        n: Penetration exponent.
    """

    k: float = 50e3
    lam: float = 1e3
    n: float = 1.5

    @property
    def num_states(self) -> int:
        return 0


@dataclass
class ViscoelasticCoulombModel:
    """Tangential force model; its state is the 3D tangential displacement.

    Attributes:
        mu: Coulomb friction coefficient.
        k: Tangential stiffness [N/m].
        b: Tangential damping [N*s/m].
    """

    mu: float = 0.5
    k: float = 5e3
    b: float = 1e2

    @property
    def num_states(self) -> int:
        return 3


@dataclass
class SoftContactModel:
    """Normal and tangential model pair; state layout is normal then tangential."""

    normal: HuntCrossleyModel = field(default_factory=HuntCrossleyModel)
    tangential: ViscoelasticCoulombModel = field(default_factory=ViscoelasticCoulombModel)

    @property
    def num_states(self) -> int:
        return self.normal.num_states + self.tangential.num_states


@dataclass
class ContactPoint:
    """A point fixed to a body at which soft contact may occur."""

    location: Point3D
    model: SoftContactModel = field(default_factory=SoftContactModel)


class SoftContactState:
    """Auxiliary state of one contact point against one half-space.

    ``state`` is a view into the owning mechanism state's ``s`` vector, so
    writing to it updates ``s`` and vice versa.
    """

    def __init__(self, model: SoftContactModel, state: np.ndarray, frame: CartesianFrame3D) -> None:
        if state.shape != (model.num_states,):
            raise ValueError(
                f"Contact state has length {state.shape[0]}, model needs {model.num_states}"
            )
        self.model = model
        self.state = state
        self.frame = frame

    @property
    def tangential_displacement(self) -> np.ndarray:
        n = self.model.normal.num_states
        return self.state[n:n + self.model.tangential.num_states]

    def reset(self) -> None:
        self.state[:] = 0.0

    def __repr__(self) -> str:
        return f"SoftContactState(frame={self.frame.name}, state={self.state.tolist()})"

"""State of a mechanism and the kinematic/dynamic quantities derived from it.

``MechanismState`` owns the configuration ``q``, velocity ``v`` and
additional (contact) state ``s`` of a ``Mechanism``, and lazily computes
everything that depends on ``q`` and ``v``: joint transforms, twists, bias
accelerations, motion subspaces, transforms to the root frame, spatial
inertias and composite rigid body inertias.

Each derived quantity lives in its own ``CacheElement``. Setters only mark
the elements dirty. A quantity is recomputed the first time it is requested
afterwards, together with whatever it depends on.

Per-body quantities are expressed in the root frame of the mechanism.
Per-joint quantities are expressed in ``frame_after`` of the joint unless the
accessor name says otherwise.

Example:
    >>> state = MechanismState(mechanism)
    >>> state.rand()
    >>> tf = state.transform_to_root(body)
    >>> twist = state.twist_wrt_world(body)
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

import numpy as np

from mechanism_dynamics.cache_element import CacheElement
from mechanism_dynamics.contact import SoftContactState
from mechanism_dynamics.joints import Joint
from mechanism_dynamics.mechanism import Mechanism, RigidBody, TreePath
from mechanism_dynamics.spatial import (
    CartesianFrame3D,
    Momentum,
    Point3D,
    SpatialAcceleration,
    Transform3D,
    Twist,
    Wrench,
)
from mechanism_dynamics.spatial_inertia import SpatialInertia

logger = logging.getLogger(__name__)


@dataclass
class MechanismStateConfig:
    """Configuration for MechanismState.

    Attributes:
        check_cache: Raise RuntimeError when a stale cache element is read
            through an accessor called with ``safe=False``. Off by default
            since unchecked reads are the fast path used inside the
            update passes.
        dtype: Floating point type of ``q``, ``v`` and ``s``.
    """

    check_cache: bool = False
    dtype: type = np.float64


def _cache_accessor(cache_name: str, update_name: str, doc: str):
    """Build an accessor reading one entry of a cache element.

    With ``safe=True`` (default) the element is brought up to date first.
    With ``safe=False`` the stored value is returned as is; the caller
    guarantees it is fresh.
    """

    def accessor(self, key, safe: bool = True):
        element = self._caches[cache_name]
        if safe:
            getattr(self, update_name)()
            data = element.data
        else:
            data = element.peek(self.config.check_cache)
        try:
            return data[key]
        except KeyError:
            raise KeyError(f"{key} has no entry in {cache_name}") from None

    accessor.__doc__ = doc
    return accessor


class MechanismState:
    """Configuration, velocity and additional state of a mechanism.

    Args:
        mechanism: Mechanism whose state this is. Must not change topology
            while the state is in use.
        config: Optional configuration, defaults to MechanismStateConfig().

    Attributes:
        mechanism: The mechanism.
        config: The configuration.
        tree_joints: Tree joints in topological order.
        parent_joint_indices: For each tree joint, the index of the tree
            joint of its predecessor body, or -1 if the predecessor is the root.
    """

    def __init__(self, mechanism: Mechanism, config: Optional[MechanismStateConfig] = None) -> None:
        self.mechanism = mechanism
        self.config = config or MechanismStateConfig()
        dtype = self.config.dtype

        self.tree_joints: List[Joint] = mechanism.tree_joints()
        self.non_tree_joints: List[Joint] = mechanism.non_tree_joints()
        self._bodies: List[RigidBody] = mechanism.bodies()
        self._root = mechanism.root_body
        self._root_frame = mechanism.root_frame

        self._q = np.zeros(mechanism.num_positions(), dtype=dtype)
        self._v = np.zeros(mechanism.num_velocities(), dtype=dtype)
        self._s = np.zeros(mechanism.num_additional_states(), dtype=dtype)

        # per-joint segments are views into q and v
        self._q_ranges: Dict[Joint, slice] = {}
        self._v_ranges: Dict[Joint, slice] = {}
        self._qs: Dict[Joint, np.ndarray] = {}
        self._vs: Dict[Joint, np.ndarray] = {}
        q_start = v_start = 0
        for joint in self.tree_joints:
            q_range = slice(q_start, q_start + joint.num_positions)
            v_range = slice(v_start, v_start + joint.num_velocities)
            self._q_ranges[joint] = q_range
            self._v_ranges[joint] = v_range
            self._qs[joint] = self._q[q_range]
            self._vs[joint] = self._v[v_range]
            q_start = q_range.stop
            v_start = v_range.stop

        # joints grouped by joint type so that each update loop runs over
        # homogeneous lists
        type_sorted = defaultdict(list)
        for joint in self.tree_joints:
            type_sorted[type(joint.joint_type)].append(joint)
        self._type_sorted_tree_joints: Dict[type, List[Joint]] = dict(type_sorted)

        joint_index = {joint: i for i, joint in enumerate(self.tree_joints)}
        self._predecessors = [mechanism.predecessor(joint) for joint in self.tree_joints]
        self._successors = [mechanism.successor(joint) for joint in self.tree_joints]
        self.parent_joint_indices: Tuple[int, ...] = tuple(
            -1 if mechanism.is_root(pred) else joint_index[mechanism.joint_to_parent(pred)]
            for pred in self._predecessors
        )

        self._joint_poses: Dict[Joint, Transform3D] = {
            joint: mechanism.joint_pose(joint) for joint in mechanism.joints()
        }
        self._frame_to_body: Dict[CartesianFrame3D, RigidBody] = {
            frame: body for body in self._bodies for frame in body.frame_definitions
        }
        # (predecessor, frame_before definition, successor, frame_after definition)
        self._non_tree_frames = {}
        self._non_tree_paths: Dict[Joint, TreePath] = {}
        for joint in self.non_tree_joints:
            pred = mechanism.predecessor(joint)
            succ = mechanism.successor(joint)
            self._non_tree_frames[joint] = (
                pred, pred.frame_definition(joint.frame_before),
                succ, succ.frame_definition(joint.frame_after),
            )
            self._non_tree_paths[joint] = mechanism.path(pred, succ)

        self._caches: Dict[str, CacheElement] = {}
        for name in (
            'tree_joint_transforms',
            'non_tree_joint_transforms',
            'joint_twists',
            'joint_bias_accelerations',
            'motion_subspaces',
            'motion_subspaces_in_world',
            'constraint_wrench_subspaces',
            'transforms_to_root',
            'twists_wrt_world',
            'bias_accelerations_wrt_world',
            'inertias',
            'crb_inertias',
        ):
            self._caches[name] = CacheElement({}, getattr(self, f'_update_{name}'), name)

        self._contact_states: Dict[RigidBody, List[List[SoftContactState]]] = {}
        s_start = 0
        n_half_spaces = len(mechanism.environment)
        for body in self._bodies:
            states_for_body = []
            for point in body.contact_points:
                n = point.model.num_states
                states_for_point = []
                for _ in range(n_half_spaces):
                    view = self._s[s_start:s_start + n]
                    states_for_point.append(SoftContactState(point.model, view, self._root_frame))
                    s_start += n
                states_for_body.append(states_for_point)
            self._contact_states[body] = states_for_body

        self.zero()
        logger.debug(
            f"Created MechanismState: nq={self.num_positions()}, nv={self.num_velocities()}, "
            f"ns={self.num_additional_states()}"
        )

    # sizes

    def num_positions(self) -> int:
        return self._q.shape[0]

    def num_velocities(self) -> int:
        return self._v.shape[0]

    def num_additional_states(self) -> int:
        return self._s.shape[0]

    # state vectors

    def configuration(self, joint: Union[Joint, TreePath, None] = None) -> np.ndarray:
        """Configuration vector q, a joint's segment of it, or a path's.

        The full vector and joint segments are live views: after writing to
        them, call ``mark_dirty()``. Path configurations are copies.
        """
        if joint is None:
            return self._q
        if isinstance(joint, TreePath):
            return self._path_vector(joint, self._qs)
        return self._segment(self._qs, joint)

    def velocity(self, joint: Union[Joint, TreePath, None] = None) -> np.ndarray:
        """Velocity vector v, a joint's segment of it, or a path's.

        Same aliasing rules as ``configuration``.
        """
        if joint is None:
            return self._v
        if isinstance(joint, TreePath):
            return self._path_vector(joint, self._vs)
        return self._segment(self._vs, joint)

    def additional_state(self) -> np.ndarray:
        return self._s

    def state_vector(self) -> np.ndarray:
        """Copy of [q; v; s]."""
        return np.concatenate([self._q, self._v, self._s])

    def configuration_range(self, joint: Joint) -> slice:
        return self._segment(self._q_ranges, joint)

    def velocity_range(self, joint: Joint) -> slice:
        return self._segment(self._v_ranges, joint)

    def set_configuration(self, q: np.ndarray, joint: Optional[Joint] = None) -> None:
        """Copy ``q`` into the whole configuration vector or one joint's segment.

        Raises:
            ValueError: If ``q`` has the wrong length. The state is unchanged.
        """
        target = self._q if joint is None else self._segment(self._qs, joint)
        self._copy_into(target, q, 'configuration')
        self.reset_contact_state()
        self.mark_dirty()

    def set_velocity(self, v: np.ndarray, joint: Optional[Joint] = None) -> None:
        """Copy ``v`` into the whole velocity vector or one joint's segment.

        Raises:
            ValueError: If ``v`` has the wrong length. The state is unchanged.
        """
        target = self._v if joint is None else self._segment(self._vs, joint)
        self._copy_into(target, v, 'velocity')
        self.reset_contact_state()
        self.mark_dirty()

    def set_additional_state(self, s: np.ndarray) -> None:
        """Copy ``s`` in. No cached quantity depends on ``s``."""
        self._copy_into(self._s, s, 'additional state')

    def set(self, x: np.ndarray) -> None:
        """Set the full state from x = [q; v; s].

        Raises:
            ValueError: If ``x`` does not have length nq + nv + ns. The state
                is unchanged.
        """
        x = np.asarray(x)
        nq, nv, ns = self.num_positions(), self.num_velocities(), self.num_additional_states()
        if x.shape != (nq + nv + ns,):
            raise ValueError(f"State vector must have length {nq + nv + ns}, got {x.shape}")
        self._q[:] = x[:nq]
        self._v[:] = x[nq:nq + nv]
        self._s[:] = x[nq + nv:]
        self.mark_dirty()

    def zero_configuration(self) -> None:
        """Set every joint to its zero configuration.

        For quaternion-parameterized joints q is not all zeros; every joint
        transform becomes the identity.
        """
        for joints in self._type_sorted_tree_joints.values():
            for joint in joints:
                joint.zero_configuration(self._qs[joint])
        self.reset_contact_state()
        self.mark_dirty()

    def zero_velocity(self) -> None:
        self._v[:] = 0.0
        self.reset_contact_state()
        self.mark_dirty()

    def zero(self) -> None:
        self.zero_configuration()
        self.zero_velocity()

    def rand_configuration(self) -> None:
        """Randomize q. Each joint's segment stays on its configuration manifold."""
        for joints in self._type_sorted_tree_joints.values():
            for joint in joints:
                joint.rand_configuration(self._qs[joint])
        self.reset_contact_state()
        self.mark_dirty()

    def rand_velocity(self) -> None:
        self._v[:] = np.random.normal(size=self._v.shape)
        self.reset_contact_state()
        self.mark_dirty()

    def rand(self) -> None:
        self.rand_configuration()
        self.rand_velocity()

    def normalize_configuration(self) -> None:
        """Project every joint's q segment back onto its configuration manifold.

        Integrating q with a fixed step lets quaternion segments drift off the
        unit sphere; call this between steps. Contact state is left untouched.
        """
        for joints in self._type_sorted_tree_joints.values():
            for joint in joints:
                joint.normalize_configuration(self._qs[joint])
        self.mark_dirty()

    def mark_dirty(self) -> None:
        """Invalidate every cached quantity.

        Required after writing to the arrays returned by ``configuration()``
        or ``velocity()`` directly.
        """
        for element in self._caches.values():
            element.mark_dirty()

    def reset_contact_state(self) -> None:
        for states_for_body in self._contact_states.values():
            for states_for_point in states_for_body:
                for contact_state in states_for_point:
                    contact_state.reset()

    def contact_states(self, body: RigidBody) -> List[List[SoftContactState]]:
        """Contact states of ``body``, indexed by contact point then half-space."""
        return self._segment(self._contact_states, body)

    def cache_elements(self) -> Dict[str, CacheElement]:
        return dict(self._caches)

    # cached quantities

    _tree_joint_transform = _cache_accessor(
        'tree_joint_transforms', 'update_transforms',
        """Transform from frame_after to frame_before of a tree joint.""",
    )

    def joint_transform(self, joint: Joint, safe: bool = True) -> Transform3D:
        """Transform from ``frame_after(joint)`` to ``frame_before(joint)``.

        Works for tree and non-tree joints. For a non-tree joint it is
        derived from the transforms to root of its predecessor and successor.
        """
        if joint in self._non_tree_frames:
            return self._non_tree_joint_transform(joint, safe)
        return self._tree_joint_transform(joint, safe)

    _non_tree_joint_transform = _cache_accessor(
        'non_tree_joint_transforms', 'update_transforms', None,
    )

    joint_twist = _cache_accessor(
        'joint_twists', 'update_joint_twists',
        """Twist of frame_after wrt frame_before of a tree joint, in frame_after.""",
    )

    joint_bias_acceleration = _cache_accessor(
        'joint_bias_accelerations', 'update_joint_bias_accelerations',
        """Spatial acceleration across a tree joint at zero v̇, in frame_after.""",
    )

    motion_subspace = _cache_accessor(
        'motion_subspaces', 'update_motion_subspaces',
        """Motion subspace of a tree joint, in frame_after.""",
    )

    motion_subspace_in_world = _cache_accessor(
        'motion_subspaces_in_world', 'update_motion_subspaces_in_world',
        """Motion subspace of a tree joint, in the root frame.

        Its base is the predecessor's default frame and its body the
        successor's default frame.
        """,
    )

    constraint_wrench_subspace = _cache_accessor(
        'constraint_wrench_subspaces', 'update_constraint_wrench_subspaces',
        """Constraint wrench subspace of a non-tree joint, in frame_after.""",
    )

    _body_transform_to_root = _cache_accessor(
        'transforms_to_root', 'update_transforms',
        """Transform from a body's default frame to the root frame.""",
    )

    twist_wrt_world = _cache_accessor(
        'twists_wrt_world', 'update_twists_wrt_world',
        """Twist of a body's default frame wrt the root frame, in the root frame.""",
    )

    bias_acceleration = _cache_accessor(
        'bias_accelerations_wrt_world', 'update_bias_accelerations_wrt_world',
        """Spatial acceleration of a body wrt the world at zero v̇, in the root frame.

        Includes gravity: the root's bias acceleration is [0, -gravity].
        """,
    )

    spatial_inertia = _cache_accessor(
        'inertias', 'update_spatial_inertias',
        """Spatial inertia of a body, in the root frame. Zero for the root.""",
    )

    crb_inertia = _cache_accessor(
        'crb_inertias', 'update_crb_inertias',
        """Composite rigid body inertia of a body's subtree, in the root frame.""",
    )

    def transform_to_root(self, body_or_frame: Union[RigidBody, CartesianFrame3D], safe: bool = True) -> Transform3D:
        """Transform from a body's default frame, or any body-fixed frame, to the root frame."""
        if isinstance(body_or_frame, RigidBody):
            return self._body_transform_to_root(body_or_frame, safe)
        frame = body_or_frame
        body = self._frame_body(frame)
        tf = self._body_transform_to_root(body, safe)
        if tf.from_frame is not frame:
            tf = tf @ body.frame_definition(frame)
        return tf

    # update passes

    def update_transforms(self) -> None:
        self._caches['tree_joint_transforms'].get()
        self._caches['transforms_to_root'].get()
        self._caches['non_tree_joint_transforms'].get()

    def update_joint_twists(self) -> None:
        self._caches['joint_twists'].get()

    def update_joint_bias_accelerations(self) -> None:
        self._caches['joint_bias_accelerations'].get()

    def update_motion_subspaces(self) -> None:
        self._caches['motion_subspaces'].get()

    def update_motion_subspaces_in_world(self) -> None:
        self._caches['motion_subspaces_in_world'].get()

    def update_constraint_wrench_subspaces(self) -> None:
        self._caches['constraint_wrench_subspaces'].get()

    def update_twists_wrt_world(self) -> None:
        self._caches['twists_wrt_world'].get()

    def update_bias_accelerations_wrt_world(self) -> None:
        self._caches['bias_accelerations_wrt_world'].get()

    def update_spatial_inertias(self) -> None:
        self._caches['inertias'].get()

    def update_crb_inertias(self) -> None:
        self._caches['crb_inertias'].get()

    def _update_tree_joint_transforms(self, results):
        for joints in self._type_sorted_tree_joints.values():
            for joint in joints:
                results[joint] = joint.joint_transform(self._qs[joint])
        return results

    def _update_transforms_to_root(self, results):
        self._caches['tree_joint_transforms'].get()
        joint_transforms = self._caches['tree_joint_transforms'].data
        results[self._root] = Transform3D.identity(self._root_frame)
        for joint, pred, succ in zip(self.tree_joints, self._predecessors, self._successors):
            results[succ] = results[pred] @ self._joint_poses[joint] @ joint_transforms[joint]
        return results

    def _update_non_tree_joint_transforms(self, results):
        self._caches['transforms_to_root'].get()
        to_root = self._caches['transforms_to_root'].data
        for joint, (pred, before_def, succ, after_def) in self._non_tree_frames.items():
            before_to_root = to_root[pred] @ before_def
            after_to_root = to_root[succ] @ after_def
            results[joint] = before_to_root.inv() @ after_to_root
        return results

    def _update_joint_twists(self, results):
        for joints in self._type_sorted_tree_joints.values():
            for joint in joints:
                results[joint] = joint.joint_twist(self._qs[joint], self._vs[joint])
        return results

    def _update_joint_bias_accelerations(self, results):
        for joints in self._type_sorted_tree_joints.values():
            for joint in joints:
                results[joint] = joint.bias_acceleration(self._qs[joint], self._vs[joint])
        return results

    def _update_motion_subspaces(self, results):
        for joints in self._type_sorted_tree_joints.values():
            for joint in joints:
                results[joint] = joint.motion_subspace(self._qs[joint])
        return results

    def _update_motion_subspaces_in_world(self, results):
        self.update_transforms()
        self.update_motion_subspaces()
        to_root = self._caches['transforms_to_root'].data
        subspaces = self._caches['motion_subspaces'].data
        for joint, pred, succ in zip(self.tree_joints, self._predecessors, self._successors):
            S = subspaces[joint].change_base(pred.default_frame)
            results[joint] = S.transform(to_root[succ])
        return results

    def _update_constraint_wrench_subspaces(self, results):
        self.update_transforms()
        joint_transforms = self._caches['non_tree_joint_transforms'].data
        for joint in self.non_tree_joints:
            results[joint] = joint.constraint_wrench_subspace(joint_transforms[joint])
        return results

    def _update_twists_wrt_world(self, results):
        self.update_transforms()
        self.update_joint_twists()
        to_root = self._caches['transforms_to_root'].data
        joint_twists = self._caches['joint_twists'].data
        root_frame = self._root_frame
        results[self._root] = Twist.zero(root_frame, root_frame, root_frame)
        for joint, pred, succ in zip(self.tree_joints, self._predecessors, self._successors):
            joint_twist = joint_twists[joint].change_base(pred.default_frame)
            results[succ] = results[pred] + joint_twist.transform(to_root[succ])
        return results

    def _update_bias_accelerations_wrt_world(self, results):
        self.update_transforms()
        self.update_twists_wrt_world()
        self.update_joint_bias_accelerations()
        to_root = self._caches['transforms_to_root'].data
        twists = self._caches['twists_wrt_world'].data
        joint_twists = self._caches['joint_twists'].data
        joint_biases = self._caches['joint_bias_accelerations'].data
        root_frame = self._root_frame
        results[self._root] = SpatialAcceleration(
            root_frame, root_frame, root_frame, np.zeros(3), -self.mechanism.gravity
        )
        for joint, pred, succ in zip(self.tree_joints, self._predecessors, self._successors):
            parent_frame = pred.default_frame
            tf = to_root[succ]
            # body twist and joint twist, both in frame_after
            body_twist = twists[succ].transform(tf.inv())
            joint_twist = joint_twists[joint].change_base(parent_frame)
            joint_bias = joint_biases[joint].change_base(parent_frame)
            results[succ] = results[pred] + joint_bias.transform(tf, body_twist, joint_twist)
        return results

    def _update_inertias(self, results):
        self.update_transforms()
        to_root = self._caches['transforms_to_root'].data
        results[self._root] = SpatialInertia.zero(self._root_frame)
        for body in self._successors:
            if body.inertia is None:
                results[body] = SpatialInertia.zero(self._root_frame)
            else:
                results[body] = body.inertia.transform(to_root[body])
        return results

    def _update_crb_inertias(self, results):
        self.update_spatial_inertias()
        inertias = self._caches['inertias'].data
        for body in self._bodies:
            results[body] = inertias[body]
        for pred, succ in zip(reversed(self._predecessors), reversed(self._successors)):
            results[pred] = results[pred] + results[succ]
        return results

    # derived quantities

    def newton_euler(self, body: RigidBody, accel: SpatialAcceleration) -> Wrench:
        """Net wrench on ``body`` for spatial acceleration ``accel`` (root frame)."""
        return self.spatial_inertia(body).newton_euler(accel, self.twist_wrt_world(body))

    def momentum(self, body: Union[RigidBody, Iterable[RigidBody], None] = None) -> Momentum:
        """Momentum of one body, or the sum over non-root bodies, in the root frame."""
        if isinstance(body, RigidBody):
            return self.spatial_inertia(body) @ self.twist_wrt_world(body)
        return self._non_root_body_sum(Momentum.zero(self._root_frame), self.momentum, body)

    def momentum_rate_bias(self, body: Union[RigidBody, Iterable[RigidBody], None] = None) -> Wrench:
        """Rate of change of momentum at zero v̇ (gravity included), in the root frame."""
        if isinstance(body, RigidBody):
            return self.newton_euler(body, self.bias_acceleration(body))
        return self._non_root_body_sum(Wrench.zero(self._root_frame), self.momentum_rate_bias, body)

    def kinetic_energy(self, body: Union[RigidBody, Iterable[RigidBody], None] = None) -> float:
        if isinstance(body, RigidBody):
            return self.spatial_inertia(body).kinetic_energy(self.twist_wrt_world(body))
        return self._non_root_body_sum(0.0, self.kinetic_energy, body)

    def configuration_derivative(self) -> np.ndarray:
        """Time derivative of q implied by the current v."""
        q_dot = np.empty_like(self._q)
        for joints in self._type_sorted_tree_joints.values():
            for joint in joints:
                q_dot[self._q_ranges[joint]] = joint.velocity_to_configuration_derivative(
                    self._qs[joint], self._vs[joint]
                )
        return q_dot

    def local_coordinates(self, q0: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Chart coordinates of the current q around ``q0`` and their rate.

        Returns:
            Tuple (phi, phi_dot), each of length nv.
        """
        q0 = self._checked(q0, self.num_positions(), 'q0')
        phi = np.empty_like(self._v)
        phi_dot = np.empty_like(self._v)
        for joints in self._type_sorted_tree_joints.values():
            for joint in joints:
                v_range = self._v_ranges[joint]
                phi[v_range], phi_dot[v_range] = joint.local_coordinates(
                    q0[self._q_ranges[joint]], self._qs[joint], self._vs[joint]
                )
        return phi, phi_dot

    def global_coordinates(self, q0: np.ndarray, phi: np.ndarray) -> None:
        """Set q from chart coordinates ``phi`` around ``q0``. Invalidates caches."""
        q0 = self._checked(q0, self.num_positions(), 'q0')
        phi = self._checked(phi, self.num_velocities(), 'phi')
        for joints in self._type_sorted_tree_joints.values():
            for joint in joints:
                self._qs[joint][:] = joint.global_coordinates(
                    q0[self._q_ranges[joint]], phi[self._v_ranges[joint]]
                )
        self.reset_contact_state()
        self.mark_dirty()

    def relative_transform(self, from_frame: CartesianFrame3D, to_frame: CartesianFrame3D) -> Transform3D:
        """Transform between any two body-fixed frames of the mechanism."""
        return self.transform_to_root(to_frame).inv() @ self.transform_to_root(from_frame)

    def relative_twist(
        self,
        body: Union[RigidBody, CartesianFrame3D],
        base: Union[RigidBody, CartesianFrame3D],
    ) -> Twist:
        """Twist of ``body`` wrt ``base``, expressed in the root frame.

        Bodies stand for their default frames; any body-fixed frame works.
        """
        return -self._twist_of_frame_wrt_world(base) + self._twist_of_frame_wrt_world(body)

    def transform_to(self, quantity, to_frame: CartesianFrame3D):
        """Re-express a point, twist, wrench, momentum or spatial acceleration.

        The quantity's frame and ``to_frame`` must be body-fixed frames of
        the mechanism.
        """
        if quantity.frame is to_frame:
            return quantity
        if isinstance(quantity, Point3D):
            return self.relative_transform(quantity.frame, to_frame).transform_point(quantity)
        if isinstance(quantity, SpatialAcceleration):
            old_to_root = self.transform_to_root(quantity.frame)
            root_to_old = old_to_root.inv()
            twist_of_body_wrt_base = self.relative_twist(quantity.body, quantity.base).transform(root_to_old)
            twist_of_old_wrt_new = self.relative_twist(quantity.frame, to_frame).transform(root_to_old)
            old_to_new = self.transform_to_root(to_frame).inv() @ old_to_root
            return quantity.transform(old_to_new, twist_of_old_wrt_new, twist_of_body_wrt_base)
        if isinstance(quantity, (Twist, Wrench, Momentum)):
            return quantity.transform(self.relative_transform(quantity.frame, to_frame))
        raise TypeError(f"Cannot transform {type(quantity).__name__}")

    def non_tree_joint_path(self, joint: Joint) -> TreePath:
        """Tree path from a non-tree joint's predecessor to its successor."""
        return self._segment(self._non_tree_paths, joint)

    # helpers

    def _frame_body(self, frame: CartesianFrame3D) -> RigidBody:
        body = self._frame_to_body.get(frame)
        if body is None:
            # frames added to the mechanism after this state was built
            body = self.mechanism.body_fixed_frame_to_body(frame)
            self._frame_to_body[frame] = body
        return body

    def _twist_of_frame_wrt_world(self, body_or_frame) -> Twist:
        if isinstance(body_or_frame, RigidBody):
            body = body_or_frame
            frame = body.default_frame
        else:
            frame = body_or_frame
            body = self._frame_body(frame)
        twist = self.twist_wrt_world(body)
        # every body-fixed frame has the same twist when expressed in the root frame
        return Twist(frame, twist.base, twist.frame, twist.angular, twist.linear)

    def _non_root_body_sum(self, start, fun, bodies):
        bodies = self._bodies if bodies is None else bodies
        total = start
        for body in bodies:
            if body is not self._root:
                total = total + fun(body)
        return total

    def _path_vector(self, path: TreePath, segments: Dict[Joint, np.ndarray]) -> np.ndarray:
        parts = [self._segment(segments, joint) for joint, _ in path]
        if not parts:
            return np.zeros(0, dtype=self.config.dtype)
        return np.concatenate(parts)

    @staticmethod
    def _segment(mapping, key):
        try:
            return mapping[key]
        except KeyError:
            raise KeyError(f"{key} is not part of this mechanism state") from None

    @staticmethod
    def _checked(x: np.ndarray, n: int, name: str) -> np.ndarray:
        x = np.asarray(x)
        if x.shape != (n,):
            raise ValueError(f"{name} must have length {n}, got shape {x.shape}")
        return x

    def _copy_into(self, target: np.ndarray, values: np.ndarray, name: str) -> None:
        values = self._checked(values, target.shape[0], name)
        target[:] = values

    def __repr__(self) -> str:
        return (
            f"MechanismState(nq={self.num_positions()}, nv={self.num_velocities()}, "
            f"ns={self.num_additional_states()})"
        )

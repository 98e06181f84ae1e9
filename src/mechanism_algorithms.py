"""Whole-mechanism dynamics algorithms on top of MechanismState.

Mass matrix via the composite rigid body algorithm (CRBA) and inverse
dynamics via the recursive Newton-Euler algorithm (RNEA), plus mass,
center of mass, geometric Jacobian and momentum matrix.

Based on Featherstone (2008), Chapters 5 and 6, and Lynch and Park (2017),
Chapter 8. All spatial quantities are expressed in the root frame.
"""

from typing import Dict, Iterable, Optional

import numpy as np

from mechanism_dynamics.mechanism import Mechanism, PathDirection, RigidBody, TreePath
from mechanism_dynamics.mechanism_state import MechanismState
from mechanism_dynamics.spatial import (
    GeometricJacobian,
    MomentumMatrix,
    Point3D,
    SpatialAcceleration,
    Wrench,
    framecheck,
    joint_torque,
)


def mass(mechanism: Mechanism) -> float:
    """Total mass of all non-root bodies [kg]."""
    return subtree_mass(mechanism, mechanism.root_body)


def subtree_mass(mechanism: Mechanism, body: RigidBody) -> float:
    """Mass of ``body`` and all of its descendants. The root counts as massless."""
    total = 0.0
    stack = [body]
    while stack:
        current = stack.pop()
        if not mechanism.is_root(current) and current.inertia is not None:
            total += current.inertia.mass
        stack.extend(mechanism.children(current))
    return total


def center_of_mass(state: MechanismState, bodies: Optional[Iterable[RigidBody]] = None) -> Point3D:
    """Center of mass of ``bodies`` (default: all bodies), in the root frame.

    Raises:
        ValueError: If the bodies have zero total mass.
    """
    mechanism = state.mechanism
    bodies = mechanism.bodies() if bodies is None else bodies
    weighted = np.zeros(3)
    total = 0.0
    for body in bodies:
        if mechanism.is_root(body):
            continue
        inertia = state.spatial_inertia(body)
        weighted += inertia.cross_part
        total += inertia.mass
    if total <= 0.0:
        raise ValueError("Center of mass is undefined for zero total mass")
    return Point3D(mechanism.root_frame, weighted / total)


def geometric_jacobian(state: MechanismState, path: TreePath) -> GeometricJacobian:
    """Jacobian mapping ``state.velocity(path)`` to the twist of target wrt source.

    Columns follow the joint order of ``path``. Joints traversed towards the
    root enter with a negative sign.
    """
    root_frame = state.mechanism.root_frame
    state.update_motion_subspaces_in_world()
    blocks = []
    for joint, direction in path:
        S = state.motion_subspace_in_world(joint, safe=False)
        blocks.append(-S.matrix if direction is PathDirection.UP else S.matrix)
    matrix = np.hstack(blocks) if blocks else np.zeros((6, 0))
    return GeometricJacobian.from_matrix(
        path.target.default_frame, path.source.default_frame, root_frame, matrix
    )


def mass_matrix(state: MechanismState) -> np.ndarray:
    """Joint-space mass matrix H(q) via the composite rigid body algorithm.

    H[j, i] = S_j^T (I^c_i S_i) for every ancestor joint j of joint i
    (including i itself); all other blocks are zero.

    Args:
        state: Mechanism state; only q is used.

    Returns:
        (nv, nv) symmetric positive definite mass matrix.
    """
    state.update_motion_subspaces_in_world()
    state.update_crb_inertias()

    nv = state.num_velocities()
    H = np.zeros((nv, nv))
    joints = state.tree_joints
    parents = state.parent_joint_indices

    for i, joint_i in enumerate(joints):
        body_i = state.mechanism.successor(joint_i)
        S_i = state.motion_subspace_in_world(joint_i, safe=False)
        F = state.crb_inertia(body_i, safe=False) @ S_i
        i_range = state.velocity_range(joint_i)

        j = i
        while j >= 0:
            joint_j = joints[j]
            S_j = state.motion_subspace_in_world(joint_j, safe=False)
            framecheck(F.frame, S_j.frame)
            j_range = state.velocity_range(joint_j)
            H_ji = S_j.matrix.T @ F.matrix
            H[j_range, i_range] = H_ji
            H[i_range, j_range] = H_ji.T
            j = parents[j]

    return H


def momentum_matrix(state: MechanismState) -> MomentumMatrix:
    """Matrix A(q) with A v = total momentum, in the root frame.

    Column block of joint i is I^c_i S_i: the composite inertia of the
    subtree moved by the joint.
    """
    state.update_motion_subspaces_in_world()
    state.update_crb_inertias()
    blocks = []
    for joint in state.tree_joints:
        body = state.mechanism.successor(joint)
        S = state.motion_subspace_in_world(joint, safe=False)
        blocks.append((state.crb_inertia(body, safe=False) @ S).matrix)
    matrix = np.hstack(blocks) if blocks else np.zeros((6, 0))
    return MomentumMatrix.from_matrix(state.mechanism.root_frame, matrix)


def inverse_dynamics(
    state: MechanismState,
    v_dot: np.ndarray,
    external_wrenches: Optional[Dict[RigidBody, Wrench]] = None,
) -> np.ndarray:
    """Joint torques for accelerations ``v_dot`` via recursive Newton-Euler.

    Forward pass: acceleration of each body is its bias acceleration (which
    includes gravity) plus the motion subspace mapped joint accelerations of
    the joints between it and the root; its net wrench follows from the
    Newton-Euler equation. Backward pass: each body's wrench is projected
    onto its joint's motion subspace and added to its parent's wrench.

    Args:
        state: Mechanism state providing q and v.
        v_dot: (nv,) joint accelerations.
        external_wrenches: Wrenches in the root frame keyed by body. Each is
            the wrench the body exerts on its environment (Lynch and Park's
            F_tip), so it is added to the body's net wrench.

    Returns:
        (nv,) joint torques.

    Raises:
        ValueError: If ``v_dot`` has the wrong length.
    """
    nv = state.num_velocities()
    v_dot = np.asarray(v_dot, dtype=np.float64)
    if v_dot.shape != (nv,):
        raise ValueError(f"v_dot must have length {nv}, got shape {v_dot.shape}")
    external_wrenches = external_wrenches or {}

    mechanism = state.mechanism
    root_frame = mechanism.root_frame
    state.update_bias_accelerations_wrt_world()
    state.update_motion_subspaces_in_world()
    state.update_spatial_inertias()

    joints = state.tree_joints
    successors = [mechanism.successor(joint) for joint in joints]
    parents = state.parent_joint_indices

    # Forward iterations: base -> leaves
    joint_accels = []
    wrenches = []
    for i, (joint, body) in enumerate(zip(joints, successors)):
        S = state.motion_subspace_in_world(joint, safe=False)
        S_v_dot = S.matrix @ v_dot[state.velocity_range(joint)]
        if parents[i] >= 0:
            S_v_dot = S_v_dot + joint_accels[parents[i]]
        joint_accels.append(S_v_dot)

        bias = state.bias_acceleration(body, safe=False)
        accel = SpatialAcceleration.from_vector(bias.body, bias.base, bias.frame, bias.vector + S_v_dot)
        inertia = state.spatial_inertia(body, safe=False)
        wrench = inertia.newton_euler(accel, state.twist_wrt_world(body, safe=False))
        if body in external_wrenches:
            external = external_wrenches[body]
            framecheck(external.frame, root_frame)
            wrench = wrench + external
        wrenches.append(wrench)

    # Backward iterations: leaves -> base
    tau = np.zeros(nv)
    for i in range(len(joints) - 1, -1, -1):
        joint = joints[i]
        S = state.motion_subspace_in_world(joint, safe=False)
        tau[state.velocity_range(joint)] = joint_torque(S, wrenches[i])
        if parents[i] >= 0:
            wrenches[parents[i]] = wrenches[parents[i]] + wrenches[i]

    return tau


def dynamics_bias(
    state: MechanismState,
    external_wrenches: Optional[Dict[RigidBody, Wrench]] = None,
) -> np.ndarray:
    """Velocity product and gravity terms c(q, v) + g(q), i.e. torques at zero v̇."""
    return inverse_dynamics(state, np.zeros(state.num_velocities()), external_wrenches)

"""Rigid bodies and mechanism topology.

A ``Mechanism`` is a kinematic tree of ``RigidBody`` objects connected by
tree joints, plus optional non-tree joints that close kinematic loops.
Tree joints are stored in topological order: a joint always comes after the
joint of its predecessor body.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np

from mechanism_dynamics.contact import ContactEnvironment, ContactPoint, HalfSpace3D
from mechanism_dynamics.joints import Joint
from mechanism_dynamics.spatial import CartesianFrame3D, Point3D, Transform3D, framecheck
from mechanism_dynamics.spatial_inertia import SpatialInertia

logger = logging.getLogger(__name__)

DEFAULT_GRAVITY = np.array([0.0, 0.0, -9.81])


class RigidBody:
    """A rigid body with its body-fixed frames.

    Every body-fixed frame is defined by a transform to the body's default
    frame. The spatial inertia, if any, is expressed in the default frame.
    Bodies without inertia (the root, typically the world) are treated as
    massless.
    """

    def __init__(self, name: str, inertia: Optional[SpatialInertia] = None) -> None:
        self.name = name
        self.default_frame = inertia.frame if inertia is not None else CartesianFrame3D(name)
        self.inertia = inertia
        self.frame_definitions: Dict[CartesianFrame3D, Transform3D] = {
            self.default_frame: Transform3D.identity(self.default_frame)
        }
        self.contact_points: List[ContactPoint] = []

    @property
    def has_defined_inertia(self) -> bool:
        return self.inertia is not None

    def is_fixed_to(self, frame: CartesianFrame3D) -> bool:
        return frame in self.frame_definitions

    def frame_definition(self, frame: CartesianFrame3D) -> Transform3D:
        """Transform from ``frame`` to the default frame."""
        try:
            return self.frame_definitions[frame]
        except KeyError:
            raise KeyError(f"{frame} is not attached to body {self.name!r}") from None

    def add_frame(self, tf: Transform3D) -> None:
        """Add a new body-fixed frame.

        ``tf`` relates the new frame to a frame already attached to the body,
        in either direction.
        """
        if tf.to_frame in self.frame_definitions and tf.from_frame not in self.frame_definitions:
            definition = self.frame_definitions[tf.to_frame] @ tf
        elif tf.from_frame in self.frame_definitions and tf.to_frame not in self.frame_definitions:
            definition = self.frame_definitions[tf.from_frame] @ tf.inv()
        else:
            raise ValueError(
                f"Exactly one of {tf.from_frame} and {tf.to_frame} must already be "
                f"attached to body {self.name!r}"
            )
        self.frame_definitions[definition.from_frame] = definition

    def change_default_frame(self, new_default: CartesianFrame3D) -> None:
        """Re-express frame definitions, inertia and contact points in ``new_default``."""
        if new_default is self.default_frame:
            return
        old_to_new = self.frame_definition(new_default).inv()
        self.frame_definitions = {
            frame: old_to_new @ definition for frame, definition in self.frame_definitions.items()
        }
        if self.inertia is not None:
            self.inertia = self.inertia.transform(old_to_new)
        for point in self.contact_points:
            point.location = old_to_new.transform_point(point.location)
        self.default_frame = new_default

    def add_contact_point(self, point: ContactPoint) -> None:
        framecheck(point.location.frame, self.default_frame)
        self.contact_points.append(point)

    def __repr__(self) -> str:
        return f"RigidBody({self.name!r})"


class PathDirection(enum.Enum):
    UP = -1  # from a body towards the root
    DOWN = 1  # from the root towards a body


@dataclass
class TreePath:
    """Path through the tree from ``source`` to ``target``.

    ``edges`` lists the joints traversed, each with the direction in which it
    is traversed.
    """

    source: RigidBody
    target: RigidBody
    edges: List[Tuple[Joint, PathDirection]] = field(default_factory=list)

    @property
    def joints(self) -> List[Joint]:
        return [joint for joint, _ in self.edges]

    def direction(self, joint: Joint) -> PathDirection:
        for j, direction in self.edges:
            if j is joint:
                return direction
        raise KeyError(f"{joint} is not on the path")

    def __iter__(self) -> Iterator[Tuple[Joint, PathDirection]]:
        return iter(self.edges)

    def __len__(self) -> int:
        return len(self.edges)


class Mechanism:
    """Kinematic tree of rigid bodies plus non-tree (loop) joints.

    Args:
        root_body: Body fixed to the world. Its default frame is the root frame.
        gravity: (3,) gravitational acceleration in the root frame.
    """

    def __init__(self, root_body: RigidBody, gravity: Optional[np.ndarray] = None) -> None:
        self.root_body = root_body
        self.gravity = DEFAULT_GRAVITY.copy() if gravity is None else np.asarray(gravity, dtype=np.float64).reshape(3)
        self.environment = ContactEnvironment()
        self._bodies: List[RigidBody] = [root_body]
        self._tree_joints: List[Joint] = []
        self._non_tree_joints: List[Joint] = []
        self._predecessors: Dict[Joint, RigidBody] = {}
        self._successors: Dict[Joint, RigidBody] = {}
        self._joints_to_parent: Dict[RigidBody, Joint] = {}
        self._children: Dict[RigidBody, List[RigidBody]] = {root_body: []}

    @property
    def root_frame(self) -> CartesianFrame3D:
        return self.root_body.default_frame

    def attach(
        self,
        predecessor: RigidBody,
        joint: Joint,
        successor: RigidBody,
        joint_pose: Optional[Transform3D] = None,
        successor_pose: Optional[Transform3D] = None,
    ) -> None:
        """Connect ``successor`` to ``predecessor`` through ``joint``.

        If ``successor`` is not yet part of the mechanism, ``joint`` becomes a
        tree joint and the successor's default frame becomes
        ``joint.frame_after``. Otherwise ``joint`` is a non-tree joint closing
        a loop.

        Args:
            predecessor: Body already in the mechanism.
            joint: Joint not yet in the mechanism.
            successor: Body on the far side of the joint.
            joint_pose: Transform from ``joint.frame_before`` to the
                predecessor's default frame. Identity by default.
            successor_pose: Transform from the successor's default frame to
                ``joint.frame_after``. Identity by default.

        Raises:
            KeyError: If ``predecessor`` is not part of the mechanism.
            ValueError: If ``joint`` is already attached.
        """
        if predecessor not in self._children:
            raise KeyError(f"{predecessor} is not part of the mechanism")
        if joint in self._predecessors:
            raise ValueError(f"{joint} is already attached")

        if joint_pose is None:
            joint_pose = Transform3D(joint.frame_before, predecessor.default_frame)
        if successor_pose is None:
            successor_pose = Transform3D(successor.default_frame, joint.frame_after)
        predecessor.add_frame(joint_pose)

        if successor in self._children:
            successor.add_frame(successor_pose.inv())
            self._non_tree_joints.append(joint)
            logger.debug(f"Attached non-tree joint {joint.name}: {predecessor.name} -> {successor.name}")
        else:
            successor.add_frame(successor_pose)
            successor.change_default_frame(joint.frame_after)
            self._tree_joints.append(joint)
            self._bodies.append(successor)
            self._joints_to_parent[successor] = joint
            self._children[successor] = []
            self._children[predecessor].append(successor)
            logger.debug(f"Attached tree joint {joint.name}: {predecessor.name} -> {successor.name}")

        self._predecessors[joint] = predecessor
        self._successors[joint] = successor

    def add_body_fixed_frame(self, body: RigidBody, tf: Transform3D) -> None:
        self._check_body(body)
        body.add_frame(tf)

    def add_contact_point(self, body: RigidBody, point: ContactPoint) -> None:
        self._check_body(body)
        body.add_contact_point(point)

    def add_environment_primitive(self, half_space: HalfSpace3D) -> None:
        framecheck(half_space.frame, self.root_frame)
        self.environment.add_half_space(half_space)

    # topology lookups

    def bodies(self) -> List[RigidBody]:
        """Bodies in topological order, root first."""
        return list(self._bodies)

    def non_root_bodies(self) -> List[RigidBody]:
        return self._bodies[1:]

    def tree_joints(self) -> List[Joint]:
        return list(self._tree_joints)

    def non_tree_joints(self) -> List[Joint]:
        return list(self._non_tree_joints)

    def joints(self) -> List[Joint]:
        return self._tree_joints + self._non_tree_joints

    def is_root(self, body: RigidBody) -> bool:
        return body is self.root_body

    def predecessor(self, joint: Joint) -> RigidBody:
        try:
            return self._predecessors[joint]
        except KeyError:
            raise KeyError(f"{joint} is not part of the mechanism") from None

    def successor(self, joint: Joint) -> RigidBody:
        try:
            return self._successors[joint]
        except KeyError:
            raise KeyError(f"{joint} is not part of the mechanism") from None

    def joint_to_parent(self, body: RigidBody) -> Joint:
        try:
            return self._joints_to_parent[body]
        except KeyError:
            raise KeyError(f"{body} has no joint to a parent") from None

    def parent(self, body: RigidBody) -> RigidBody:
        return self._predecessors[self.joint_to_parent(body)]

    def children(self, body: RigidBody) -> List[RigidBody]:
        self._check_body(body)
        return list(self._children[body])

    def find_body(self, name: str) -> RigidBody:
        for body in self._bodies:
            if body.name == name:
                return body
        raise KeyError(f"No body named {name!r}")

    def find_joint(self, name: str) -> Joint:
        for joint in self.joints():
            if joint.name == name:
                return joint
        raise KeyError(f"No joint named {name!r}")

    def body_fixed_frame_to_body(self, frame: CartesianFrame3D) -> RigidBody:
        for body in self._bodies:
            if body.is_fixed_to(frame):
                return body
        raise KeyError(f"{frame} is not attached to any body")

    def body_fixed_frame_definition(self, frame: CartesianFrame3D) -> Transform3D:
        """Transform from ``frame`` to the default frame of its body."""
        return self.body_fixed_frame_to_body(frame).frame_definition(frame)

    def joint_pose(self, joint: Joint) -> Transform3D:
        """Fixed transform from ``joint.frame_before`` to the predecessor's default frame."""
        return self.body_fixed_frame_definition(joint.frame_before)

    def path(self, from_body: RigidBody, to_body: RigidBody) -> TreePath:
        """Tree path from ``from_body`` up to the common ancestor, then down to ``to_body``."""
        source_chain = self._chain_to_root(from_body)
        target_chain = self._chain_to_root(to_body)
        target_set = set(target_chain)
        common = next(body for body in source_chain if body in target_set)

        edges: List[Tuple[Joint, PathDirection]] = []
        for body in source_chain:
            if body is common:
                break
            edges.append((self._joints_to_parent[body], PathDirection.UP))
        down = []
        for body in target_chain:
            if body is common:
                break
            down.append((self._joints_to_parent[body], PathDirection.DOWN))
        edges.extend(reversed(down))
        return TreePath(from_body, to_body, edges)

    # sizes

    def num_positions(self) -> int:
        return sum(joint.num_positions for joint in self._tree_joints)

    def num_velocities(self) -> int:
        return sum(joint.num_velocities for joint in self._tree_joints)

    def num_additional_states(self) -> int:
        n_half_spaces = len(self.environment)
        return sum(
            point.model.num_states * n_half_spaces
            for body in self._bodies
            for point in body.contact_points
        )

    def _check_body(self, body: RigidBody) -> None:
        if body not in self._children:
            raise KeyError(f"{body} is not part of the mechanism")

    def _chain_to_root(self, body: RigidBody) -> List[RigidBody]:
        self._check_body(body)
        chain = [body]
        while body is not self.root_body:
            body = self.parent(body)
            chain.append(body)
        return chain

    def __repr__(self) -> str:
        return (
            f"Mechanism(root={self.root_body.name}, bodies={len(self._bodies)}, "
            f"tree_joints={len(self._tree_joints)}, non_tree_joints={len(self._non_tree_joints)})"
        )

"""
Transformation of observed objects into the model's base frame.

The engine only depends on the TransformLookup interface. StaticTransformBuffer
is a small in-process implementation for fixed sensor mounts, replays and
tests; a middleware adapter (e.g. around a tf2 buffer) can implement the same
interface.
"""

import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..errors import TransformError
from ..messages import Evidence, Pose


logger = logging.getLogger(__name__)

Transform = Tuple[np.ndarray, np.ndarray]  # (translation [x, y, z], quaternion [w, x, y, z])


def quaternion_multiply(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """Hamilton product q1 * q2 of [w, x, y, z] quaternions."""
    w1, x1, y1, z1 = q1
    w2, x2, y2, z2 = q2
    return np.array([
        w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
        w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
        w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
        w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
    ])


def quaternion_conjugate(q: np.ndarray) -> np.ndarray:
    """Conjugate (inverse for unit quaternions)."""
    return np.array([q[0], -q[1], -q[2], -q[3]])


def normalize_quaternion(q: np.ndarray) -> np.ndarray:
    """Scale a quaternion to unit length."""
    q = np.asarray(q, dtype=np.float64)
    norm = np.linalg.norm(q)
    if norm == 0:
        raise TransformError("Zero-length quaternion")
    return q / norm


def rotate_vector(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    """Rotate vector v by unit quaternion q."""
    qv = np.concatenate(([0.0], v))
    return quaternion_multiply(quaternion_multiply(q, qv), quaternion_conjugate(q))[1:]


def compose(parent: Transform, child: Transform) -> Transform:
    """Chain two transforms: result maps child coordinates through parent."""
    t1, q1 = parent
    t2, q2 = child
    return t1 + rotate_vector(q1, t2), normalize_quaternion(quaternion_multiply(q1, q2))


def invert(transform: Transform) -> Transform:
    """Inverse of a rigid transform."""
    t, q = transform
    q_inv = quaternion_conjugate(q)
    return -rotate_vector(q_inv, t), q_inv


class TransformLookup(ABC):
    """Source of coordinate transforms between named frames."""

    @abstractmethod
    def lookup(self, target_frame: str, source_frame: str, timestamp: float) -> Transform:
        """
        Get the transform mapping source frame coordinates into the target frame.

        Raises:
            TransformError: If no transform is available
        """
        pass


class StaticTransformBuffer(TransformLookup):
    """
    Fixed transforms between frames, chained along any connecting path.

    Example:
        >>> buffer = StaticTransformBuffer()
        >>> buffer.set_transform("map", "camera", [1.0, 0.0, 0.0])
        >>> translation, rotation = buffer.lookup("map", "camera", 0.0)
    """

    def __init__(self):
        # parent -> child -> transform of child coordinates into parent
        self._edges: Dict[str, Dict[str, Transform]] = {}

    def set_transform(
        self,
        parent_frame: str,
        child_frame: str,
        translation,
        rotation=(1.0, 0.0, 0.0, 0.0),
    ) -> None:
        """
        Register the pose of child_frame expressed in parent_frame.

        Args:
            parent_frame: Frame the transform maps into
            child_frame: Frame the transform maps from
            translation: Child origin in parent coordinates [x, y, z]
            rotation: Child orientation in parent coordinates [w, x, y, z]
        """
        forward = (
            np.asarray(translation, dtype=np.float64).reshape(3),
            normalize_quaternion(rotation),
        )
        self._edges.setdefault(parent_frame, {})[child_frame] = forward
        self._edges.setdefault(child_frame, {})[parent_frame] = invert(forward)

    def _find_path(self, target_frame: str, source_frame: str) -> Optional[List[str]]:
        """Breadth-first search from target to source frame."""
        if target_frame not in self._edges or source_frame not in self._edges:
            return None

        previous: Dict[str, Optional[str]] = {target_frame: None}
        queue = deque([target_frame])

        while queue:
            current = queue.popleft()
            if current == source_frame:
                path = [current]
                while previous[path[-1]] is not None:
                    path.append(previous[path[-1]])
                return list(reversed(path))

            for neighbor in self._edges[current]:
                if neighbor not in previous:
                    previous[neighbor] = current
                    queue.append(neighbor)

        return None

    def lookup(self, target_frame: str, source_frame: str, timestamp: float) -> Transform:
        if target_frame == source_frame:
            return np.zeros(3), np.array([1.0, 0.0, 0.0, 0.0])

        path = self._find_path(target_frame, source_frame)
        if path is None:
            raise TransformError(
                f"No transform from '{source_frame}' to '{target_frame}'"
            )

        result = (np.zeros(3), np.array([1.0, 0.0, 0.0, 0.0]))
        for parent, child in zip(path, path[1:]):
            result = compose(result, self._edges[parent][child])
        return result


class ObjectTransformation:
    """Re-expresses evidence poses in the base frame."""

    def __init__(self, lookup: TransformLookup, base_frame: str = "world"):
        self.lookup = lookup
        self.base_frame = base_frame

    def transform(self, evidence: Evidence) -> Evidence:
        """
        Transform an observation into the base frame.

        Args:
            evidence: Observation in an arbitrary frame

        Returns:
            New Evidence expressed in the base frame

        Raises:
            TransformError: If the frame cannot be resolved
        """
        if evidence.frame_id == self.base_frame:
            return evidence

        translation, rotation = self.lookup.lookup(
            self.base_frame, evidence.frame_id, evidence.timestamp
        )
        position = translation + rotate_vector(rotation, evidence.pose.position)
        orientation = normalize_quaternion(
            quaternion_multiply(rotation, evidence.pose.orientation)
        )

        logger.debug(
            f"Transformed {evidence.object_type} from '{evidence.frame_id}' "
            f"to '{self.base_frame}'"
        )
        return evidence.with_pose(Pose(position, orientation), self.base_frame)


__all__ = [
    'Transform',
    'TransformLookup',
    'StaticTransformBuffer',
    'ObjectTransformation',
    'quaternion_multiply',
    'quaternion_conjugate',
    'rotate_vector',
]

"""
Message types exchanged with the scene recognition core.

Observations arrive as Evidence records, learning examples as
ExampleSceneGraph records, and every inference cycle produces one
SceneIdentifier per known scene. All types convert to and from plain
dictionaries so transports can ship them as JSON.
"""

import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Tuple

import numpy as np


IDENTITY_ORIENTATION = (1.0, 0.0, 0.0, 0.0)


@dataclass
class Pose:
    """6-DOF pose of an object."""
    position: np.ndarray  # [x, y, z]
    orientation: np.ndarray = field(
        default_factory=lambda: np.array(IDENTITY_ORIENTATION)
    )  # Quaternion [w, x, y, z]

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=np.float64).reshape(3)
        self.orientation = np.asarray(self.orientation, dtype=np.float64).reshape(4)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "position": self.position.tolist(),
            "orientation": self.orientation.tolist(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pose":
        """Create from dictionary."""
        return cls(
            position=np.array(data["position"]),
            orientation=np.array(data.get("orientation", IDENTITY_ORIENTATION)),
        )


@dataclass
class Evidence:
    """
    A single observed object.

    Attributes:
        object_type: Object class (e.g., "Cup", "Plate")
        pose: Pose in the frame given by frame_id
        observed_id: Instance identifier, empty if the detector has none
        frame_id: Coordinate frame of the pose
        timestamp: Observation timestamp
    """
    object_type: str
    pose: Pose
    observed_id: str = ""
    frame_id: str = "world"
    timestamp: float = field(default_factory=time.time)

    @property
    def key(self) -> Tuple[str, str]:
        """Identity of the observed object."""
        return (self.object_type, self.observed_id)

    @property
    def position(self) -> np.ndarray:
        """Get object position."""
        return self.pose.position

    def with_pose(self, pose: Pose, frame_id: str) -> "Evidence":
        """Copy of this evidence re-expressed in another frame."""
        return replace(self, pose=pose, frame_id=frame_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": self.object_type,
            "observed_id": self.observed_id,
            "pose": self.pose.to_dict(),
            "frame_id": self.frame_id,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Evidence":
        """Create from dictionary."""
        return cls(
            object_type=data["type"],
            pose=Pose.from_dict(data["pose"]),
            observed_id=str(data.get("observed_id", "")),
            frame_id=data.get("frame_id", "world"),
            timestamp=float(data.get("timestamp", time.time())),
        )


@dataclass
class ExampleSceneGraph:
    """
    A recorded example of a scene, used for learning.

    Attributes:
        identifier: Label of the scene this example belongs to
        observations: Object observations in recording order
    """
    identifier: str
    observations: List[Evidence] = field(default_factory=list)

    @property
    def object_types(self) -> List[str]:
        """Get distinct object types in order of first appearance."""
        return list(dict.fromkeys(o.object_type for o in self.observations))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "identifier": self.identifier,
            "observations": [o.to_dict() for o in self.observations],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExampleSceneGraph":
        """Create from dictionary."""
        return cls(
            identifier=data["identifier"],
            observations=[Evidence.from_dict(o) for o in data.get("observations", [])],
        )


@dataclass(frozen=True)
class SceneIdentifier:
    """Inference result for one scene."""
    description: str
    scene_type: str
    likelihood: float
    priori: float

    @property
    def weighted_likelihood(self) -> float:
        """Likelihood weighted by the scene prior."""
        return self.likelihood * self.priori

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "description": self.description,
            "type": self.scene_type,
            "likelihood": self.likelihood,
            "priori": self.priori,
        }


def rank_scenes(scenes: List[SceneIdentifier]) -> List[SceneIdentifier]:
    """Sort scenes by prior-weighted likelihood, best first. Ties keep model order."""
    return sorted(scenes, key=lambda s: s.weighted_likelihood, reverse=True)


__all__ = [
    'Pose',
    'Evidence',
    'ExampleSceneGraph',
    'SceneIdentifier',
    'rank_scenes',
]

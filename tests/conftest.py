"""
Pytest fixtures for scene recognition tests.
"""

from pathlib import Path
from typing import Any, Dict, List

import pytest

from monitoring import MetricsRegistry
from perception.scene_recognition.archive import ArchiveMessage, write_archive
from perception.scene_recognition.config import EngineConfig
from perception.scene_recognition.errors import TransformError
from perception.scene_recognition.helper.object_transformation import (
    StaticTransformBuffer,
    TransformLookup,
)
from perception.scene_recognition.messages import Evidence, ExampleSceneGraph, Pose


KITCHEN_MODEL = """<?xml version="1.0" encoding="utf-8"?>
<sceneModel>
  <scene name="Kitchen" type="background" priori="1.0" algorithm="powerset">
    <background volume="1.0">
      <probabilities rows="2">
        <default counts="0.0 0.0"/>
        <entry type="Cup" counts="1.0 1.0"/>
        <entry type="Plate" counts="1.0 1.0"/>
      </probabilities>
    </background>
  </scene>
</sceneModel>
"""

BREAKFAST_MODEL = """<?xml version="1.0" encoding="utf-8"?>
<sceneModel>
  <scene name="Kitchen" type="background" priori="0.5" algorithm="powerset">
    <background volume="8.0">
      <probabilities rows="2">
        <default counts="0.0 1.0"/>
        <entry type="Cup" counts="1.0 3.0"/>
        <entry type="Plate" counts="2.0 2.0"/>
      </probabilities>
    </background>
  </scene>
  <scene name="Breakfast" type="foreground" priori="0.5" algorithm="multiplication">
    <foreground volume="8.0">
      <probabilities rows="2">
        <default counts="0.0 0.0"/>
        <entry type="Cup" counts="0.0 2.0"/>
      </probabilities>
      <kernels>
        <kernel type="Cup" samples="2" sum="1.0 0.0 0.0" outer="1.0 0.0 0.0 0.0 0.5 0.0 0.0 0.0 0.5"/>
      </kernels>
    </foreground>
  </scene>
</sceneModel>
"""


class FailingTransformLookup(TransformLookup):
    """Transform source that never resolves a frame."""

    def __init__(self):
        self.calls = 0

    def lookup(self, target_frame, source_frame, timestamp):
        self.calls += 1
        raise TransformError(f"No transform from '{source_frame}' to '{target_frame}'")


def make_evidence(object_type: str, observed_id: str = "", position=(0.0, 0.0, 0.0),
                  frame_id: str = "world", timestamp: float = 1.0) -> Evidence:
    """Create an observation with sensible defaults."""
    return Evidence(
        object_type=object_type,
        pose=Pose(position),
        observed_id=observed_id,
        frame_id=frame_id,
        timestamp=timestamp,
    )


def make_graph(identifier: str, *types: str) -> ExampleSceneGraph:
    """Create an example scene graph with one observation per type."""
    return ExampleSceneGraph(
        identifier=identifier,
        observations=[make_evidence(t, str(i)) for i, t in enumerate(types)],
    )


@pytest.fixture
def kitchen_model_path(tmp_path: Path) -> Path:
    """Single background scene with Cup and Plate equally likely in both rows."""
    path = tmp_path / "kitchen.xml"
    path.write_text(KITCHEN_MODEL)
    return path


@pytest.fixture
def breakfast_model_path(tmp_path: Path) -> Path:
    """One background and one foreground scene."""
    path = tmp_path / "breakfast.xml"
    path.write_text(BREAKFAST_MODEL)
    return path


@pytest.fixture
def metrics() -> MetricsRegistry:
    """Metrics registry with its own collector registry."""
    return MetricsRegistry()


@pytest.fixture
def identity_transforms() -> StaticTransformBuffer:
    """Transforms where the camera frame is shifted one meter along x."""
    transforms = StaticTransformBuffer()
    transforms.set_transform("world", "camera", [1.0, 0.0, 0.0])
    return transforms


@pytest.fixture
def failing_transforms() -> FailingTransformLookup:
    return FailingTransformLookup()


@pytest.fixture
def config_dict(kitchen_model_path: Path) -> Dict[str, Any]:
    """Complete engine parameters for the kitchen model."""
    return {
        "plot": False,
        "object_topic": "/objects",
        "scene_graph_topic": "/scene_graphs",
        "scene_model_filename": str(kitchen_model_path),
        "base_frame_id": "world",
        "scale_factor": 1.0,
        "sigma_multiplicator": 2.0,
        "targeting_help": False,
        "inference_algorithm": "powerset",
    }


@pytest.fixture
def engine_config(config_dict: Dict[str, Any]) -> EngineConfig:
    return EngineConfig.from_dict(config_dict)


@pytest.fixture
def write_messages(tmp_path: Path):
    """Factory writing (topic, message) pairs to a JSON lines archive."""
    def _write(name: str, messages: List[tuple]) -> Path:
        path = tmp_path / name
        write_archive(path, [
            ArchiveMessage(topic=topic, stamp=float(i), message=message)
            for i, (topic, message) in enumerate(messages)
        ])
        return path
    return _write

"""
Scene models: the learned statistics of one scene plus its integrated evidence.

Two kinds of scenes exist:

- BackgroundScene: only cares about which object types are present. Every
  observation is relevant to it and positions are uniformly distributed over
  the scene volume.
- ForegroundScene: additionally learns where each of its object types
  appears, as one 3D Gaussian kernel per type. Only its own types are
  relevant to it.

Both keep their occurrence counts in a two-row MappedProbabilityTable:
row PRESENT_ROW holds the types seen when the scene occurred, row ABSENT_ROW
holds the types that were missing from an example. A type first seen after
n examples is counted absent from those n examples, so the counters only
depend on which examples were learned, not on their order.

Learning also seeds the default class of the PRESENT row with
default_class_counter pseudo-observations, leaving probability mass for
object types no example contained.
"""

import logging
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..errors import InvalidArgumentError, ModelLoadError
from ..helper.gaussian_kernel import GaussianKernel
from ..helper.mapped_probability_table import DEFAULT_CLASS, MappedProbabilityTable
from ..messages import Evidence, ExampleSceneGraph, SceneIdentifier


logger = logging.getLogger(__name__)

ABSENT_ROW = 0
PRESENT_ROW = 1
OCCURRENCE_ROWS = 2
DEFAULT_CLASS_COUNTER = 1.0


def _evidence_order(evidence: Evidence) -> Tuple:
    # Total order used to make evidence replacement independent of arrival order
    return (
        evidence.timestamp,
        tuple(evidence.pose.position.tolist()),
        tuple(evidence.pose.orientation.tolist()),
        evidence.frame_id,
    )


class SceneModel(ABC):
    """
    Base class of all scenes.

    Attributes:
        description: Unique scene name
        priori: Prior probability of the scene
        algorithm: InferenceAlgorithm computing the likelihood
        volume: Volume the scene's objects are spread over
        default_class_counter: Pseudo-count of unseen types set on learning
    """

    scene_type = ""
    body_tag = ""

    def __init__(
        self,
        description: str,
        priori: float,
        algorithm,
        volume: float = 1.0,
        occurrences: Optional[MappedProbabilityTable] = None,
        examples_seen: Optional[int] = None,
        default_class_counter: float = DEFAULT_CLASS_COUNTER,
    ):
        if not description:
            raise InvalidArgumentError("Scene description must not be empty")
        if priori < 0:
            raise InvalidArgumentError(f"Negative prior {priori} for scene '{description}'")
        if volume <= 0:
            raise InvalidArgumentError(f"Scene '{description}' needs a positive volume, got {volume}")
        if occurrences is not None and occurrences.row_count != OCCURRENCE_ROWS:
            raise InvalidArgumentError(
                f"Occurrence table of '{description}' needs {OCCURRENCE_ROWS} rows, "
                f"got {occurrences.row_count}"
            )
        if default_class_counter < 0:
            raise InvalidArgumentError(
                f"Negative default class counter {default_class_counter} for scene '{description}'"
            )

        self.description = description
        self.priori = float(priori)
        self.algorithm = algorithm
        self.volume = float(volume)
        self.default_class_counter = float(default_class_counter)

        self._counts = occurrences if occurrences is not None else MappedProbabilityTable(OCCURRENCE_ROWS)
        if examples_seen is None:
            # Every learned example counts each known type once, present or absent
            totals = self._counts.to_array()[:, 1:].sum(axis=0)
            examples_seen = int(totals.max()) if totals.size else 0
        if examples_seen < 0:
            raise InvalidArgumentError(f"Negative example count {examples_seen} for scene '{description}'")
        self._examples_seen = int(examples_seen)

        self._probabilities = self._counts.copy()
        self._probabilities.normalize()
        self._dirty = False

        self._evidence: Dict[Tuple[str, str], Evidence] = {}

    @property
    def object_types(self) -> List[str]:
        """Get the learned object types, default class excluded."""
        return self._counts.types

    @property
    def counts(self) -> MappedProbabilityTable:
        """Get a copy of the raw occurrence counters."""
        return self._counts.copy()

    @property
    def evidence(self) -> List[Evidence]:
        """Get the integrated evidence ordered by object identity."""
        return [self._evidence[key] for key in sorted(self._evidence)]

    @property
    def examples_seen(self) -> int:
        """Number of examples learned, including those behind loaded counters."""
        return self._examples_seen

    @property
    def needs_update(self) -> bool:
        """Whether counters changed since the last update()."""
        return self._dirty

    def occurrence_probability(self, row: int, object_type: str) -> float:
        """Get the normalized occurrence probability, default class for unknown types."""
        return self._probabilities.probability(row, object_type)

    def default_probability(self, row: int = PRESENT_ROW) -> float:
        """Get the normalized probability of the default class."""
        return self._probabilities.probability(row, DEFAULT_CLASS)

    @abstractmethod
    def is_relevant(self, object_type: str) -> bool:
        """Whether observations of this type are integrated into the scene."""
        pass

    @abstractmethod
    def location_density(self, evidence: Evidence) -> float:
        """Spatial density of the observed position under this scene."""
        pass

    def add_evidence(self, evidence: Evidence) -> None:
        """Integrate one observation. The newest observation of an object wins."""
        current = self._evidence.get(evidence.key)
        if current is None or _evidence_order(evidence) > _evidence_order(current):
            self._evidence[evidence.key] = evidence

    def clear_evidence(self) -> None:
        """Forget all integrated observations."""
        self._evidence.clear()

    def learn(self, graph: ExampleSceneGraph) -> None:
        """
        Update occurrence counters from one example.

        Every distinct type in the example counts once as present. Every
        known type missing from the example counts once as absent. A type
        seen for the first time is also counted absent from every earlier
        example, so the result does not depend on the order of the examples.
        """
        present = graph.object_types
        missing = [t for t in self._counts.types if t not in present]

        for object_type in present:
            if object_type not in self._counts and self._examples_seen:
                self._counts.increment(ABSENT_ROW, object_type, self._examples_seen)
            self._counts.increment(PRESENT_ROW, object_type)
        for object_type in missing:
            self._counts.increment(ABSENT_ROW, object_type)
        self._examples_seen += 1

        if self.default_class_counter > 0 and self._counts.get(PRESENT_ROW, DEFAULT_CLASS) == 0:
            self._counts.set_default_class_counter(PRESENT_ROW, self.default_class_counter)

        logger.debug(
            f"Scene '{self.description}' learned example '{graph.identifier}': "
            f"present={present}, absent={missing}"
        )
        self._dirty = True

    def update(self) -> bool:
        """
        Rebuild normalized probabilities if the counters changed.

        Returns:
            True if the probabilities were rebuilt
        """
        if not self._dirty:
            return False
        self._probabilities = self._counts.copy()
        self._probabilities.normalize()
        self._dirty = False
        return True

    def compute_likelihood(self) -> float:
        """Run the scene's algorithm on the integrated evidence."""
        return float(self.algorithm.compute_likelihood(self.evidence, self))

    def to_identifier(self, likelihood: float) -> SceneIdentifier:
        """Wrap a likelihood into a result record."""
        return SceneIdentifier(
            description=self.description,
            scene_type=self.scene_type,
            likelihood=likelihood,
            priori=self.priori,
        )

    def handle(self) -> "SceneHandle":
        """Get a read-only view for visualization."""
        return SceneHandle(self)

    def to_element(self) -> ET.Element:
        """Serialize the scene to XML."""
        element = ET.Element("scene")
        element.set("name", self.description)
        element.set("type", self.scene_type)
        element.set("priori", repr(self.priori))
        element.set("algorithm", self.algorithm.name)

        body = ET.SubElement(element, self.body_tag)
        body.set("volume", repr(self.volume))
        body.set("examples", str(self._examples_seen))
        self._counts.save(ET.SubElement(body, "probabilities"))
        self._save_body(body)
        return element

    def _save_body(self, body: ET.Element) -> None:
        pass

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(description={self.description!r}, "
            f"priori={self.priori}, types={self.object_types})"
        )


class BackgroundScene(SceneModel):
    """Scene described only by which object types occur in it."""

    scene_type = "background"
    body_tag = "background"

    def is_relevant(self, object_type: str) -> bool:
        return True

    def location_density(self, evidence: Evidence) -> float:
        return 1.0 / self.volume


class ForegroundScene(SceneModel):
    """Scene with a learned spatial kernel per object type."""

    scene_type = "foreground"
    body_tag = "foreground"

    def __init__(
        self,
        description: str,
        priori: float,
        algorithm,
        volume: float = 1.0,
        occurrences: Optional[MappedProbabilityTable] = None,
        examples_seen: Optional[int] = None,
        default_class_counter: float = DEFAULT_CLASS_COUNTER,
        kernels: Optional[Dict[str, GaussianKernel]] = None,
    ):
        super().__init__(
            description, priori, algorithm, volume, occurrences, examples_seen, default_class_counter
        )
        self.kernels: Dict[str, GaussianKernel] = dict(kernels or {})

    def is_relevant(self, object_type: str) -> bool:
        return object_type in self._counts

    def location_density(self, evidence: Evidence) -> float:
        kernel = self.kernels.get(evidence.object_type)
        if kernel is None or not kernel.ready:
            return 1.0 / self.volume
        return kernel.density(evidence.position)

    def learn(self, graph: ExampleSceneGraph) -> None:
        super().learn(graph)
        for observation in graph.observations:
            self.kernels.setdefault(observation.object_type, GaussianKernel()).add_sample(
                observation.position
            )

    def _save_body(self, body: ET.Element) -> None:
        kernels = ET.SubElement(body, "kernels")
        for object_type, kernel in self.kernels.items():
            element = ET.SubElement(kernels, "kernel")
            element.set("type", object_type)
            kernel.save(element)


class SceneHandle:
    """
    Read-only view of a scene handed to visualization.

    Array data is copied on access so callers cannot modify the model.
    """

    def __init__(self, scene: SceneModel):
        self._scene = scene

    @property
    def description(self) -> str:
        return self._scene.description

    @property
    def scene_type(self) -> str:
        return self._scene.scene_type

    @property
    def priori(self) -> float:
        return self._scene.priori

    @property
    def object_types(self) -> List[str]:
        return self._scene.object_types

    def kernel_ellipsoids(
        self, sigma_multiplicator: float = 1.0
    ) -> Dict[str, Tuple[np.ndarray, np.ndarray, np.ndarray]]:
        """
        Get the covariance ellipsoid of every usable kernel.

        Background scenes have no kernels and return an empty mapping.
        """
        kernels = getattr(self._scene, "kernels", {})
        return {
            object_type: tuple(a.copy() for a in kernel.ellipsoid(sigma_multiplicator))
            for object_type, kernel in kernels.items()
            if kernel.ready
        }


SCENE_TYPES = {
    BackgroundScene.scene_type: BackgroundScene,
    ForegroundScene.scene_type: ForegroundScene,
}


def _parse_float(element: ET.Element, name: str, default: str) -> float:
    try:
        return float(element.get(name, default))
    except ValueError as e:
        raise ModelLoadError(f"Invalid {name} in <{element.tag}>: {e}") from e


def scene_from_element(
    element: ET.Element, algorithm, default_class_counter: float = DEFAULT_CLASS_COUNTER
) -> SceneModel:
    """
    Build a scene from its <scene> element.

    Args:
        element: The <scene> element
        algorithm: InferenceAlgorithm instance the scene uses
        default_class_counter: Pseudo-count of unseen types set on learning

    Raises:
        ModelLoadError: If the element is malformed
    """
    name = element.get("name")
    if not name:
        raise ModelLoadError("Scene without name")

    scene_type = element.get("type")
    scene_class = SCENE_TYPES.get(scene_type)
    if scene_class is None:
        raise ModelLoadError(f"Unknown type '{scene_type}' of scene '{name}'")

    priori = _parse_float(element, "priori", "1.0")

    body = element.find(scene_class.body_tag)
    if body is None:
        raise ModelLoadError(f"Scene '{name}' has no <{scene_class.body_tag}> element")
    volume = _parse_float(body, "volume", "1.0")

    probabilities = body.find("probabilities")
    occurrences = MappedProbabilityTable(OCCURRENCE_ROWS)
    if probabilities is not None:
        occurrences = MappedProbabilityTable.from_element(probabilities)

    examples_seen = None
    if body.get("examples") is not None:
        try:
            examples_seen = int(body.get("examples"))
        except ValueError as e:
            raise ModelLoadError(f"Invalid examples in <{body.tag}>: {e}") from e

    kwargs = {"examples_seen": examples_seen, "default_class_counter": default_class_counter}
    if scene_class is ForegroundScene:
        kernels = {}
        for kernel in body.findall("kernels/kernel"):
            object_type = kernel.get("type")
            if not object_type or object_type in kernels:
                raise ModelLoadError(f"Invalid kernel type '{object_type}' in scene '{name}'")
            kernels[object_type] = GaussianKernel.from_element(kernel)
        kwargs["kernels"] = kernels

    try:
        return scene_class(name, priori, algorithm, volume, occurrences, **kwargs)
    except InvalidArgumentError as e:
        raise ModelLoadError(str(e)) from e


__all__ = [
    'ABSENT_ROW',
    'PRESENT_ROW',
    'OCCURRENCE_ROWS',
    'DEFAULT_CLASS_COUNTER',
    'SceneModel',
    'BackgroundScene',
    'ForegroundScene',
    'SceneHandle',
    'SCENE_TYPES',
    'scene_from_element',
]

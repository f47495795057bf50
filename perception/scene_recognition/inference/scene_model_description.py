"""
The complete scene model: all scenes, evidence routing and learning.
"""

import logging
import xml.etree.ElementTree as ET
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from ..errors import InvalidArgumentError, ModelLoadError, ModelStateError
from ..messages import Evidence, ExampleSceneGraph, SceneIdentifier
from .algorithms import DEFAULT_ALGORITHM, create_algorithm
from .scenes import DEFAULT_CLASS_COUNTER, ForegroundScene, SceneModel, scene_from_element


logger = logging.getLogger(__name__)

ROOT_TAG = "sceneModel"


class ModelState(Enum):
    """Lifecycle of a scene model."""
    UNLOADED = "unloaded"
    LOADED = "loaded"
    RUNNING = "running"


class SceneModelDescription:
    """
    Owns every scene of a model and routes input to them.

    Evidence is buffered by integrate_evidence() and only applied on
    update_model(). Example scene graphs are learned immediately: a foreground
    scene learns from the examples carrying its name, every background scene
    learns from every example.

    Example:
        >>> model = SceneModelDescription()
        >>> model.load_model_from_file("kitchen.xml")
        >>> model.integrate_evidence(evidence)
        >>> model.update_model()
        >>> scenes = model.get_scene_list_with_probabilities()
    """

    def __init__(self, metrics=None, default_class_counter: float = DEFAULT_CLASS_COUNTER):
        """
        Initialize an empty model.

        Args:
            metrics: Optional MetricsRegistry receiving integration counts
                and inference timings
            default_class_counter: Pseudo-count of unseen object types that
                every scene seeds when it learns
        """
        self._scenes: List[SceneModel] = []
        self._evidence_buffer: List[Evidence] = []
        self._state = ModelState.UNLOADED
        self._metrics = metrics
        self._default_class_counter = default_class_counter

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def scenes(self) -> List[SceneModel]:
        """Get the scenes in model order."""
        return list(self._scenes)

    @property
    def scene_names(self) -> List[str]:
        return [scene.description for scene in self._scenes]

    @property
    def pending_evidence(self) -> int:
        """Number of observations waiting for the next update_model()."""
        return len(self._evidence_buffer)

    def get_scene(self, description: str) -> SceneModel:
        """Get a scene by name."""
        for scene in self._scenes:
            if scene.description == description:
                return scene
        raise KeyError(f"Scene '{description}' not found")

    def _require_loaded(self, operation: str) -> None:
        if self._state == ModelState.UNLOADED:
            raise ModelStateError(f"Cannot {operation}: no scene model loaded")

    def load_model_from_file(self, path: Union[str, Path], algorithm_name: Optional[str] = None) -> None:
        """
        Load the scene model from an XML file.

        Args:
            path: Model file
            algorithm_name: Algorithm for every scene. Overrides the per-scene
                ``algorithm`` attribute when given.

        Raises:
            ModelStateError: If a model is already loaded
            ModelLoadError: If the file is missing or malformed
        """
        if self._state != ModelState.UNLOADED:
            raise ModelStateError("Scene model is already loaded")

        path = Path(path)
        if not path.is_file():
            raise ModelLoadError(f"Scene model file not found: {path}")

        try:
            tree = ET.parse(path)
        except ET.ParseError as e:
            raise ModelLoadError(f"Malformed scene model file {path}: {e}") from e

        self.load_model_from_element(tree.getroot(), algorithm_name)
        logger.info(f"Loaded scene model from {path}")

    def load_model_from_element(self, root: ET.Element, algorithm_name: Optional[str] = None) -> None:
        """Build the scenes from a parsed <sceneModel> element."""
        if self._state != ModelState.UNLOADED:
            raise ModelStateError("Scene model is already loaded")
        if root.tag != ROOT_TAG:
            raise ModelLoadError(f"Expected <{ROOT_TAG}> root element, got <{root.tag}>")

        scenes = []
        names = set()
        for element in root.findall("scene"):
            name = element.get("name")
            if name in names:
                raise ModelLoadError(f"Duplicate scene '{name}'")
            names.add(name)

            selected = algorithm_name or element.get("algorithm", DEFAULT_ALGORITHM)
            try:
                algorithm = create_algorithm(selected)
            except InvalidArgumentError as e:
                raise ModelLoadError(str(e)) from e

            scenes.append(scene_from_element(element, algorithm, self._default_class_counter))

        if not scenes:
            logger.warning("Scene model contains no scenes")

        self._scenes = scenes
        self._state = ModelState.LOADED
        logger.info(
            f"Scene model holds {len(scenes)} scenes: "
            f"{', '.join(s.description for s in scenes)}"
        )

    def to_element(self) -> ET.Element:
        """Serialize the model, including everything learned so far."""
        self._require_loaded("serialize model")
        root = ET.Element(ROOT_TAG)
        for scene in self._scenes:
            root.append(scene.to_element())
        return root

    def save_model_to_file(self, path: Union[str, Path]) -> None:
        """Write the model to an XML file."""
        tree = ET.ElementTree(self.to_element())
        ET.indent(tree)
        tree.write(str(path), encoding="utf-8", xml_declaration=True)
        logger.info(f"Saved scene model to {path}")

    def integrate_evidence(self, evidence: Evidence) -> None:
        """Buffer an observation for the next update_model()."""
        self._require_loaded("integrate evidence")
        self._evidence_buffer.append(evidence)

    def integrate_scene_graph(self, graph: ExampleSceneGraph) -> None:
        """Learn from one example scene graph."""
        self._require_loaded("integrate scene graph")

        matched = False
        for scene in self._scenes:
            if isinstance(scene, ForegroundScene):
                if scene.description != graph.identifier:
                    continue
                matched = True
            elif scene.description == graph.identifier:
                matched = True
            scene.learn(graph)

        if not matched:
            logger.warning(f"No scene named '{graph.identifier}' in model, only background scenes learned")

        if self._metrics is not None:
            self._metrics.count("psm_scene_graphs_integrated_total")

    def update_model(self) -> None:
        """Apply buffered evidence and rebuild changed probabilities."""
        self._require_loaded("update model")

        buffered, self._evidence_buffer = self._evidence_buffer, []
        for evidence in buffered:
            for scene in self._scenes:
                if scene.is_relevant(evidence.object_type):
                    scene.add_evidence(evidence)

        rebuilt = [scene.description for scene in self._scenes if scene.update()]
        if rebuilt:
            logger.debug(f"Rebuilt probabilities of {rebuilt}")

        if buffered and self._metrics is not None:
            self._metrics.count("psm_evidence_integrated_total", len(buffered))

        self._state = ModelState.RUNNING

    def get_scene_list_with_probabilities(self) -> List[SceneIdentifier]:
        """
        Compute the likelihood of every scene.

        Returns:
            One SceneIdentifier per scene, in model order
        """
        self._require_loaded("compute scene probabilities")

        results = []
        for scene in self._scenes:
            if self._metrics is not None:
                with self._metrics.timer("psm_inference_seconds", algorithm=scene.algorithm.name):
                    likelihood = scene.compute_likelihood()
                self._metrics.set_gauge("psm_scene_likelihood", likelihood, scene=scene.description)
            else:
                likelihood = scene.compute_likelihood()
            results.append(scene.to_identifier(likelihood))
        return results

    def initialize_visualizer(self, visualizer) -> None:
        """Register a read-only handle of every scene with the visualizer."""
        self._require_loaded("initialize visualizer")
        for scene in self._scenes:
            visualizer.add_scene(scene.handle())


__all__ = ['ModelState', 'SceneModelDescription']

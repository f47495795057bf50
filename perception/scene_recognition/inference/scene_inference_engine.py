"""
Scene Inference Engine.

Runs the probabilistic scene model against streamed observations:
- Buffers observations and example scene graphs from any thread
- Transforms observations into the model frame
- Integrates them into the model once per update cycle
- Forwards the scene likelihoods to visualization and plotting

Two modes of operation exist. In continuous mode spin() calls update() at a
fixed rate. In stack mode a recorded archive of observations is replayed in
one go and the final likelihoods are returned.
"""

import logging
import queue
import threading
import time
from pathlib import Path
from typing import List, Optional, Sequence, Union

from monitoring import MetricsRegistry, start_metrics_server

from ..archive import ArchiveReader, JsonLinesArchiveReader
from ..config import EngineConfig
from ..errors import ArchiveError, ConfigurationError, TransformError
from ..helper.object_transformation import ObjectTransformation, TransformLookup
from ..messages import Evidence, ExampleSceneGraph, SceneIdentifier, rank_scenes
from ..visualization import BarChartPlotter, ProbabilisticSceneModelVisualization
from .scene_model_description import SceneModelDescription


logger = logging.getLogger(__name__)


class SceneInferenceEngine:
    """
    Control loop around a SceneModelDescription.

    Example:
        >>> config = EngineConfig.from_yaml("config/scene_inference.yaml")
        >>> transforms = StaticTransformBuffer()
        >>> transforms.set_transform("map", "camera", [0.0, 0.0, 1.2])
        >>> engine = SceneInferenceEngine(config, transforms)
        >>> engine.new_observation_callback(evidence)
        >>> scenes = engine.update()
    """

    def __init__(
        self,
        config: EngineConfig,
        transform_lookup: TransformLookup,
        visualizer: Optional[ProbabilisticSceneModelVisualization] = None,
        plotter: Optional[BarChartPlotter] = None,
        archive_reader: Optional[ArchiveReader] = None,
        metrics: Optional[MetricsRegistry] = None,
    ):
        """
        Initialize the engine, load the model and learn from the configured archives.

        Args:
            config: Engine parameters
            transform_lookup: Source of transforms into config.base_frame_id
            visualizer: Marker visualization, a sink-less one if None
            plotter: Bar chart plotter, only used if config.plot is set
            archive_reader: Archive reader, JSON lines if None
            metrics: Metrics registry, a private one if None

        Raises:
            ModelLoadError: If the scene model cannot be loaded
            ConfigurationError: If archives are given without scene_graph_topic
        """
        self.config = config
        self.metrics = metrics if metrics is not None else MetricsRegistry()

        # Buffers filled by the callbacks, drained by update()
        self._evidence_buffer: "queue.Queue[Evidence]" = queue.Queue()
        self._scene_graph_buffer: "queue.Queue[ExampleSceneGraph]" = queue.Queue()
        self._stop_event = threading.Event()

        self.transformation = ObjectTransformation(transform_lookup, config.base_frame_id)
        self.archive_reader = archive_reader or JsonLinesArchiveReader()

        logger.info("Initializing inference engine.")
        self.model = SceneModelDescription(
            metrics=self.metrics, default_class_counter=config.default_class_counter
        )
        self.model.load_model_from_file(config.scene_model_filename, config.inference_algorithm)

        if config.metrics_port is not None:
            start_metrics_server(config.metrics_port, self.metrics)

        self.visualizer = visualizer or ProbabilisticSceneModelVisualization()
        self.visualizer.set_drawing_parameters(
            config.scale_factor, config.sigma_multiplicator, config.base_frame_id
        )
        self.model.initialize_visualizer(self.visualizer)

        self.plotter: Optional[BarChartPlotter] = None
        if config.plot:
            self.plotter = plotter or BarChartPlotter(config.plot_output)
            self.plotter.init_animated_bar_chart(self.model.scene_names)

        if config.bag_filenames_list:
            self.read_learner_input_bags(config.bag_filenames_list)

    # =========================================================================
    # Ingress
    # =========================================================================

    def new_observation_callback(self, evidence: Evidence) -> None:
        """Queue an observation for the next update cycle."""
        self._evidence_buffer.put(evidence)
        self.metrics.count("psm_evidence_received_total")
        self.metrics.set_gauge("psm_buffer_depth", self._evidence_buffer.qsize(), buffer="evidence")

    def new_scene_graph_callback(self, graph: ExampleSceneGraph) -> None:
        """Queue an example scene graph for the next update cycle."""
        self._scene_graph_buffer.put(graph)
        self.metrics.set_gauge("psm_buffer_depth", self._scene_graph_buffer.qsize(), buffer="scene_graph")

    @property
    def pending_evidence(self) -> int:
        return self._evidence_buffer.qsize()

    @property
    def pending_scene_graphs(self) -> int:
        return self._scene_graph_buffer.qsize()

    # =========================================================================
    # Update cycle
    # =========================================================================

    def _integrate_observation(self, evidence: Evidence) -> bool:
        """Transform an observation and hand it to the model. False if dropped."""
        try:
            transformed = self.transformation.transform(evidence)
        except TransformError as e:
            logger.info(
                f"Unable to resolve transformation of '{evidence.object_type}' into "
                f"'{self.transformation.base_frame}'. Dropping object: {e}"
            )
            self.metrics.count("psm_evidence_dropped_total", reason="transform")
            return False

        self.model.integrate_evidence(transformed)
        return True

    def _drain_evidence(self) -> int:
        integrated = 0
        while True:
            try:
                evidence = self._evidence_buffer.get_nowait()
            except queue.Empty:
                break
            logger.debug(f"Object of type '{evidence.object_type}' found.")
            if self._integrate_observation(evidence):
                integrated += 1
        self.metrics.set_gauge("psm_buffer_depth", 0, buffer="evidence")
        return integrated

    def _drain_scene_graphs(self) -> int:
        learned = 0
        while True:
            try:
                graph = self._scene_graph_buffer.get_nowait()
            except queue.Empty:
                break
            logger.info(f"SceneGraph of type '{graph.identifier}' found.")
            self.model.integrate_scene_graph(graph)
            learned += 1
        self.metrics.set_gauge("psm_buffer_depth", 0, buffer="scene_graph")
        return learned

    def _log_scene_list(self, scene_list: Sequence[SceneIdentifier]) -> None:
        lines = [
            f"  {s.description} ({s.scene_type}): likelihood={s.likelihood:.6g}, priori={s.priori:.6g}"
            for s in scene_list
        ]
        logger.info("Scene probabilities:\n" + "\n".join(lines))
        ranked = rank_scenes(scene_list)
        if ranked:
            logger.info(f"Most likely scene: {ranked[0].description}")

    def update(self) -> List[SceneIdentifier]:
        """
        Run one inference cycle.

        Returns:
            Likelihood of every scene, in model order
        """
        with self.metrics.timer("psm_update_cycle_seconds"):
            integrated = self._drain_evidence()
            learned = self._drain_scene_graphs()
            logger.debug(f"Integrating {integrated} observations and {learned} scene graphs")

            self.model.update_model()
            scene_list = self.model.get_scene_list_with_probabilities()
            self._log_scene_list(scene_list)

            if self.plotter is not None:
                self.plotter.update_bar_chart_values(
                    {s.description: s.likelihood for s in scene_list}
                )
                self.plotter.send_bar_chart()

            if self.config.targeting_help:
                self.visualizer.draw_in_targeting_mode()
            else:
                self.visualizer.draw_in_inference_mode(scene_list)

        self.metrics.count("psm_update_cycles_total", mode="continuous")
        return scene_list

    def spin(self, rate_hz: Optional[float] = None, stop_event: Optional[threading.Event] = None) -> int:
        """
        Call update() periodically until stopped.

        Args:
            rate_hz: Cycles per second, config.update_rate if None
            stop_event: Event ending the loop, the engine's own if None

        Returns:
            Number of completed cycles
        """
        rate = rate_hz if rate_hz is not None else self.config.update_rate
        if rate <= 0:
            raise ConfigurationError(f"Update rate must be positive, got {rate}")
        if stop_event is not None:
            self._stop_event = stop_event

        period = 1.0 / rate
        cycles = 0
        logger.info(f"Running inference at {rate} Hz")

        while not self._stop_event.is_set():
            started = time.monotonic()
            self.update()
            cycles += 1
            self._stop_event.wait(max(0.0, period - (time.monotonic() - started)))

        logger.info(f"Inference loop stopped after {cycles} cycles")
        return cycles

    def stop(self) -> None:
        """End a running spin()."""
        self._stop_event.set()

    # =========================================================================
    # Archives
    # =========================================================================

    def execute_in_stack_mode(self) -> List[SceneIdentifier]:
        """
        Replay the observations recorded in config.bag_path.

        Every observation is integrated and followed by a model update.

        Returns:
            Likelihood of every scene after the replay, empty if the archive
            could not be read

        Raises:
            ConfigurationError: If bag_path is not configured
        """
        bag_path = self.config.bag_path
        if not bag_path:
            raise ConfigurationError("Please specify parameter bag_path when starting this node.")

        logger.info(f"Extracting observations from archive: {bag_path}")
        topic = self.config.object_topic

        try:
            records = list(self.archive_reader.read_messages(bag_path, [topic]))
        except ArchiveError as e:
            logger.error(f"Trying to extract observations aborted because of: {e}")
            return []

        if not records:
            logger.warning(f"No observations exist in {bag_path} on topic {topic}.")

        for record in records:
            try:
                evidence = Evidence.from_dict(record.message)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed observation at stamp {record.stamp}: {e}")
                self.metrics.count("psm_evidence_dropped_total", reason="malformed")
                continue

            self.metrics.count("psm_evidence_received_total")
            if self._integrate_observation(evidence):
                self.model.update_model()

        scene_list = self.model.get_scene_list_with_probabilities()
        self._log_scene_list(scene_list)
        self.metrics.count("psm_update_cycles_total", mode="stack")
        return scene_list

    def read_learner_input_bags(self, paths: Union[str, Sequence[str]]) -> int:
        """
        Queue the example scene graphs of one or more archives.

        Returns:
            Number of scene graphs queued
        """
        if isinstance(paths, (str, Path)):
            paths = [paths]
        return sum(self.extract_scene_graphs_from_archive(path) for path in paths)

    def extract_scene_graphs_from_archive(self, path: Union[str, Path]) -> int:
        """
        Queue the example scene graphs of one archive.

        Missing, empty or unreadable archives are logged and skipped.

        Returns:
            Number of scene graphs queued

        Raises:
            ConfigurationError: If scene_graph_topic is not configured
        """
        topic = self.config.scene_graph_topic
        if not topic:
            raise ConfigurationError(
                "Cannot parse archive with scene graphs without knowing on which topic they were sent."
            )

        path = Path(path)
        if not path.is_file():
            logger.warning(f"Archive {path} does not exist, skipping.")
            return 0

        logger.info(f"Extracting scene graphs from archive: {path}")
        try:
            records = list(self.archive_reader.read_messages(path, [topic]))
        except ArchiveError as e:
            logger.error(f"Trying to extract scene graphs aborted because of: {e}")
            return 0

        if not records:
            logger.warning(f"No scene graphs exist in {path} on topic {topic}.")
            return 0

        queued = 0
        for record in records:
            try:
                graph = ExampleSceneGraph.from_dict(record.message)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed scene graph at stamp {record.stamp}: {e}")
                continue
            self.new_scene_graph_callback(graph)
            queued += 1

        logger.info(f"Queued {queued} scene graphs from {path}")
        return queued


__all__ = ['SceneInferenceEngine']

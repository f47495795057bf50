"""
Visualization of the scene model and its inference results.

ProbabilisticSceneModelVisualization turns the learned spatial kernels into
ellipsoid markers and hands them to a sink callable (e.g. an adapter that
publishes RViz markers). BarChartPlotter draws the scene likelihoods with
matplotlib.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence

import numpy as np

import matplotlib
matplotlib.use("Agg")  # No display needed, charts are only written to files
import matplotlib.pyplot as plt

from .messages import SceneIdentifier

if TYPE_CHECKING:
    from .inference.scenes import SceneHandle


logger = logging.getLogger(__name__)


@dataclass
class EllipsoidMarker:
    """
    Covariance ellipsoid of one object type in one scene.

    Attributes:
        marker_id: Id unique within one drawing cycle
        scene: Scene description
        object_type: Object type of the kernel
        frame_id: Frame of center and axes
        center: Ellipsoid center [x, y, z]
        radii: Semi-axis lengths, one per column of axes
        axes: 3x3 matrix whose columns are the principal directions
        alpha: Opacity in [0, 1]
    """
    marker_id: int
    scene: str
    object_type: str
    frame_id: str
    center: np.ndarray
    radii: np.ndarray
    axes: np.ndarray
    alpha: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.marker_id,
            "scene": self.scene,
            "object_type": self.object_type,
            "frame_id": self.frame_id,
            "center": self.center.tolist(),
            "radii": self.radii.tolist(),
            "axes": self.axes.tolist(),
            "alpha": self.alpha,
        }


MarkerSink = Callable[[List[EllipsoidMarker]], None]


class ProbabilisticSceneModelVisualization:
    """
    Builds ellipsoid markers for every foreground scene kernel.

    In inference mode the opacity of a scene's markers follows its weighted
    likelihood relative to the best scene. In targeting mode every scene is
    drawn fully opaque to show where objects are expected.
    """

    def __init__(self, sink: Optional[MarkerSink] = None):
        self.sink = sink
        self.scale_factor = 1.0
        self.sigma_multiplicator = 1.0
        self.frame_id = "world"
        self._scenes: List["SceneHandle"] = []
        self.last_markers: List[EllipsoidMarker] = []

    @property
    def scene_names(self) -> List[str]:
        return [handle.description for handle in self._scenes]

    def set_drawing_parameters(self, scale_factor: float, sigma_multiplicator: float, frame_id: str) -> None:
        """Set marker scaling and the frame markers are expressed in."""
        self.scale_factor = float(scale_factor)
        self.sigma_multiplicator = float(sigma_multiplicator)
        self.frame_id = frame_id

    def add_scene(self, handle: "SceneHandle") -> None:
        """Register a scene to draw."""
        self._scenes.append(handle)

    def _build_markers(self, alphas: Dict[str, float]) -> List[EllipsoidMarker]:
        markers = []
        for handle in self._scenes:
            ellipsoids = handle.kernel_ellipsoids(self.sigma_multiplicator)
            for object_type, (center, radii, axes) in ellipsoids.items():
                markers.append(EllipsoidMarker(
                    marker_id=len(markers),
                    scene=handle.description,
                    object_type=object_type,
                    frame_id=self.frame_id,
                    center=center,
                    radii=radii * self.scale_factor,
                    axes=axes,
                    alpha=alphas.get(handle.description, 0.0),
                ))
        return markers

    def _emit(self, markers: List[EllipsoidMarker]) -> List[EllipsoidMarker]:
        self.last_markers = markers
        if self.sink is not None:
            self.sink(markers)
        logger.debug(f"Emitted {len(markers)} markers")
        return markers

    def draw_in_inference_mode(self, scene_list: Sequence[SceneIdentifier]) -> List[EllipsoidMarker]:
        """Draw all scenes, shaded by their weighted likelihood."""
        weights = {s.description: s.weighted_likelihood for s in scene_list}
        best = max(weights.values(), default=0.0)
        if best > 0:
            alphas = {name: weight / best for name, weight in weights.items()}
        else:
            alphas = {name: 0.0 for name in weights}
        return self._emit(self._build_markers(alphas))

    def draw_in_targeting_mode(self) -> List[EllipsoidMarker]:
        """Draw all scenes fully opaque."""
        return self._emit(self._build_markers({name: 1.0 for name in self.scene_names}))


class BarChartPlotter:
    """
    Bar chart of scene likelihoods.

    Example:
        >>> plotter = BarChartPlotter("likelihoods.png")
        >>> plotter.init_animated_bar_chart(["Kitchen", "Office"])
        >>> plotter.update_bar_chart_values({"Kitchen": 0.5, "Office": 0.1})
        >>> plotter.send_bar_chart()
    """

    def __init__(self, output_path: Optional[str] = None):
        self.output_path = output_path
        self.labels: List[str] = []
        self.values: Dict[str, float] = {}
        self._figure = None
        self._axes = None
        self._bars = None

    def init_animated_bar_chart(self, labels: Sequence[str], title: str = "Scene likelihoods") -> None:
        """Create the figure with one bar per label."""
        self.close()
        self.labels = list(labels)
        self.values = {label: 0.0 for label in self.labels}

        self._figure, self._axes = plt.subplots()
        self._bars = self._axes.bar(self.labels, [0.0] * len(self.labels))
        self._axes.set_title(title)
        self._axes.set_ylabel("Likelihood")
        self._axes.set_ylim(0.0, 1.0)
        self._figure.tight_layout()

    def update_bar_chart_values(self, values: Dict[str, float]) -> None:
        """Set bar heights. Unknown labels are ignored."""
        for label, value in values.items():
            if label in self.values:
                self.values[label] = float(value)

    def send_bar_chart(self) -> Optional[str]:
        """
        Redraw the chart and write it to the output path, if any.

        Returns:
            Path of the written image, or None
        """
        if self._figure is None:
            return None

        heights = [self.values[label] for label in self.labels]
        for bar, height in zip(self._bars, heights):
            bar.set_height(height)
        top = max(heights, default=0.0)
        self._axes.set_ylim(0.0, top * 1.1 if top > 0 else 1.0)

        if self.output_path is None:
            self._figure.canvas.draw()
            return None

        self._figure.savefig(self.output_path, dpi=100)
        return self.output_path

    def close(self) -> None:
        """Release the figure."""
        if self._figure is not None:
            plt.close(self._figure)
        self._figure = None
        self._axes = None
        self._bars = None


__all__ = [
    'EllipsoidMarker',
    'MarkerSink',
    'ProbabilisticSceneModelVisualization',
    'BarChartPlotter',
]

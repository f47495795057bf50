"""
Probabilistic Scene Recognition Module.

This module recognizes scenes (learned arrangements of objects) from a
stream of object observations:
- Occurrence statistics per scene in mapped probability tables
- Spatial Gaussian kernels for foreground scenes
- Power-set, multiplication, summarized and maximum inference
- Learning from recorded example scene graphs
- Continuous and archive replay ("stack") operation

Components:
    - SceneModelDescription: All scenes of a model, evidence routing and learning
    - SceneInferenceEngine: Buffered update loop around the model
    - EngineConfig: Startup parameters, loadable from YAML
    - StaticTransformBuffer: In-process coordinate frame transforms

Example:
    >>> from perception.scene_recognition import (
    ...     EngineConfig, Evidence, Pose, SceneInferenceEngine, StaticTransformBuffer
    ... )
    >>>
    >>> config = EngineConfig.from_yaml("config/scene_inference.yaml")
    >>> transforms = StaticTransformBuffer()
    >>> transforms.set_transform("map", "camera", [0.0, 0.0, 1.2])
    >>> engine = SceneInferenceEngine(config, transforms)
    >>>
    >>> # Feed observations, then run a cycle
    >>> engine.new_observation_callback(Evidence("Cup", Pose([0.4, 0.1, 0.0]), frame_id="camera"))
    >>> for scene in engine.update():
    ...     print(scene.description, scene.likelihood)
"""

from .errors import (
    SceneRecognitionError,
    InvalidArgumentError,
    OutOfRangeError,
    ModelLoadError,
    ModelStateError,
    ConfigurationError,
    TransformError,
    ArchiveError,
)

from .messages import (
    Pose,
    Evidence,
    ExampleSceneGraph,
    SceneIdentifier,
    rank_scenes,
)

from .config import EngineConfig

from .helper import (
    ProbabilityTable,
    MappedProbabilityTable,
    GaussianKernel,
    TransformLookup,
    StaticTransformBuffer,
    ObjectTransformation,
)

from .archive import ArchiveMessage, ArchiveReader, JsonLinesArchiveReader

from .visualization import (
    EllipsoidMarker,
    ProbabilisticSceneModelVisualization,
    BarChartPlotter,
)

from .inference import (
    BackgroundScene,
    ForegroundScene,
    InferenceAlgorithm,
    create_algorithm,
    ModelState,
    SceneModelDescription,
    SceneInferenceEngine,
)


__all__ = [
    # Errors
    'SceneRecognitionError',
    'InvalidArgumentError',
    'OutOfRangeError',
    'ModelLoadError',
    'ModelStateError',
    'ConfigurationError',
    'TransformError',
    'ArchiveError',

    # Messages
    'Pose',
    'Evidence',
    'ExampleSceneGraph',
    'SceneIdentifier',
    'rank_scenes',

    # Configuration
    'EngineConfig',

    # Helpers
    'ProbabilityTable',
    'MappedProbabilityTable',
    'GaussianKernel',
    'TransformLookup',
    'StaticTransformBuffer',
    'ObjectTransformation',

    # Archives
    'ArchiveMessage',
    'ArchiveReader',
    'JsonLinesArchiveReader',

    # Visualization
    'EllipsoidMarker',
    'ProbabilisticSceneModelVisualization',
    'BarChartPlotter',

    # Inference
    'BackgroundScene',
    'ForegroundScene',
    'InferenceAlgorithm',
    'create_algorithm',
    'ModelState',
    'SceneModelDescription',
    'SceneInferenceEngine',
]


__version__ = '1.0.0'

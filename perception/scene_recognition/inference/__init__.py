"""
Scene models, inference algorithms and the engine running them.
"""

from .scenes import (
    ABSENT_ROW,
    PRESENT_ROW,
    SceneModel,
    BackgroundScene,
    ForegroundScene,
    SceneHandle,
)
from .algorithms import (
    DEFAULT_ALGORITHM,
    ALGORITHMS,
    InferenceAlgorithm,
    PowerSetAlgorithm,
    MultiplicationAlgorithm,
    SummarizedAlgorithm,
    MaximumAlgorithm,
    register_algorithm,
    create_algorithm,
    power_set,
)
from .scene_model_description import ModelState, SceneModelDescription
from .scene_inference_engine import SceneInferenceEngine


__all__ = [
    # Scenes
    'ABSENT_ROW',
    'PRESENT_ROW',
    'SceneModel',
    'BackgroundScene',
    'ForegroundScene',
    'SceneHandle',

    # Algorithms
    'DEFAULT_ALGORITHM',
    'ALGORITHMS',
    'InferenceAlgorithm',
    'PowerSetAlgorithm',
    'MultiplicationAlgorithm',
    'SummarizedAlgorithm',
    'MaximumAlgorithm',
    'register_algorithm',
    'create_algorithm',
    'power_set',

    # Model and engine
    'ModelState',
    'SceneModelDescription',
    'SceneInferenceEngine',
]

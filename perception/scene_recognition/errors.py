"""
Exception types for probabilistic scene recognition.

Fatal errors (configuration, model loading) propagate to the caller that
starts the engine. Recoverable errors (transforms, archives) are caught by the
engine, logged, and the offending item is skipped.
"""


class SceneRecognitionError(Exception):
    """Base class for all scene recognition errors."""
    pass


class InvalidArgumentError(SceneRecognitionError, ValueError):
    """Raised when an argument has an invalid value."""
    pass


class OutOfRangeError(SceneRecognitionError, IndexError):
    """Raised when a table index exceeds its bounds."""
    pass


class ModelLoadError(SceneRecognitionError):
    """Raised when the scene model file is missing or malformed."""
    pass


class ModelStateError(SceneRecognitionError):
    """Raised when an operation is invalid in the current model state."""
    pass


class ConfigurationError(SceneRecognitionError):
    """Raised when required startup configuration is missing or malformed."""
    pass


class TransformError(SceneRecognitionError):
    """Raised when a pose cannot be expressed in the requested frame."""
    pass


class ArchiveError(SceneRecognitionError):
    """Raised when an archive file cannot be opened or parsed."""
    pass


__all__ = [
    'SceneRecognitionError',
    'InvalidArgumentError',
    'OutOfRangeError',
    'ModelLoadError',
    'ModelStateError',
    'ConfigurationError',
    'TransformError',
    'ArchiveError',
]

"""
Helper structures of the scene model: probability tables, spatial kernels
and coordinate transforms.
"""

from .probability_table import ProbabilityTable
from .mapped_probability_table import (
    DEFAULT_CLASS,
    DEFAULT_COLUMN,
    MappedProbabilityTable,
)
from .gaussian_kernel import GaussianKernel
from .object_transformation import (
    Transform,
    TransformLookup,
    StaticTransformBuffer,
    ObjectTransformation,
)


__all__ = [
    'ProbabilityTable',
    'DEFAULT_CLASS',
    'DEFAULT_COLUMN',
    'MappedProbabilityTable',
    'GaussianKernel',
    'Transform',
    'TransformLookup',
    'StaticTransformBuffer',
    'ObjectTransformation',
]

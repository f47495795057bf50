"""
Inference algorithms computing a scene likelihood from integrated evidence.

Algorithms are stateless strategies selected by name:

- powerset: sums over every presence/absence combination of the scene's
  known object types that is consistent with the evidence
- multiplication: product of per-object terms
- summarized: mean of per-object terms
- maximum: largest per-object term

The per-object term of an observation is
``P(type | PRESENT_ROW) * location_density(observation)``, with unknown types
falling back to the default class.
"""

import itertools
import math
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Iterator, List, Tuple, Type

from ..errors import InvalidArgumentError
from ..messages import Evidence
from .scenes import ABSENT_ROW, PRESENT_ROW, SceneModel


DEFAULT_ALGORITHM = "powerset"


class InferenceAlgorithm(ABC):
    """Strategy computing the likelihood of a scene."""

    name = ""

    @abstractmethod
    def compute_likelihood(self, evidence: List[Evidence], scene: SceneModel) -> float:
        """
        Compute the likelihood of a scene.

        Args:
            evidence: Observations integrated into the scene
            scene: Scene providing the learned statistics

        Returns:
            Non-negative likelihood
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


ALGORITHMS: Dict[str, Type[InferenceAlgorithm]] = {}


def register_algorithm(cls: Type[InferenceAlgorithm]) -> Type[InferenceAlgorithm]:
    """Class decorator adding an algorithm to the registry under its name."""
    if not cls.name:
        raise InvalidArgumentError(f"{cls.__name__} has no name")
    ALGORITHMS[cls.name] = cls
    return cls


def create_algorithm(name: str) -> InferenceAlgorithm:
    """
    Instantiate an algorithm by name.

    Raises:
        InvalidArgumentError: If no algorithm is registered under the name
    """
    try:
        return ALGORITHMS[name]()
    except KeyError:
        raise InvalidArgumentError(
            f"Unknown inference algorithm '{name}', expected one of {sorted(ALGORITHMS)}"
        ) from None


def object_term(evidence: Evidence, scene: SceneModel) -> float:
    """Occurrence probability of the observed type times its location density."""
    return scene.occurrence_probability(PRESENT_ROW, evidence.object_type) * scene.location_density(evidence)


def power_set(items: Iterable) -> Iterator[Tuple]:
    """Yield all subsets of items, smallest first. n items yield 2^n subsets."""
    items = list(items)
    return itertools.chain.from_iterable(
        itertools.combinations(items, size) for size in range(len(items) + 1)
    )


def _log(value: float) -> float:
    return math.log(value) if value > 0 else -math.inf


@register_algorithm
class PowerSetAlgorithm(InferenceAlgorithm):
    """
    Marginalizes over the presence of every known object type.

    A subset S of known types is consistent with the evidence if it contains
    every observed known type. Each consistent subset contributes
    ``prod_{t in S} P(t|PRESENT) * prod_{t not in S} P(t|ABSENT)``. The sum of
    the contributions is multiplied by the location factor of every
    observation, and unknown observed types additionally multiply the
    probability of the default class.

    The enumeration is exponential in the number of known types.
    """

    name = "powerset"

    def compute_likelihood(self, evidence: List[Evidence], scene: SceneModel) -> float:
        known = scene.object_types
        known_set = set(known)
        observed = {e.object_type for e in evidence if e.object_type in known_set}

        present = {t: _log(scene.occurrence_probability(PRESENT_ROW, t)) for t in known}
        absent = {t: _log(scene.occurrence_probability(ABSENT_ROW, t)) for t in known}

        contributions = []
        for subset in power_set(known):
            members = set(subset)
            if not observed <= members:
                continue
            log_value = math.fsum(present[t] if t in members else absent[t] for t in known)
            if log_value > -math.inf:
                contributions.append(math.exp(log_value))

        occurrence = math.fsum(contributions)
        if occurrence == 0.0:
            return 0.0

        log_location = 0.0
        for observation in evidence:
            log_location += _log(scene.location_density(observation))
            if observation.object_type not in known_set:
                log_location += _log(scene.default_probability(PRESENT_ROW))

        return occurrence * math.exp(log_location)


@register_algorithm
class MultiplicationAlgorithm(InferenceAlgorithm):
    """Product of the per-object terms. Empty evidence gives 1.0."""

    name = "multiplication"

    def compute_likelihood(self, evidence: List[Evidence], scene: SceneModel) -> float:
        log_value = math.fsum(_log(object_term(e, scene)) for e in evidence)
        return math.exp(log_value)


@register_algorithm
class SummarizedAlgorithm(InferenceAlgorithm):
    """Mean of the per-object terms. Empty evidence gives 0.0."""

    name = "summarized"

    def compute_likelihood(self, evidence: List[Evidence], scene: SceneModel) -> float:
        if not evidence:
            return 0.0
        return math.fsum(object_term(e, scene) for e in evidence) / len(evidence)


@register_algorithm
class MaximumAlgorithm(InferenceAlgorithm):
    """Largest per-object term. Empty evidence gives 0.0."""

    name = "maximum"

    def compute_likelihood(self, evidence: List[Evidence], scene: SceneModel) -> float:
        return max((object_term(e, scene) for e in evidence), default=0.0)


__all__ = [
    'DEFAULT_ALGORITHM',
    'ALGORITHMS',
    'InferenceAlgorithm',
    'PowerSetAlgorithm',
    'MultiplicationAlgorithm',
    'SummarizedAlgorithm',
    'MaximumAlgorithm',
    'register_algorithm',
    'create_algorithm',
    'object_term',
    'power_set',
]

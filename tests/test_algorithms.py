"""
Tests for the inference algorithms.

Tests:
- Power set enumeration
- Power-set likelihoods including the worked kitchen example
- Multiplication, summarized and maximum variants
- Algorithm registry
"""

import pytest

from perception.scene_recognition.errors import InvalidArgumentError
from perception.scene_recognition.helper.mapped_probability_table import MappedProbabilityTable
from perception.scene_recognition.inference.algorithms import (
    ALGORITHMS,
    InferenceAlgorithm,
    MaximumAlgorithm,
    MultiplicationAlgorithm,
    PowerSetAlgorithm,
    SummarizedAlgorithm,
    create_algorithm,
    power_set,
)
from perception.scene_recognition.inference.scenes import (
    ABSENT_ROW,
    PRESENT_ROW,
    BackgroundScene,
)

from .conftest import make_evidence


def background_scene(algorithm, volume=1.0, present=None, absent=None, default=(0.0, 0.0)):
    """Build a background scene from per-row counts."""
    table = MappedProbabilityTable(rows=2)
    table.set_default_class_counter(ABSENT_ROW, default[0])
    table.set_default_class_counter(PRESENT_ROW, default[1])
    for object_type, count in (present or {}).items():
        table.increment(PRESENT_ROW, object_type, count)
    for object_type, count in (absent or {}).items():
        table.increment(ABSENT_ROW, object_type, count)
    return BackgroundScene("Kitchen", 1.0, algorithm, volume=volume, occurrences=table)


class TestPowerSet:
    """Tests for subset enumeration."""

    @pytest.mark.parametrize("n", [0, 1, 2, 5])
    def test_yields_two_to_the_n_subsets(self, n):
        subsets = list(power_set(range(n)))
        assert len(subsets) == 2 ** n
        assert len(set(subsets)) == 2 ** n

    def test_empty_set_yields_only_empty_subset(self):
        assert list(power_set([])) == [()]


class TestPowerSetAlgorithm:
    """Tests for the power-set likelihood."""

    def test_kitchen_example(self):
        scene = background_scene(
            PowerSetAlgorithm(),
            present={"Cup": 1.0, "Plate": 1.0},
            absent={"Cup": 1.0, "Plate": 1.0},
        )
        likelihood = PowerSetAlgorithm().compute_likelihood([make_evidence("Cup", "1")], scene)
        assert likelihood == pytest.approx(0.5)

    def test_no_types_no_evidence_is_one(self):
        scene = background_scene(PowerSetAlgorithm())
        algorithm = PowerSetAlgorithm()
        assert algorithm.compute_likelihood([], scene) == 1.0
        assert algorithm.compute_likelihood([], scene) == 1.0

    def test_location_factor_uses_volume(self):
        scene = background_scene(
            PowerSetAlgorithm(),
            volume=4.0,
            present={"Cup": 1.0, "Plate": 1.0},
            absent={"Cup": 1.0, "Plate": 1.0},
        )
        likelihood = PowerSetAlgorithm().compute_likelihood([make_evidence("Cup", "1")], scene)
        assert likelihood == pytest.approx(0.5 / 4.0)

    def test_unknown_type_multiplies_default_probability(self):
        scene = background_scene(
            PowerSetAlgorithm(),
            present={"Cup": 3.0},
            absent={"Cup": 1.0},
            default=(0.0, 1.0),
        )
        evidence = [make_evidence("Cup", "1"), make_evidence("Spoon", "2")]
        # Only {Cup} is consistent: P(Cup|present)=0.75, P(default|present)=0.25
        likelihood = PowerSetAlgorithm().compute_likelihood(evidence, scene)
        assert likelihood == pytest.approx(0.75 * 0.25)

    def test_zero_probability_subsets_contribute_nothing(self):
        scene = background_scene(
            PowerSetAlgorithm(),
            present={"Cup": 1.0, "Plate": 1.0},
        )
        # Absent row is all zero, so only the full subset contributes
        likelihood = PowerSetAlgorithm().compute_likelihood([], scene)
        assert likelihood == pytest.approx(0.25)


class TestSimpleAlgorithms:
    """Tests for the per-object aggregations."""

    @pytest.fixture
    def scene(self):
        return background_scene(
            MultiplicationAlgorithm(),
            volume=2.0,
            present={"Cup": 3.0, "Plate": 1.0},
        )

    @pytest.fixture
    def evidence(self):
        return [make_evidence("Cup", "1"), make_evidence("Plate", "2")]

    def test_multiplication(self, scene, evidence):
        result = MultiplicationAlgorithm().compute_likelihood(evidence, scene)
        assert result == pytest.approx((0.75 / 2.0) * (0.25 / 2.0))

    def test_summarized(self, scene, evidence):
        result = SummarizedAlgorithm().compute_likelihood(evidence, scene)
        assert result == pytest.approx(((0.75 / 2.0) + (0.25 / 2.0)) / 2.0)

    def test_maximum(self, scene, evidence):
        result = MaximumAlgorithm().compute_likelihood(evidence, scene)
        assert result == pytest.approx(0.75 / 2.0)

    def test_empty_evidence(self, scene):
        assert MultiplicationAlgorithm().compute_likelihood([], scene) == 1.0
        assert SummarizedAlgorithm().compute_likelihood([], scene) == 0.0
        assert MaximumAlgorithm().compute_likelihood([], scene) == 0.0


class TestRegistry:
    """Tests for algorithm selection by name."""

    @pytest.mark.parametrize("name,cls", [
        ("powerset", PowerSetAlgorithm),
        ("multiplication", MultiplicationAlgorithm),
        ("summarized", SummarizedAlgorithm),
        ("maximum", MaximumAlgorithm),
    ])
    def test_create_by_name(self, name, cls):
        algorithm = create_algorithm(name)
        assert isinstance(algorithm, cls)
        assert isinstance(algorithm, InferenceAlgorithm)
        assert algorithm.name == name

    def test_unknown_name_rejected(self):
        with pytest.raises(InvalidArgumentError):
            create_algorithm("bayesnet")

    def test_registry_lists_all(self):
        assert {"powerset", "multiplication", "summarized", "maximum"} <= set(ALGORITHMS)

"""
Tests for scene models and spatial kernels.
"""

import xml.etree.ElementTree as ET

import numpy as np
import pytest

from perception.scene_recognition.errors import InvalidArgumentError, ModelLoadError
from perception.scene_recognition.helper.gaussian_kernel import GaussianKernel
from perception.scene_recognition.helper.mapped_probability_table import (
    DEFAULT_CLASS,
    MappedProbabilityTable,
)
from perception.scene_recognition.inference.algorithms import create_algorithm
from perception.scene_recognition.inference.scenes import (
    ABSENT_ROW,
    OCCURRENCE_ROWS,
    PRESENT_ROW,
    BackgroundScene,
    ForegroundScene,
    scene_from_element,
)

from .conftest import make_evidence, make_graph


class TestGaussianKernel:
    """Tests for the incrementally learned kernel."""

    def test_mean_and_covariance(self):
        kernel = GaussianKernel()
        for x in (0.0, 2.0):
            kernel.add_sample([x, 0.0, 0.0])
        assert kernel.ready
        assert np.allclose(kernel.mean, [1.0, 0.0, 0.0])
        assert kernel.covariance[0, 0] == pytest.approx(2.0, rel=1e-5)

    def test_not_ready_below_two_samples(self):
        kernel = GaussianKernel()
        kernel.add_sample([1.0, 1.0, 1.0])
        assert not kernel.ready

    def test_density_peaks_at_mean(self):
        kernel = GaussianKernel()
        for position in ([0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 1], [1, 1, 1]):
            kernel.add_sample(position)
        assert kernel.density(kernel.mean) > kernel.density(kernel.mean + 2.0)

    def test_ellipsoid_radii_scale_with_sigma(self):
        kernel = GaussianKernel()
        for position in ([0, 0, 0], [2, 0, 0], [0, 1, 0], [2, 1, 0]):
            kernel.add_sample(position)
        _, radii_one, _ = kernel.ellipsoid(1.0)
        _, radii_two, axes = kernel.ellipsoid(2.0)
        assert np.allclose(radii_two, 2.0 * radii_one)
        assert axes.shape == (3, 3)

    def test_save_then_load(self):
        kernel = GaussianKernel()
        kernel.add_sample([0.1, 0.2, 0.3])
        kernel.add_sample([1.0 / 3.0, 0.0, -1.0])
        element = ET.Element("kernel")
        kernel.save(element)
        restored = GaussianKernel.from_element(element)
        assert restored.samples == 2
        assert np.array_equal(restored.total, kernel.total)
        assert np.array_equal(restored.outer, kernel.outer)


class TestLearning:
    """Tests for learning from example scene graphs."""

    def test_present_and_absent_counts(self):
        scene = BackgroundScene("Kitchen", 1.0, create_algorithm("powerset"))
        scene.learn(make_graph("Kitchen", "Cup", "Plate"))
        scene.learn(make_graph("Kitchen", "Cup"))

        counts = scene.counts
        assert counts.get(PRESENT_ROW, "Cup") == 2.0
        assert counts.get(PRESENT_ROW, "Plate") == 1.0
        assert counts.get(ABSENT_ROW, "Plate") == 1.0
        assert counts.get(ABSENT_ROW, "Cup") == 0.0

    def test_repeated_type_counts_once_per_example(self):
        scene = BackgroundScene("Kitchen", 1.0, create_algorithm("powerset"))
        scene.learn(make_graph("Kitchen", "Cup", "Cup", "Cup"))
        assert scene.counts.get(PRESENT_ROW, "Cup") == 1.0

    def test_probabilities_rebuilt_on_update(self):
        scene = BackgroundScene("Kitchen", 1.0, create_algorithm("powerset"))
        scene.learn(make_graph("Kitchen", "Cup"))
        assert scene.needs_update
        assert scene.occurrence_probability(PRESENT_ROW, "Cup") == 0.0

        assert scene.update()
        # One learned Cup next to one default class pseudo-observation
        assert scene.occurrence_probability(PRESENT_ROW, "Cup") == 0.5
        assert scene.default_probability(PRESENT_ROW) == 0.5
        assert not scene.update()

    def test_counts_independent_of_example_order(self):
        forward = BackgroundScene("Kitchen", 1.0, create_algorithm("powerset"))
        forward.learn(make_graph("Kitchen", "Cup"))
        forward.learn(make_graph("Kitchen", "Plate"))

        backward = BackgroundScene("Kitchen", 1.0, create_algorithm("powerset"))
        backward.learn(make_graph("Kitchen", "Plate"))
        backward.learn(make_graph("Kitchen", "Cup"))

        for row in (ABSENT_ROW, PRESENT_ROW):
            for object_type in ("Cup", "Plate", DEFAULT_CLASS):
                assert forward.counts.get(row, object_type) == backward.counts.get(row, object_type)
        assert forward.counts.get(ABSENT_ROW, "Cup") == 1.0
        assert backward.counts.get(ABSENT_ROW, "Cup") == 1.0
        assert forward.examples_seen == backward.examples_seen == 2

        forward.update()
        backward.update()
        evidence = [make_evidence("Cup", "1")]
        assert forward.compute_likelihood() == pytest.approx(backward.compute_likelihood())
        algorithm = create_algorithm("powerset")
        assert algorithm.compute_likelihood(evidence, forward) == pytest.approx(
            algorithm.compute_likelihood(evidence, backward)
        )

    def test_late_type_absent_from_earlier_examples(self):
        scene = BackgroundScene("Kitchen", 1.0, create_algorithm("powerset"))
        for _ in range(3):
            scene.learn(make_graph("Kitchen", "Cup"))
        scene.learn(make_graph("Kitchen", "Cup", "Spoon"))

        assert scene.counts.get(PRESENT_ROW, "Spoon") == 1.0
        assert scene.counts.get(ABSENT_ROW, "Spoon") == 3.0
        assert scene.examples_seen == 4

    def test_unseen_type_keeps_likelihood_after_learning(self):
        scene = BackgroundScene("Kitchen", 1.0, create_algorithm("powerset"))
        scene.learn(make_graph("Kitchen", "Cup", "Plate"))
        scene.learn(make_graph("Kitchen", "Cup"))
        scene.update()
        scene.add_evidence(make_evidence("Cup", "1"))
        scene.add_evidence(make_evidence("Spoon", "2"))

        # PRESENT: default 1, Cup 2, Plate 1. ABSENT: Plate 1
        assert scene.default_probability(PRESENT_ROW) == pytest.approx(0.25)
        likelihood = scene.compute_likelihood()
        assert likelihood > 0
        assert likelihood == pytest.approx((0.5 * 1.0 + 0.5 * 0.25) * 0.25)

    def test_default_class_counter_disabled(self):
        scene = BackgroundScene(
            "Kitchen", 1.0, create_algorithm("powerset"), default_class_counter=0.0
        )
        scene.learn(make_graph("Kitchen", "Cup"))
        scene.update()
        scene.add_evidence(make_evidence("Spoon", "2"))

        assert scene.default_probability(PRESENT_ROW) == 0.0
        assert scene.compute_likelihood() == 0.0

    def test_seeded_default_counter_kept(self):
        table = MappedProbabilityTable(OCCURRENCE_ROWS)
        table.set_default_class_counter(PRESENT_ROW, 5.0)
        scene = BackgroundScene("Kitchen", 1.0, create_algorithm("powerset"), occurrences=table)
        scene.learn(make_graph("Kitchen", "Cup"))
        assert scene.counts.get(PRESENT_ROW, DEFAULT_CLASS) == 5.0

    def test_examples_seen_derived_from_loaded_counts(self):
        table = MappedProbabilityTable(OCCURRENCE_ROWS)
        table.increment(ABSENT_ROW, "Cup", 1.0)
        table.increment(PRESENT_ROW, "Cup", 3.0)
        table.increment(PRESENT_ROW, "Plate", 2.0)
        scene = BackgroundScene("Kitchen", 1.0, create_algorithm("powerset"), occurrences=table)
        assert scene.examples_seen == 4

        scene.learn(make_graph("Kitchen", "Spoon"))
        assert scene.counts.get(ABSENT_ROW, "Spoon") == 4.0

    def test_foreground_learns_kernels(self):
        scene = ForegroundScene("Breakfast", 1.0, create_algorithm("multiplication"), volume=8.0)
        graph = make_graph("Breakfast", "Cup")
        graph.observations.append(make_evidence("Cup", "9", position=(2.0, 0.0, 0.0)))
        scene.learn(graph)
        assert scene.kernels["Cup"].samples == 2
        assert np.allclose(scene.kernels["Cup"].mean, [1.0, 0.0, 0.0])


class TestEvidence:
    """Tests for evidence integration."""

    def test_newest_observation_wins(self):
        scene = BackgroundScene("Kitchen", 1.0, create_algorithm("powerset"))
        newer = make_evidence("Cup", "1", position=(1.0, 0.0, 0.0), timestamp=2.0)
        older = make_evidence("Cup", "1", position=(0.0, 0.0, 0.0), timestamp=1.0)

        scene.add_evidence(newer)
        scene.add_evidence(older)

        assert len(scene.evidence) == 1
        assert scene.evidence[0].timestamp == 2.0

    def test_distinct_instances_kept(self):
        scene = BackgroundScene("Kitchen", 1.0, create_algorithm("powerset"))
        scene.add_evidence(make_evidence("Cup", "1"))
        scene.add_evidence(make_evidence("Cup", "2"))
        assert len(scene.evidence) == 2

    def test_relevance(self):
        background = BackgroundScene("Kitchen", 1.0, create_algorithm("powerset"))
        foreground = ForegroundScene("Breakfast", 1.0, create_algorithm("powerset"))
        foreground.learn(make_graph("Breakfast", "Cup"))

        assert background.is_relevant("Anything")
        assert foreground.is_relevant("Cup")
        assert not foreground.is_relevant("Plate")

    def test_foreground_density_falls_back_to_volume(self):
        scene = ForegroundScene("Breakfast", 1.0, create_algorithm("powerset"), volume=4.0)
        assert scene.location_density(make_evidence("Cup")) == 0.25


class TestSceneElement:
    """Tests for scene XML parsing."""

    def test_invalid_volume_rejected(self):
        with pytest.raises(InvalidArgumentError):
            BackgroundScene("Kitchen", 1.0, create_algorithm("powerset"), volume=0.0)

    @pytest.mark.parametrize("xml", [
        '<scene type="background"><background/></scene>',
        '<scene name="A" type="midground"><background/></scene>',
        '<scene name="A" type="background"/>',
        '<scene name="A" type="background" priori="high"><background/></scene>',
        '<scene name="A" type="background"><background volume="-1"/></scene>',
        '<scene name="A" type="background"><background examples="many"/></scene>',
        '<scene name="A" type="background"><background><probabilities rows="3"/></background></scene>',
    ])
    def test_malformed_scene_rejected(self, xml):
        with pytest.raises(ModelLoadError):
            scene_from_element(ET.fromstring(xml), create_algorithm("powerset"))

"""Tests for the K-Medoids optimizer."""

import logging
import math

import numpy as np
import pytest

from medoidkit.clustering import (
    ClusterAssignment,
    KMedoids,
    KMedoidsDataType,
    KMedoidsResult,
    KMedoidsState,
)
from medoidkit.config import MedoidkitConfig
from medoidkit.errors import DimensionalityError, InvalidConfigurationError
from medoidkit.utils.metric import distance_metric_factory


FOUR_POINTS = [[0.0, 0.0], [0.0, 1.0], [8.0, 8.0], [8.0, 9.0]]
THREE_BY_THREE = [[0.0, 1.0, 4.0], [1.0, 0.0, 3.0], [4.0, 3.0, 0.0]]


def _blobs(seed=0, per_cluster=20):
    rng = np.random.default_rng(seed)
    centers = np.array([[0.0, 0.0], [10.0, 0.0], [0.0, 10.0]])
    return np.vstack([center + rng.normal(scale=0.8, size=(per_cluster, 2)) for center in centers])


class TestKMedoidsConstruction:
    """Test parameter validation."""

    def test_defaults(self):
        optimizer = KMedoids([0, 1])

        assert optimizer.initial_medoids == [0, 1]
        assert optimizer.tolerance == 0.0001
        assert optimizer.itermax == 100
        assert optimizer.state == KMedoidsState.UNINITIALIZED
        assert optimizer.metric.type == distance_metric_factory.euclidean_square().type

    @pytest.mark.parametrize(
        "medoids",
        [[], [0, 0], [-1], [1.5], [True]],
    )
    def test_invalid_medoids(self, medoids):
        with pytest.raises(InvalidConfigurationError):
            KMedoids(medoids)

    def test_invalid_tolerance(self):
        with pytest.raises(InvalidConfigurationError, match="tolerance"):
            KMedoids([0], tolerance=0)
        with pytest.raises(InvalidConfigurationError, match="tolerance"):
            KMedoids([0], tolerance=-1.0)

    def test_numpy_real_tolerance(self):
        optimizer = KMedoids([0], tolerance=np.float32(0.01))
        assert optimizer.tolerance == pytest.approx(0.01)
        assert KMedoids([0], tolerance=np.int64(2)).tolerance == 2.0

    def test_non_numeric_tolerance(self):
        with pytest.raises(InvalidConfigurationError, match="real number"):
            KMedoids([0], tolerance="0.1")
        with pytest.raises(InvalidConfigurationError, match="real number"):
            KMedoids([0], tolerance=True)

    def test_invalid_itermax(self):
        with pytest.raises(InvalidConfigurationError, match="itermax"):
            KMedoids([0], itermax=0)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            KMedoids([])

    def test_numpy_indices_accepted(self):
        optimizer = KMedoids(np.array([2, 0]))
        assert optimizer.initial_medoids == [2, 0]

    def test_from_config(self):
        config = MedoidkitConfig()
        config.kmedoids.tolerance = 0.5
        config.kmedoids.itermax = 7
        config.kmedoids.metric = "manhattan"

        optimizer = KMedoids.from_config([0, 1], config)
        assert optimizer.tolerance == 0.5
        assert optimizer.itermax == 7
        assert optimizer.metric([0.0, 0.0], [1.0, 2.0]) == pytest.approx(3.0)

    def test_from_config_data_type(self):
        config = MedoidkitConfig()
        config.kmedoids.data_type = "distance_matrix"

        optimizer = KMedoids.from_config([0], config)
        assert optimizer.data_type == KMedoidsDataType.DISTANCE_MATRIX

        result = optimizer.process(THREE_BY_THREE)
        assert result.medoids == [1]
        assert result.total_deviation == pytest.approx(4.0)

    def test_explicit_data_type_overrides_default(self):
        optimizer = KMedoids([0], data_type=KMedoidsDataType.DISTANCE_MATRIX)
        as_points = optimizer.process(THREE_BY_THREE, data_type=KMedoidsDataType.POINTS)
        as_matrix = optimizer.process(THREE_BY_THREE)

        assert as_points.total_deviation != pytest.approx(4.0)
        assert as_matrix.total_deviation == pytest.approx(4.0)

    def test_invalid_default_data_type(self):
        with pytest.raises(InvalidConfigurationError, match="Unknown data type"):
            KMedoids([0], data_type="graph")

    def test_repr(self):
        assert "initial_medoids=[0, 1]" in repr(KMedoids([0, 1]))


class TestKMedoidsScenarios:
    """Test small hand-checked datasets."""

    def test_four_points_already_optimal(self):
        """Test two well separated pairs with one medoid in each."""
        result = KMedoids([0, 2]).process(FOUR_POINTS)

        assert result.iterations <= 2
        assert result.iterations == 1
        assert result.changes == 0.0
        assert result.converged
        assert result.medoids == [0, 2]
        np.testing.assert_array_equal(result.labels, [0, 0, 1, 1])
        assert result.clusters == [[0, 1], [2, 3]]
        np.testing.assert_allclose(result.distances, [0.0, 1.0, 0.0, 1.0])
        assert result.total_deviation == pytest.approx(2.0)

    def test_distance_matrix_single_medoid_stays(self):
        """Test that every swap away from the central point costs more."""
        result = KMedoids([1]).process(THREE_BY_THREE, KMedoidsDataType.DISTANCE_MATRIX)

        assert result.medoids == [1]
        np.testing.assert_array_equal(result.labels, [0, 0, 0])
        assert result.total_deviation == pytest.approx(4.0)
        assert result.changes == 0.0

    def test_distance_matrix_moves_to_center(self):
        """Test that a poor starting medoid is replaced by the central point."""
        result = KMedoids([0]).process(THREE_BY_THREE, "distance_matrix")

        assert result.medoids == [1]
        assert result.total_deviation == pytest.approx(4.0)
        assert result.cost_history == [pytest.approx(5.0), pytest.approx(4.0)]

    def test_poor_start_recovers_blobs(self):
        """Test that starting with all medoids in one blob finds all blobs."""
        data = _blobs()
        result = KMedoids([0, 1, 2]).process(data)

        assert sorted(len(members) for members in result.clusters) == [20, 20, 20]
        blocks = {tuple(sorted({int(label) for label in result.labels[i : i + 20]})) for i in (0, 20, 40)}
        assert len(blocks) == 3
        assert all(len(block) == 1 for block in blocks)


class TestKMedoidsProperties:
    """Test properties that hold for any run."""

    def test_deterministic(self):
        data = _blobs(seed=5)
        first = KMedoids([3, 30, 50]).process(data)
        second = KMedoids([3, 30, 50]).process(data)

        assert first.medoids == second.medoids
        np.testing.assert_array_equal(first.labels, second.labels)
        assert first.cost_history == second.cost_history

    def test_cost_never_increases(self):
        data = _blobs(seed=7)
        result = KMedoids([0, 1, 2, 3]).process(data)

        history = result.cost_history
        assert len(history) >= 2
        for before, after in zip(history, history[1:]):
            assert after <= before + 1e-9

    def test_medoids_are_self_consistent(self):
        data = _blobs(seed=9)
        result = KMedoids([0, 5, 10]).process(data)

        for index_cluster, index_medoid in enumerate(result.medoids):
            assert result.labels[index_medoid] == index_cluster
            assert result.distances[index_medoid] == 0.0
            assert index_medoid in result.clusters[index_cluster]
        assert len(set(result.medoids)) == 3

    def test_labels_are_nearest_medoid(self):
        data = _blobs(seed=11)
        result = KMedoids([0, 1, 2]).process(data)
        metric = distance_metric_factory.euclidean_square()

        for index_point, point in enumerate(data):
            distances = [metric(point, data[m]) for m in result.medoids]
            assert result.distances[index_point] == pytest.approx(min(distances))

    def test_single_cluster(self):
        """Test k = 1 picks the point with the smallest total distance."""
        data = np.array([[0.0], [1.0], [2.0], [10.0]])
        result = KMedoids([3]).process(data, result=None)

        # Squared distances favour the point nearest the mean
        assert result.medoids == [2]
        assert result.total_deviation == pytest.approx(69.0)
        np.testing.assert_array_equal(result.labels, [0, 0, 0, 0])

    def test_every_point_a_medoid(self):
        """Test k = n stops immediately with zero deviation."""
        data = [[0.0], [4.0], [9.0]]
        result = KMedoids([2, 0, 1]).process(data)

        assert result.medoids == [2, 0, 1]
        np.testing.assert_array_equal(result.labels, [1, 2, 0])
        assert result.total_deviation == 0.0
        assert result.iterations == 1

    def test_itermax_reported(self):
        """Test that hitting itermax is not an error."""
        data = _blobs(seed=13)
        result = KMedoids([0, 1, 2], itermax=1).process(data)

        assert result.iterations == 1
        assert not result.converged
        assert result.changes > 0.0


class TestKMedoidsMetrics:
    """Test metric selection and distance sources."""

    def test_custom_callable_metric(self):
        calls = []

        def absolute(a, b):
            calls.append(1)
            return float(abs(a[0] - b[0]))

        result = KMedoids([0], metric=absolute).process([[0.0], [1.0], [2.0]])
        assert result.medoids == [1]
        assert calls

    def test_uncached_matches_cached(self):
        data = _blobs(seed=17)
        cached = KMedoids([0, 1, 2]).process(data)
        uncached = KMedoids([0, 1, 2], pairwise_cache_limit=0).process(data)

        assert cached.medoids == uncached.medoids
        np.testing.assert_array_equal(cached.labels, uncached.labels)
        assert cached.total_deviation == pytest.approx(uncached.total_deviation)

    def test_points_and_matrix_agree(self):
        data = _blobs(seed=19)
        metric = distance_metric_factory.manhattan()
        matrix = metric.pairwise(data)

        from_points = KMedoids([0, 1, 2], metric=metric).process(data)
        from_matrix = KMedoids([0, 1, 2]).process(matrix, KMedoidsDataType.DISTANCE_MATRIX)

        assert from_points.medoids == from_matrix.medoids
        np.testing.assert_array_equal(from_points.labels, from_matrix.labels)


class TestKMedoidsErrors:
    """Test errors raised by process."""

    def test_medoid_out_of_range(self):
        with pytest.raises(InvalidConfigurationError, match="out of range"):
            KMedoids([0, 4]).process(FOUR_POINTS)

    def test_more_medoids_than_points(self):
        with pytest.raises(InvalidConfigurationError, match="exceeds"):
            KMedoids([0, 1, 2]).process([[0.0], [1.0]])

    def test_ragged_points(self):
        with pytest.raises(DimensionalityError):
            KMedoids([0]).process([[0.0, 1.0], [2.0]])

    def test_non_square_matrix(self):
        with pytest.raises(DimensionalityError):
            KMedoids([0]).process([[0.0, 1.0, 2.0], [1.0, 0.0, 3.0]], "distance_matrix")

    def test_unknown_data_type(self):
        with pytest.raises(InvalidConfigurationError, match="data type"):
            KMedoids([0]).process(FOUR_POINTS, "graph")

    def test_failed_validation_leaves_result_untouched(self):
        result = KMedoids([0, 2]).process(FOUR_POINTS)
        with pytest.raises(InvalidConfigurationError):
            KMedoids([0, 9]).process(FOUR_POINTS, result=result)

        assert result.medoids == [0, 2]
        assert result.iterations == 1

    def test_failure_resets_state(self):
        failing = {"on": False}

        def flaky(a, b):
            if failing["on"]:
                raise RuntimeError("metric failed")
            return float(abs(a[0] - b[0]))

        optimizer = KMedoids([0], metric=flaky)
        optimizer.process([[0.0], [1.0]])
        assert optimizer.state == KMedoidsState.CONVERGED

        failing["on"] = True
        with pytest.raises(RuntimeError, match="metric failed"):
            optimizer.process([[0.0], [1.0]])
        assert optimizer.state == KMedoidsState.UNINITIALIZED
        assert optimizer._calculator is None


class TestKMedoidsLifecycle:
    """Test state, reuse and result handling."""

    def test_state_after_run(self):
        optimizer = KMedoids([0, 2])
        optimizer.process(FOUR_POINTS)

        assert optimizer.state == KMedoidsState.CONVERGED
        np.testing.assert_array_equal(optimizer.get_labels(), [0, 0, 1, 1])
        assert optimizer.get_medoids() == [0, 2]

    def test_result_filled_in_place(self):
        result = KMedoidsResult()
        returned = KMedoids([0, 2]).process(FOUR_POINTS, result=result)

        assert returned is result
        assert result.medoids == [0, 2]

    def test_result_reused_is_cleared(self):
        result = KMedoids([0]).process(THREE_BY_THREE, "distance_matrix")
        KMedoids([0, 2]).process(FOUR_POINTS, result=result)

        assert result.medoids == [0, 2]
        assert len(result.labels) == 4
        assert result.cost_history == [pytest.approx(2.0)]

    def test_instance_reused(self):
        optimizer = KMedoids([0])
        first = optimizer.process([[0.0], [1.0], [2.0]])
        second = optimizer.process([[0.0], [5.0], [6.0], [7.0]])

        assert first.medoids == [1]
        assert second.medoids == [1]
        assert optimizer.initial_medoids == [0]

    def test_transient_references_released(self):
        optimizer = KMedoids([0, 2])
        optimizer.process(FOUR_POINTS)

        assert optimizer._calculator is None
        assert optimizer._assignment is None

    def test_logs_convergence(self, caplog):
        with caplog.at_level(logging.INFO, logger="medoidkit"):
            KMedoids([0, 2]).process(FOUR_POINTS)
        assert any("converged" in record.message for record in caplog.records)


class TestKMedoidsResult:
    """Test the result container."""

    def test_empty(self):
        result = KMedoidsResult()

        assert result.n_clusters == 0
        assert result.changes == math.inf
        assert result.get_cluster_sizes() == {}

    def test_cluster_sizes(self):
        result = KMedoids([0, 2]).process(FOUR_POINTS)
        assert result.get_cluster_sizes() == {0: 2, 1: 2}

    def test_clear(self):
        result = KMedoids([0, 2]).process(FOUR_POINTS)
        result.clear()

        assert result.medoids == []
        assert len(result.labels) == 0
        assert result.iterations == 0
        assert not result.converged


class TestClusterAssignment:
    """Test the working assignment container."""

    def test_empty(self):
        assignment = ClusterAssignment.empty(4, 2)

        assert assignment.n_points == 4
        assert assignment.n_clusters == 2
        np.testing.assert_array_equal(assignment.labels, [-1, -1, -1, -1])
        assert assignment.get_clusters() == [[], []]
        assert assignment.total_deviation == 0.0

    def test_clusters(self):
        assignment = ClusterAssignment(
            labels=np.array([0, 0, 1, 1]),
            distance_first_medoid=np.array([0.0, 1.0, 0.0, 2.0]),
            distance_second_medoid=np.array([5.0, 4.0, 5.0, 3.0]),
            deviations=np.array([1.0, 2.0]),
        )

        assert assignment.get_clusters() == [[0, 1], [2, 3]]
        assert assignment.total_deviation == pytest.approx(3.0)

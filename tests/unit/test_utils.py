"""Unit tests for label, co-occurrence and dissimilarity utilities."""

import pytest
import numpy as np
import pandas as pd

from consensus_refinery.core.validation import ComputationInvariantViolation
from consensus_refinery.utils import (
    MISSING,
    UNASSIGNED,
    co_occurrence,
    cluster_sizes,
    compute_dissimilarity,
    correlation_dissimilarity,
    dissimilarity_to_similarity,
    groups_to_vector,
    is_symmetric,
    normalize_labels,
    remove_small_clusters,
    renumber_labels,
    similarity_to_dissimilarity,
    to_nullable_labels,
    to_sentinel_labels,
)


class TestNormalizeLabels:
    """Tests for normalize_labels."""

    def test_renumbers_by_first_appearance(self):
        """Ids become 1..k in order of first appearance."""
        out = normalize_labels([7, 7, 3, -1, 3, 9], 6)
        np.testing.assert_array_equal(out, [1, 1, 2, -1, 2, 3])

    def test_keeps_sentinels(self):
        """-1 and -2 are never renumbered."""
        out = normalize_labels([-2, 5, -1], 3)
        np.testing.assert_array_equal(out, [MISSING, 1, UNASSIGNED])

    def test_accepts_float_integers(self):
        out = normalize_labels(np.array([2.0, 1.0]), 2)
        np.testing.assert_array_equal(out, [1, 2])

    def test_group_list(self):
        """Index groups become clusters renumbered by first appearance; others are -1."""
        out = normalize_labels([[2, 3], [0]], 5)
        np.testing.assert_array_equal(out, [1, -1, 2, 2, -1])

    def test_group_list_declared(self):
        """output_type='list' is honoured even for array groups."""
        out = normalize_labels([np.array([1]), np.array([0, 2])], 3, "list")
        np.testing.assert_array_equal(out, [1, 2, 1])

    def test_wrong_length(self):
        with pytest.raises(ComputationInvariantViolation) as exc_info:
            normalize_labels([1, 2], 3)
        assert exc_info.value.error_code == "I001_LABEL_LENGTH"

    @pytest.mark.parametrize("bad", [[1.5, 1.0], ["a", "b"], [np.nan, 1.0], [-3, 1]])
    def test_non_integer(self, bad):
        with pytest.raises(ComputationInvariantViolation) as exc_info:
            normalize_labels(bad, 2)
        assert exc_info.value.error_code == "I002_NON_NUMERIC"

    def test_overlapping_groups(self):
        with pytest.raises(ComputationInvariantViolation) as exc_info:
            groups_to_vector([[0, 1], [1, 2]], 3)
        assert exc_info.value.error_code == "I003_BAD_GROUPS"

    def test_out_of_range_groups(self):
        with pytest.raises(ComputationInvariantViolation) as exc_info:
            groups_to_vector([[0, 5]], 3)
        assert exc_info.value.error_code == "I003_BAD_GROUPS"


class TestLabelHelpers:
    """Tests for sentinel conversion and size filtering."""

    def test_nullable_roundtrip(self):
        """Sentinels become NA in Int64 and -1 when filled back."""
        nullable = to_nullable_labels(np.array([1, -1, -2, 2]))
        assert nullable.dtype == "Int64"
        assert nullable.isna().tolist() == [False, True, True, False]
        np.testing.assert_array_equal(to_sentinel_labels(nullable), [1, -1, -1, 2])

    def test_cluster_sizes(self):
        assert cluster_sizes([1, 1, 2, -1, -2]) == {1: 2, 2: 1}

    def test_remove_small_clusters(self):
        """Small clusters become -1 and the rest are renumbered."""
        out = remove_small_clusters([1, 2, 2, 3, 3, 3], 2)
        np.testing.assert_array_equal(out, [-1, 1, 1, 2, 2, 2])

    def test_renumber_is_idempotent(self):
        labels = renumber_labels([4, 4, 2, -1])
        np.testing.assert_array_equal(renumber_labels(labels), labels)


class TestCoOccurrence:
    """Tests for co_occurrence."""

    def test_properties(self, noisy_clusterings):
        """Symmetric, in [0, 1], diagonal 1."""
        co = co_occurrence(noisy_clusterings)
        n = noisy_clusterings.shape[0]
        assert co.shape == (n, n)
        assert np.allclose(co, co.T)
        assert co.min() >= 0.0 and co.max() <= 1.0
        np.testing.assert_array_equal(np.diag(co), np.ones(n))

    def test_scenario_values(self, scenario_matrix):
        """Only columns where both samples are assigned count."""
        co = co_occurrence(scenario_matrix)
        assert co[0, 1] == 0.5
        # Sample 2 is -1 everywhere: no eligible column, so 0 (not NaN)
        assert co[0, 2] == 0.0
        assert co[1, 2] == 0.0
        assert not np.isnan(co).any()

    def test_missing_excluded(self):
        """-2 entries are excluded from numerator and denominator."""
        matrix = np.array([[1, 1, 1], [1, 2, -2], [2, 2, 1]])
        co = co_occurrence(matrix)
        # (0, 1): column 0 same, column 1 different, column 2 excluded
        assert co[0, 1] == 0.5
        # (0, 2): column 2 same only
        assert co[0, 2] == pytest.approx(1 / 3)

    def test_dataframe_input(self, scenario_matrix):
        frame = pd.DataFrame(scenario_matrix, columns=["a", "b"])
        np.testing.assert_array_equal(co_occurrence(frame), co_occurrence(scenario_matrix))


class TestDissimilarity:
    """Tests for dissimilarity helpers."""

    def test_conversion_roundtrip(self):
        """1 - (1 - co) reconstructs the co-occurrence exactly."""
        matrix = np.array([[1, 2, 1, 1], [1, 2, 2, 1], [2, 1, 2, 2], [1, 1, 1, 1]])
        co = co_occurrence(matrix)
        back = dissimilarity_to_similarity(similarity_to_dissimilarity(co))
        np.testing.assert_array_equal(back, co)

    def test_euclidean(self):
        x = np.array([[0.0, 0.0], [3.0, 4.0]])
        diss = compute_dissimilarity(x)
        assert diss[0, 1] == pytest.approx(5.0)
        assert is_symmetric(diss)

    def test_correlation01(self):
        """(1 - corr) / 2: identical profiles 0, opposite profiles 1."""
        x = np.array([[1.0, 2.0, 3.0], [2.0, 4.0, 6.0], [3.0, 2.0, 1.0]])
        diss = correlation_dissimilarity(x)
        assert diss[0, 1] == pytest.approx(0.0, abs=1e-12)
        assert diss[0, 2] == pytest.approx(1.0)
        assert np.all(np.diag(diss) == 0)

    def test_callable_dist(self):
        """A callable returning a condensed matrix is expanded to square."""
        from scipy.spatial.distance import pdist

        x = np.arange(6, dtype=float).reshape(3, 2)
        diss = compute_dissimilarity(x, lambda m: pdist(m, "cityblock"))
        assert diss.shape == (3, 3)
        assert diss[0, 1] == pytest.approx(4.0)

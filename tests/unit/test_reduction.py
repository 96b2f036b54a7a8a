"""Unit tests for transformation and dimensionality reduction."""

import pytest
import numpy as np

from consensus_refinery.core.reduction import (
    check_reduce_method,
    default_n_dims,
    make_trans_fun,
    reduce_dimensions,
)
from consensus_refinery.core.validation import ConfigurationError


@pytest.fixture
def wide_x() -> np.ndarray:
    """20 samples x 8 features, each feature three times the scale of the previous."""
    rng = np.random.default_rng(0)
    return rng.normal(size=(20, 8)) * 3.0 ** np.arange(8)


class TestDefaults:
    """Tests for method checks and defaults."""

    @pytest.mark.parametrize("method", ["none", "PCA", "var", "abscv", "mad", "mean", "iqr", "median"])
    def test_known_methods(self, method):
        assert check_reduce_method(method) == method

    def test_unknown_method(self):
        with pytest.raises(ConfigurationError) as exc_info:
            check_reduce_method("tsne")
        assert exc_info.value.error_code == "C007_UNKNOWN_METHOD"

    def test_default_n_dims(self, wide_x):
        assert default_n_dims("PCA", wide_x) == 8
        assert default_n_dims("var", wide_x) == 8
        assert default_n_dims("none", wide_x) is None

    def test_count_transform(self):
        trans = make_trans_fun(is_count=True)
        np.testing.assert_allclose(trans(np.array([[0.0, 1.0, 3.0]])), [[0.0, 1.0, 2.0]])

    def test_trans_fun_takes_precedence(self):
        trans = make_trans_fun(lambda m: m * 2, is_count=True)
        np.testing.assert_array_equal(trans(np.ones((1, 2))), [[2.0, 2.0]])


class TestReduceDimensions:
    """Tests for reduce_dimensions."""

    def test_none_is_transform_only(self, wide_x):
        result = reduce_dimensions(wide_x, "none")
        np.testing.assert_array_equal(result.matrix, wide_x)
        assert result.n_dims is None

    def test_pca(self, wide_x):
        result = reduce_dimensions(wide_x, "PCA", n_dims=3)
        assert result.matrix.shape == (20, 3)
        assert len(result.details["explained_variance_ratio"]) == 3

    def test_pca_deterministic(self, wide_x):
        a = reduce_dimensions(wide_x, "PCA", n_dims=3).matrix
        b = reduce_dimensions(wide_x, "PCA", n_dims=3).matrix
        np.testing.assert_array_equal(a, b)

    def test_var_filter_keeps_top_features(self, wide_x):
        """Highest-variance features are kept in their original order."""
        result = reduce_dimensions(wide_x, "var", n_dims=3)
        np.testing.assert_array_equal(result.feature_index, [5, 6, 7])
        np.testing.assert_array_equal(result.matrix, wide_x[:, [5, 6, 7]])

    def test_filter_fraction(self, wide_x):
        """n_dims in (0, 1) is a fraction of the features."""
        result = reduce_dimensions(wide_x, "var", n_dims=0.5)
        assert result.matrix.shape[1] == 4

    def test_filter_ranks_transformed_values(self):
        """With log2(x + 1), the low-count feature varies more and is kept."""
        x = np.array([[0.0, 1000.0], [3.0, 2000.0], [0.0, 1000.0], [3.0, 2000.0]])
        result = reduce_dimensions(x, "var", n_dims=1, is_count=True)
        np.testing.assert_array_equal(result.feature_index, [0])
        np.testing.assert_allclose(result.matrix[:, 0], [0.0, 2.0, 0.0, 2.0])
        np.testing.assert_allclose(result.filter_stats[0], 4.0 / 3.0)

    def test_pca_variance_fraction(self, wide_x):
        """n_dims in (0, 1) keeps the fewest components explaining that variance."""
        result = reduce_dimensions(wide_x, "PCA", n_dims=0.9)
        ratios = result.details["explained_variance_ratio"]
        assert 1 <= result.matrix.shape[1] <= 8
        assert result.n_dims == result.matrix.shape[1] == len(ratios)
        assert sum(ratios) >= 0.9
        assert sum(ratios[:-1]) < 0.9

    def test_bad_n_dims(self, wide_x):
        with pytest.raises(ConfigurationError):
            reduce_dimensions(wide_x, "PCA", n_dims=0)

    def test_trans_fun_shape_checked(self, wide_x):
        with pytest.raises(ConfigurationError) as exc_info:
            reduce_dimensions(wide_x, "none", trans_fun=lambda m: m[:5])
        assert exc_info.value.error_code == "C010_SHAPE_MISMATCH"

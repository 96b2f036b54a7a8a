"""Unit tests for errors and configuration checks."""

import pickle

import pytest
import numpy as np

from consensus_refinery.core.functions import AlgorithmType
from consensus_refinery.core.validation import (
    ClusteringWarning,
    ComputationInvariantViolation,
    ConfigurationError,
    check_dissimilarity,
    check_pipeline_shape,
    check_range,
    suggest_names,
    warn,
)


class TestErrors:
    """Tests for the error classes."""

    def test_str_format(self):
        """Errors render code, message, expected, found and suggestion."""
        err = ConfigurationError(
            "Bad value",
            error_code="C006_OUT_OF_RANGE",
            parameter="proportion",
            expected="[0, 1]",
            found=1.5,
            suggestion="Use a fraction.",
        )
        text = str(err)
        assert text.startswith("[C006_OUT_OF_RANGE] Bad value")
        assert "Parameter: proportion" in text
        assert "Expected: [0, 1]" in text
        assert "Found: 1.5" in text
        assert "Suggestion: Use a fraction." in text

    def test_default_code(self):
        """The class-level code is used when none is given."""
        assert ConfigurationError("x").error_code == "C000_CONFIGURATION"
        assert ComputationInvariantViolation("x").error_code == "I000_INVARIANT"

    def test_exception_hierarchy(self):
        """ConfigurationError is a ValueError; invariant violations are RuntimeErrors."""
        assert issubclass(ConfigurationError, ValueError)
        assert issubclass(ComputationInvariantViolation, RuntimeError)

    def test_pickle_roundtrip(self):
        """Errors keep their payload across process boundaries."""
        err = ConfigurationError("Bad", error_code="C005_FORBIDDEN_PARAM", parameter="k")
        restored = pickle.loads(pickle.dumps(err))
        assert restored.error_code == "C005_FORBIDDEN_PARAM"
        assert restored.parameter == "k"
        assert str(restored) == str(err)

    def test_to_dict(self):
        """to_dict exposes the structured fields."""
        d = ConfigurationError("Bad", error_code="C001_MISSING_INPUT").to_dict()
        assert d["error_code"] == "C001_MISSING_INPUT"
        assert d["message"] == "Bad"


class TestPipelineShape:
    """Tests for the (subsample, sequential, algorithm type) legality table."""

    @pytest.mark.parametrize("subsample,sequential,algorithm_type", [
        (True, True, "01"),
        (True, False, "01"),
        (False, True, "K"),
        (False, False, "K"),
        (False, False, "01"),
    ])
    def test_allowed(self, subsample, sequential, algorithm_type):
        """Allowed combinations pass silently."""
        check_pipeline_shape(subsample, sequential, algorithm_type)

    @pytest.mark.parametrize("subsample,sequential,algorithm_type", [
        (True, True, "K"),
        (True, False, "K"),
        (False, True, "01"),
    ])
    def test_rejected(self, subsample, sequential, algorithm_type):
        """Illegal combinations raise C004."""
        with pytest.raises(ConfigurationError) as exc_info:
            check_pipeline_shape(subsample, sequential, algorithm_type)
        assert exc_info.value.error_code == "C004_ILLEGAL_COMBINATION"

    def test_accepts_enum(self):
        """AlgorithmType members are accepted as well as strings."""
        check_pipeline_shape(True, False, AlgorithmType.ZERO_ONE)


class TestCheckRange:
    """Tests for scalar range checks."""

    def test_in_range(self):
        assert check_range(0.5, "p", 0, 1) == 0.5
        assert check_range(0, "p", 0, 1) == 0.0

    @pytest.mark.parametrize("value", [-0.1, 1.1, float("nan"), "abc", None])
    def test_out_of_range(self, value):
        """Values outside [0, 1] or non-numeric raise C006."""
        with pytest.raises(ConfigurationError) as exc_info:
            check_range(value, "p", 0, 1)
        assert exc_info.value.error_code == "C006_OUT_OF_RANGE"

    def test_exclusive_low(self):
        """low_inclusive=False rejects the lower bound itself."""
        with pytest.raises(ConfigurationError):
            check_range(0, "samp_p", 0, 1, low_inclusive=False)


class TestCheckDissimilarity:
    """Tests for structural dissimilarity checks."""

    def test_valid(self, small_diss):
        out = check_dissimilarity(small_diss)
        assert out.dtype == float

    @pytest.mark.parametrize("matrix", [
        np.zeros((2, 3)),
        np.array([[0.0, np.nan], [np.nan, 0.0]]),
        np.array([[0.0, -1.0], [-1.0, 0.0]]),
        np.array([[0.0, 0.2], [0.3, 0.0]]),
    ])
    def test_invalid(self, matrix):
        """Non-square, non-finite, negative or asymmetric matrices raise C002."""
        with pytest.raises(ConfigurationError) as exc_info:
            check_dissimilarity(matrix)
        assert exc_info.value.error_code == "C002_INVALID_DISS"


class TestWarnings:
    """Tests for warning helpers."""

    def test_warn_emits_clustering_warning(self, caplog):
        """warn() raises a ClusteringWarning and logs it."""
        with pytest.warns(ClusteringWarning, match="ignored"):
            warn("n_dims is ignored")
        assert "n_dims is ignored" in caplog.text

    def test_suggest_names(self):
        """Close matches are suggested for typos."""
        assert "kmeans" in suggest_names("kmean", ["kmeans", "hierarchical01"])
        assert suggest_names("zzz", ["b", "a"]).startswith("Available: a, b")

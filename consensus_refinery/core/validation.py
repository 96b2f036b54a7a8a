"""
Errors and checks with actionable diagnostics for clustering pipelines.

These error classes carry structured information about what went wrong,
what was expected, and how to fix it. Error codes enable programmatic handling.

Configuration error codes:
    C001_MISSING_INPUT: No usable driving input (x / diss)
    C002_INVALID_DISS: Dissimilarity matrix is not square, symmetric, finite
    C003_MISSING_SEQ_PARAM: Sequential search without k0 / beta
    C004_ILLEGAL_COMBINATION: (subsample, sequential, algorithm type) not allowed
    C005_FORBIDDEN_PARAM: Parameter set that the pipeline shape must control
    C006_OUT_OF_RANGE: Scalar parameter outside its valid range
    C007_UNKNOWN_METHOD: Unknown reduction method or cluster function name
    C008_WRONG_ALGORITHM_TYPE: ClusterFunction of the wrong algorithm type
    C009_MISSING_CLUSTER_ARG: Required ClusterFunction argument not given
    C010_SHAPE_MISMATCH: Matrix shapes disagree

Invariant violation codes:
    I001_LABEL_LENGTH: Collaborator returned labels of the wrong length
    I002_NON_NUMERIC: Collaborator returned non-integer labels
    I003_BAD_GROUPS: Index groups out of range or overlapping
    I004_BAD_COOCCURRENCE: Co-occurrence matrix outside [0, 1] or wrong shape
"""

from __future__ import annotations

import logging
import warnings
from difflib import get_close_matches
from typing import Any, Dict, Iterable, Optional

import numpy as np


class ConsensusRefineryError(Exception):
    """Base class for errors with actionable diagnostics.

    Parameters
    ----------
    message : str
        Human-readable error description
    error_code : str, optional
        Machine-readable error code. Defaults to the class-level code.
    parameter : str, optional
        Name of the offending parameter
    expected : Any
        What the validator expected to find
    found : Any
        What was actually found
    suggestion : str
        Actionable suggestion for fixing the error
    context : Dict[str, Any], optional
        Additional context for debugging
    """

    error_code: str = "E000_UNKNOWN"

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        parameter: Optional[str] = None,
        expected: Any = None,
        found: Any = None,
        suggestion: str = "",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.parameter = parameter
        self.expected = expected
        self.found = found
        self.suggestion = suggestion
        self.context = context or {}

    def __reduce__(self):
        # Keyword-only fields do not survive the default Exception pickling,
        # which worker processes rely on.
        return (self.__class__, (self.message,), self.__dict__)

    def __str__(self) -> str:
        """Format error as human-readable multi-line string."""
        parts = [f"[{self.error_code}] {self.message}"]
        if self.parameter is not None:
            parts.append(f"  Parameter: {self.parameter}")
        if self.expected is not None:
            parts.append(f"  Expected: {self.expected}")
        if self.found is not None:
            parts.append(f"  Found: {self.found}")
        if self.suggestion:
            parts.append(f"  Suggestion: {self.suggestion}")
        return "\n".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "parameter": self.parameter,
            "expected": str(self.expected) if self.expected is not None else None,
            "found": str(self.found) if self.found is not None else None,
            "suggestion": self.suggestion,
            "context": self.context,
        }


class ConfigurationError(ConsensusRefineryError, ValueError):
    """Illegal parameter combination, missing field, or out-of-range value.

    Always raised before any clustering computation runs.
    """

    error_code: str = "C000_CONFIGURATION"


class ComputationInvariantViolation(ConsensusRefineryError, RuntimeError):
    """A collaborator returned a result inconsistent with its contract."""

    error_code: str = "I000_INVARIANT"


class ClusteringWarning(UserWarning):
    """Harmless but likely unintended configuration."""


def warn(message: str, logger: Optional[logging.Logger] = None) -> None:
    """Emit a ClusteringWarning and mirror it to the logger."""
    (logger or logging.getLogger(__name__)).warning(message)
    warnings.warn(message, ClusteringWarning, stacklevel=3)


def suggest_names(name: str, available: Iterable[str]) -> str:
    """Build a 'Did you mean' suggestion from close matches."""
    available = list(available)
    matches = get_close_matches(str(name), available, n=3, cutoff=0.4)
    if matches:
        return f"Did you mean: {', '.join(matches)}?"
    return f"Available: {', '.join(sorted(available))}"


def check_pipeline_shape(subsample: bool, sequential: bool, algorithm_type: Any) -> None:
    """Check the (subsample, sequential, algorithm type) legality table.

    ===========  ============  ==================================
    subsample    sequential    main ClusterFunction algorithm type
    ===========  ============  ==================================
    True         any           ZeroOne
    False        True          K
    False        False         unrestricted
    ===========  ============  ==================================

    Parameters
    ----------
    subsample : bool
        Whether the main step clusters a subsampling co-occurrence
    sequential : bool
        Whether the sequential search drives k
    algorithm_type : AlgorithmType
        Capability tag of the main ClusterFunction

    Raises
    ------
    ConfigurationError
        If the combination is not allowed
    """
    from .functions.base import AlgorithmType

    algorithm_type = AlgorithmType.parse(algorithm_type)

    if subsample and algorithm_type is not AlgorithmType.ZERO_ONE:
        raise ConfigurationError(
            "When subsample=True the main clustering step clusters the "
            "co-occurrence dissimilarity and needs a ZeroOne ClusterFunction",
            error_code="C004_ILLEGAL_COMBINATION",
            parameter="main.cluster_function",
            expected=AlgorithmType.ZERO_ONE.value,
            found=algorithm_type.value,
            suggestion="Use a threshold-based function such as 'hierarchical01'.",
            context={"subsample": subsample, "sequential": sequential},
        )
    if not subsample and sequential and algorithm_type is not AlgorithmType.K:
        raise ConfigurationError(
            "When subsample=False and sequential=True the sequential search "
            "varies k and needs a K ClusterFunction",
            error_code="C004_ILLEGAL_COMBINATION",
            parameter="main.cluster_function",
            expected=AlgorithmType.K.value,
            found=algorithm_type.value,
            suggestion="Use a K function such as 'kmeans', or set subsample=True.",
            context={"subsample": subsample, "sequential": sequential},
        )


def check_range(
    value: Any,
    name: str,
    low: float,
    high: Optional[float] = None,
    *,
    low_inclusive: bool = True,
) -> float:
    """Check that a scalar lies in [low, high] (or (low, high]).

    Returns
    -------
    float
        The value as float

    Raises
    ------
    ConfigurationError
        If the value is not numeric or out of range
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"Invalid value for the '{name}' parameter",
            error_code="C006_OUT_OF_RANGE",
            parameter=name,
            expected="a number",
            found=repr(value),
        ) from None

    too_low = number < low if low_inclusive else number <= low
    too_high = high is not None and number > high
    if np.isnan(number) or too_low or too_high:
        bracket = "[" if low_inclusive else "("
        upper = "inf)" if high is None else f"{high}]"
        raise ConfigurationError(
            f"Invalid value for the '{name}' parameter",
            error_code="C006_OUT_OF_RANGE",
            parameter=name,
            expected=f"{bracket}{low}, {upper}",
            found=value,
        )
    return number


def check_dissimilarity(diss: Any, name: str = "diss") -> np.ndarray:
    """Check that diss is a valid dissimilarity matrix.

    Checks are structural: 2-D, square, finite, non-negative and
    symmetric by value (not just by shape).

    Returns
    -------
    np.ndarray
        The matrix as a float array

    Raises
    ------
    ConfigurationError
        If any check fails
    """
    matrix = np.asarray(diss, dtype=float)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ConfigurationError(
            "Dissimilarity matrix must be square",
            error_code="C002_INVALID_DISS",
            parameter=name,
            expected="n x n matrix",
            found=f"shape {matrix.shape}",
        )
    if not np.all(np.isfinite(matrix)):
        raise ConfigurationError(
            "Dissimilarity matrix contains missing or infinite values",
            error_code="C002_INVALID_DISS",
            parameter=name,
        )
    if np.any(matrix < 0):
        raise ConfigurationError(
            "Dissimilarity matrix must be non-negative",
            error_code="C002_INVALID_DISS",
            parameter=name,
            found=f"min value {matrix.min():.4g}",
        )
    if not np.allclose(matrix, matrix.T):
        raise ConfigurationError(
            "Dissimilarity matrix must be symmetric",
            error_code="C002_INVALID_DISS",
            parameter=name,
            suggestion="Symmetrize with (diss + diss.T) / 2 if this is rounding noise.",
        )
    return matrix

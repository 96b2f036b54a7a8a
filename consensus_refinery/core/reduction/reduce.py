"""Data transformation and dimensionality reduction.

Reduces a feature matrix (samples x features) before clustering, using
either a reduced-dimension method (PCA) or a per-feature filter statistic
(keep the top features). Every method is deterministic for fixed inputs.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np
from scipy import stats

from ..validation import ConfigurationError, suggest_names

TransFun = Callable[[np.ndarray], np.ndarray]

BUILTIN_REDUCED_DIMS: Tuple[str, ...] = ("PCA",)
BUILTIN_FILTER_STATS: Tuple[str, ...] = ("var", "abscv", "mad", "mean", "iqr", "median")

DEFAULT_PCA_DIMS = 50
DEFAULT_FILTER_DIMS = 500


@dataclass
class FilterStatSpec:
    """Specification for a per-feature filter statistic.

    Attributes
    ----------
    name : str
        Statistic name
    label : str
        Human-readable label
    func : Callable
        Maps a samples x features matrix to one value per feature
    """

    name: str
    label: str
    func: Callable[[np.ndarray], np.ndarray]


def _abscv(x: np.ndarray) -> np.ndarray:
    mean = np.mean(x, axis=0)
    sd = np.std(x, axis=0, ddof=1) if x.shape[0] > 1 else np.zeros(x.shape[1])
    with np.errstate(divide="ignore", invalid="ignore"):
        cv = np.abs(sd / mean)
    return np.nan_to_num(cv, nan=0.0, posinf=0.0)


FILTER_STATS: Dict[str, FilterStatSpec] = {
    "var": FilterStatSpec("var", "variance", lambda x: np.var(x, axis=0, ddof=1) if x.shape[0] > 1 else np.zeros(x.shape[1])),
    "abscv": FilterStatSpec("abscv", "|sd / mean|", _abscv),
    "mad": FilterStatSpec("mad", "median absolute deviation", lambda x: stats.median_abs_deviation(x, axis=0, scale="normal")),
    "mean": FilterStatSpec("mean", "mean", lambda x: np.mean(x, axis=0)),
    "iqr": FilterStatSpec("iqr", "interquartile range", lambda x: stats.iqr(x, axis=0)),
    "median": FilterStatSpec("median", "median", lambda x: np.median(x, axis=0)),
}


@dataclass
class ReductionResult:
    """Result from reducing a feature matrix.

    Attributes
    ----------
    matrix : np.ndarray
        Reduced matrix (samples x n_dims)
    method : str
        Reduction method used
    n_dims : Optional[float]
        Resolved dimension count (None for "none")
    feature_index : Optional[np.ndarray]
        Kept feature columns for filter methods
    filter_stats : Optional[np.ndarray]
        Per-feature statistic for filter methods
    details : Dict[str, Any]
        Extra method details (e.g. PCA explained variance)
    """

    matrix: np.ndarray
    method: str = "none"
    n_dims: Optional[float] = None
    feature_index: Optional[np.ndarray] = None
    filter_stats: Optional[np.ndarray] = None
    details: Dict[str, Any] = field(default_factory=dict)


def list_builtin_reduced_dims() -> Tuple[str, ...]:
    return BUILTIN_REDUCED_DIMS


def list_builtin_filter_stats() -> Tuple[str, ...]:
    return BUILTIN_FILTER_STATS


def check_reduce_method(method: str) -> str:
    """Check that method is "none", a reduced-dim method, or a filter stat."""
    known = ("none",) + BUILTIN_REDUCED_DIMS + BUILTIN_FILTER_STATS
    if not isinstance(method, str) or method not in known:
        raise ConfigurationError(
            "Invalid value for reduce_method: not a built-in filter or reduced-dimension method",
            error_code="C007_UNKNOWN_METHOD",
            parameter="reduce_method",
            expected=list(known),
            found=method,
            suggestion=suggest_names(str(method), known),
        )
    return method


def default_n_dims(method: str, x: np.ndarray) -> Optional[int]:
    """Method-specific default number of dimensions.

    PCA: min(50, n_features, n_samples); filters: min(500, n_features);
    "none": None.
    """
    n_samples, n_features = np.asarray(x).shape
    if method in BUILTIN_REDUCED_DIMS:
        return int(min(DEFAULT_PCA_DIMS, n_features, n_samples))
    if method in BUILTIN_FILTER_STATS:
        return int(min(DEFAULT_FILTER_DIMS, n_features))
    return None


def make_trans_fun(trans_fun: Optional[TransFun] = None, is_count: bool = False) -> TransFun:
    """Build the transformation applied before clustering.

    Parameters
    ----------
    trans_fun : Callable, optional
        Caller-supplied transformation; takes precedence
    is_count : bool
        If True (and no trans_fun), use log2(x + 1)

    Returns
    -------
    Callable
        Transformation function (identity when neither is given)
    """
    if trans_fun is not None:
        if not callable(trans_fun):
            raise ConfigurationError(
                "trans_fun must be callable",
                error_code="C007_UNKNOWN_METHOD",
                parameter="trans_fun",
            )
        return trans_fun
    if is_count:
        return lambda x: np.log2(x + 1.0)
    return lambda x: x


def transform_data(x: np.ndarray, trans_fun: TransFun) -> np.ndarray:
    """Apply trans_fun and check the result keeps the sample dimension."""
    out = np.asarray(trans_fun(np.asarray(x, dtype=float)), dtype=float)
    if out.ndim != 2 or out.shape[0] != np.asarray(x).shape[0]:
        raise ConfigurationError(
            "trans_fun must return a matrix with the same number of samples",
            error_code="C010_SHAPE_MISMATCH",
            parameter="trans_fun",
            expected=f"{np.asarray(x).shape[0]} rows",
            found=f"shape {out.shape}",
        )
    return out


def _resolve_filter_count(n_dims: float, n_features: int) -> int:
    """n_dims < 1 is a fraction of features, otherwise a count."""
    if 0 < n_dims < 1:
        return max(1, int(np.ceil(n_dims * n_features)))
    return int(min(max(1, round(n_dims)), n_features))


def reduce_dimensions(
    x: np.ndarray,
    method: str = "none",
    n_dims: Optional[float] = None,
    trans_fun: Optional[TransFun] = None,
    is_count: bool = False,
    random_state: int = 0,
) -> ReductionResult:
    """Transform and reduce a feature matrix.

    Parameters
    ----------
    x : np.ndarray
        Feature matrix (samples x features)
    method : str
        "none", "PCA", or a filter statistic name
    n_dims : float, optional
        Dimensions to keep. None resolves to ``default_n_dims``. For filter
        statistics a value in (0, 1) is a fraction of features; for PCA it is
        the fraction of variance the kept components must explain. Filters
        rank features after trans_fun is applied.
    trans_fun : Callable, optional
        Transformation applied before reduction
    is_count : bool
        Use log2(x + 1) when trans_fun is not given
    random_state : int
        Seed passed to PCA

    Returns
    -------
    ReductionResult
        Reduced matrix and details
    """
    method = check_reduce_method(method)
    x = np.asarray(x, dtype=float)
    trans = make_trans_fun(trans_fun, is_count)
    transformed = transform_data(x, trans)

    if method == "none":
        return ReductionResult(matrix=transformed, method=method, n_dims=None)

    if n_dims is None or (isinstance(n_dims, float) and np.isnan(n_dims)):
        n_dims = default_n_dims(method, x)
    n_dims = float(n_dims)
    if n_dims <= 0:
        raise ConfigurationError(
            "n_dims must be positive",
            error_code="C006_OUT_OF_RANGE",
            parameter="n_dims",
            found=n_dims,
        )

    if method in BUILTIN_REDUCED_DIMS:
        from sklearn.decomposition import PCA

        if n_dims < 1:
            # Fraction of variance to explain
            pca = PCA(n_components=n_dims, svd_solver="full", random_state=random_state)
        else:
            n_comp = int(min(round(n_dims), transformed.shape[0], transformed.shape[1]))
            pca = PCA(n_components=n_comp, svd_solver="full", random_state=random_state)
        matrix = pca.fit_transform(transformed)
        n_comp = int(pca.n_components_)
        return ReductionResult(
            matrix=matrix,
            method=method,
            n_dims=n_comp,
            details={"explained_variance_ratio": pca.explained_variance_ratio_.tolist()},
        )

    spec = FILTER_STATS[method]
    values = np.asarray(spec.func(transformed), dtype=float)
    n_keep = _resolve_filter_count(n_dims, transformed.shape[1])
    # Stable sort keeps the original feature order among ties
    order = np.argsort(-values, kind="stable")[:n_keep]
    keep = np.sort(order)
    return ReductionResult(
        matrix=transformed[:, keep],
        method=method,
        n_dims=n_keep,
        feature_index=keep,
        filter_stats=values,
        details={"statistic": spec.label},
    )

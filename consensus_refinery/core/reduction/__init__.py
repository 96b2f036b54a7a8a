"""Transformation and dimensionality reduction before clustering.

Example Usage
-------------
>>> from consensus_refinery.core.reduction import reduce_dimensions
>>> result = reduce_dimensions(x, method="PCA", n_dims=10, is_count=True)
>>> result.matrix.shape
(n_samples, 10)
"""

from .reduce import (
    BUILTIN_FILTER_STATS,
    BUILTIN_REDUCED_DIMS,
    FILTER_STATS,
    FilterStatSpec,
    ReductionResult,
    check_reduce_method,
    default_n_dims,
    list_builtin_filter_stats,
    list_builtin_reduced_dims,
    make_trans_fun,
    reduce_dimensions,
    transform_data,
)

__all__ = [
    "BUILTIN_FILTER_STATS",
    "BUILTIN_REDUCED_DIMS",
    "FILTER_STATS",
    "FilterStatSpec",
    "ReductionResult",
    "check_reduce_method",
    "default_n_dims",
    "list_builtin_filter_stats",
    "list_builtin_reduced_dims",
    "make_trans_fun",
    "reduce_dimensions",
    "transform_data",
]

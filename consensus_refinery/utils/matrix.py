"""Dissimilarity helpers.

Provides conversions between similarity (co-occurrence) and dissimilarity
matrices, and distance computation for feature matrices (samples in rows).
"""

from __future__ import annotations

from typing import Callable, Optional, Union

import numpy as np
from scipy.spatial.distance import pdist, squareform

DistFunction = Union[str, Callable[[np.ndarray], np.ndarray]]


def similarity_to_dissimilarity(similarity: np.ndarray) -> np.ndarray:
    """Return 1 - similarity (diagonal becomes 0 for a co-occurrence matrix)."""
    return 1.0 - np.asarray(similarity, dtype=float)


def dissimilarity_to_similarity(diss: np.ndarray) -> np.ndarray:
    """Return 1 - diss."""
    return 1.0 - np.asarray(diss, dtype=float)


def correlation_dissimilarity(x: np.ndarray) -> np.ndarray:
    """Compute (1 - Pearson correlation) / 2 between rows of x.

    Values lie in [0, 1]. Rows with zero variance are treated as
    uncorrelated with everything else.
    """
    x = np.asarray(x, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        corr = np.corrcoef(x)
    corr = np.nan_to_num(np.atleast_2d(corr), nan=0.0)
    diss = np.clip((1.0 - corr) / 2.0, 0.0, 1.0)
    np.fill_diagonal(diss, 0.0)
    return (diss + diss.T) / 2.0


def compute_dissimilarity(
    x: np.ndarray,
    dist_function: Optional[DistFunction] = None,
    default: str = "euclidean",
) -> np.ndarray:
    """Compute a square dissimilarity matrix between the rows of x.

    Parameters
    ----------
    x : np.ndarray
        Feature matrix (samples x features)
    dist_function : str or callable, optional
        A scipy ``pdist`` metric name, the special name ``"correlation01"``,
        or a callable taking x and returning a square or condensed matrix.
    default : str
        Metric used when dist_function is None

    Returns
    -------
    np.ndarray
        Square, symmetric dissimilarity matrix with zero diagonal
    """
    x = np.asarray(x, dtype=float)
    metric = dist_function if dist_function is not None else default

    if callable(metric):
        out = np.asarray(metric(x), dtype=float)
        if out.ndim == 1:
            out = squareform(out)
    elif metric == "correlation01":
        out = correlation_dissimilarity(x)
    else:
        out = squareform(pdist(x, metric=metric))

    np.fill_diagonal(out, 0.0)
    return out


def is_symmetric(matrix: np.ndarray) -> bool:
    """Check value-wise symmetry of a square matrix."""
    matrix = np.asarray(matrix)
    return matrix.ndim == 2 and matrix.shape[0] == matrix.shape[1] and np.allclose(matrix, matrix.T)

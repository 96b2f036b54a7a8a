"""Pairwise co-occurrence of samples across clusterings."""

from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd

from .labels import to_nullable_labels


def co_occurrence(cluster_matrix: Any) -> np.ndarray:
    """Fraction of clusterings in which each pair of samples shares a cluster.

    For samples i and j, only the clusterings where both i and j carry a
    real label (not -1 unassigned, not -2 missing) count, in the numerator
    and in the denominator.

    Pairs with no such clustering get co-occurrence 0. Note that this
    treats "no information" exactly like "never clustered together".

    Parameters
    ----------
    cluster_matrix : array-like or pd.DataFrame
        M samples x N clusterings of integer labels

    Returns
    -------
    np.ndarray
        Symmetric M x M matrix with values in [0, 1] and diagonal 1
    """
    labels = to_nullable_labels(cluster_matrix)
    if isinstance(labels, pd.Series):
        labels = labels.to_frame()
    n_samples = labels.shape[0]

    shared = np.zeros((n_samples, n_samples), dtype=float)
    eligible = np.zeros((n_samples, n_samples), dtype=float)

    for col in labels.columns:
        column = labels[col]
        valid = column.notna().to_numpy()
        codes, uniques = pd.factorize(column)
        onehot = np.zeros((n_samples, len(uniques)), dtype=float)
        onehot[np.flatnonzero(valid), codes[valid]] = 1.0
        shared += onehot @ onehot.T
        eligible += np.outer(valid, valid)

    with np.errstate(divide="ignore", invalid="ignore"):
        result = np.where(eligible > 0, shared / eligible, 0.0)
    np.fill_diagonal(result, 1.0)
    return result

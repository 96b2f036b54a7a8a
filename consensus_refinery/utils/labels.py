"""Label-vector utilities.

Label vectors are integer arrays of length M. Two sentinel values are
reserved at the interface boundary:

- ``-1`` (UNASSIGNED): the sample was clustered but not assigned
- ``-2`` (MISSING): the sample was not clustered at all

Internally, code that does arithmetic over labels converts them to the
nullable pandas ``Int64`` dtype first (sentinels become ``pd.NA``), so a
sentinel can never be mistaken for a cluster id.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..core.validation import ComputationInvariantViolation

UNASSIGNED = -1
MISSING = -2
SENTINELS = (UNASSIGNED, MISSING)

LabelsLike = Union[np.ndarray, Sequence[int], pd.Series]


def is_group_list(result: Any) -> bool:
    """Return True if result looks like a list of index groups."""
    if isinstance(result, (np.ndarray, pd.Series)):
        return False
    if not isinstance(result, (list, tuple)) or len(result) == 0:
        return False
    return all(
        isinstance(group, (list, tuple, np.ndarray, set, frozenset)) for group in result
    )


def groups_to_vector(groups: Sequence[Sequence[int]], n_samples: int) -> np.ndarray:
    """Convert a list of index groups to a label vector.

    Groups are numbered 1..k in list order; samples in no group get -1.

    Raises
    ------
    ComputationInvariantViolation
        If an index is out of range or appears in two groups
    """
    labels = np.full(n_samples, UNASSIGNED, dtype=int)
    for cluster_id, group in enumerate(groups, start=1):
        idx = np.asarray(sorted(group) if isinstance(group, (set, frozenset)) else group)
        if idx.size == 0:
            continue
        if not np.issubdtype(idx.dtype, np.integer):
            raise ComputationInvariantViolation(
                "Cluster group contains non-integer sample indices",
                error_code="I003_BAD_GROUPS",
                found=str(idx.dtype),
            )
        if idx.min() < 0 or idx.max() >= n_samples:
            raise ComputationInvariantViolation(
                "Cluster group index out of range",
                error_code="I003_BAD_GROUPS",
                expected=f"0..{n_samples - 1}",
                found=f"{idx.min()}..{idx.max()}",
            )
        if np.any(labels[idx] != UNASSIGNED):
            raise ComputationInvariantViolation(
                "Sample assigned to more than one cluster group",
                error_code="I003_BAD_GROUPS",
                context={"cluster": cluster_id},
            )
        labels[idx] = cluster_id
    return labels


def renumber_labels(labels: LabelsLike) -> np.ndarray:
    """Renumber cluster ids to 1..k' in order of first appearance.

    Sentinel values are left untouched.
    """
    labels = np.asarray(labels, dtype=int)
    out = labels.copy()
    mapping: Dict[int, int] = {}
    for i, value in enumerate(labels):
        if value in SENTINELS:
            continue
        if value not in mapping:
            mapping[value] = len(mapping) + 1
        out[i] = mapping[value]
    return out


def normalize_labels(
    result: Any, n_samples: int, output_type: Optional[str] = None
) -> np.ndarray:
    """Normalize a ClusterFunction result to a compact label vector.

    Accepts a flat label vector (any integer-valued array-like) or a list of
    index groups. The returned vector has length n_samples, values in
    {-2, -1} and 1..k', with cluster identity preserved.

    Parameters
    ----------
    result : Any
        Raw ClusterFunction output
    n_samples : int
        Expected number of samples
    output_type : str, optional
        "list" or "vector" when the producer declares it; inferred otherwise

    Returns
    -------
    np.ndarray
        Normalized integer label vector

    Raises
    ------
    ComputationInvariantViolation
        If the result has the wrong length or is not integer-valued
    """
    if output_type == "list" or (output_type is None and is_group_list(result)):
        return renumber_labels(groups_to_vector(result, n_samples))
    return renumber_labels(check_label_vector(result, n_samples))


def check_label_vector(result: Any, n_samples: int) -> np.ndarray:
    """Check a flat label vector and return it as ints, ids unchanged.

    Raises
    ------
    ComputationInvariantViolation
        I001 if the length is not n_samples, I002 if a value is not an
        integer, -1, or -2
    """
    try:
        values = np.asarray(result, dtype=float).ravel()
    except (TypeError, ValueError):
        raise ComputationInvariantViolation(
            "ClusterFunction returned a non-numeric result",
            error_code="I002_NON_NUMERIC",
            expected="integer label vector",
            found=type(result).__name__,
        ) from None

    if values.shape[0] != n_samples:
        raise ComputationInvariantViolation(
            "ClusterFunction returned a label vector of the wrong length",
            error_code="I001_LABEL_LENGTH",
            expected=n_samples,
            found=values.shape[0],
        )
    if not np.all(np.isfinite(values)) or not np.all(np.mod(values, 1) == 0):
        raise ComputationInvariantViolation(
            "ClusterFunction returned non-integer labels",
            error_code="I002_NON_NUMERIC",
            expected="integer label vector",
        )
    labels = values.astype(int)
    bad = (labels < 0) & ~np.isin(labels, SENTINELS)
    if np.any(bad):
        raise ComputationInvariantViolation(
            "ClusterFunction returned negative labels other than -1/-2",
            error_code="I002_NON_NUMERIC",
            found=sorted(set(labels[bad].tolist())),
        )
    return labels


def to_nullable_labels(labels: Any) -> Union[pd.Series, pd.DataFrame]:
    """Convert sentinel-encoded labels to nullable Int64 (sentinels -> NA)."""
    if isinstance(labels, (pd.Series, pd.DataFrame)):
        frame = labels.astype("Int64")
    else:
        array = np.asarray(labels)
        frame = pd.DataFrame(array) if array.ndim == 2 else pd.Series(array)
        frame = frame.astype("Int64")
    return frame.mask(frame.isin(list(SENTINELS)))


def to_sentinel_labels(labels: Union[pd.Series, pd.DataFrame], fill: int = UNASSIGNED) -> np.ndarray:
    """Convert nullable Int64 labels back to a sentinel-encoded int array."""
    return labels.fillna(fill).to_numpy(dtype=int)


def cluster_sizes(labels: LabelsLike) -> Dict[int, int]:
    """Map cluster id to size, excluding sentinels."""
    labels = np.asarray(labels, dtype=int)
    ids, counts = np.unique(labels[~np.isin(labels, SENTINELS)], return_counts=True)
    return {int(i): int(c) for i, c in zip(ids, counts)}


def remove_small_clusters(labels: LabelsLike, min_size: int) -> np.ndarray:
    """Set clusters smaller than min_size to -1 and renumber the rest."""
    labels = np.asarray(labels, dtype=int).copy()
    if min_size <= 1:
        return renumber_labels(labels)
    small: List[int] = [c for c, n in cluster_sizes(labels).items() if n < min_size]
    labels[np.isin(labels, small)] = UNASSIGNED
    return renumber_labels(labels)

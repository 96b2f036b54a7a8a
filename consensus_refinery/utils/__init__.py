"""Utility functions for Consensus-Refinery.

Provides label-vector normalization and dissimilarity helpers used
across modules.
"""

from .cooccurrence import co_occurrence
from .labels import (
    MISSING,
    SENTINELS,
    UNASSIGNED,
    check_label_vector,
    cluster_sizes,
    groups_to_vector,
    normalize_labels,
    remove_small_clusters,
    renumber_labels,
    to_nullable_labels,
    to_sentinel_labels,
)
from .matrix import (
    compute_dissimilarity,
    correlation_dissimilarity,
    dissimilarity_to_similarity,
    is_symmetric,
    similarity_to_dissimilarity,
)

__all__ = [
    # Co-occurrence
    "co_occurrence",
    # Labels
    "MISSING",
    "SENTINELS",
    "UNASSIGNED",
    "check_label_vector",
    "cluster_sizes",
    "groups_to_vector",
    "normalize_labels",
    "remove_small_clusters",
    "renumber_labels",
    "to_nullable_labels",
    "to_sentinel_labels",
    # Matrices
    "compute_dissimilarity",
    "correlation_dissimilarity",
    "dissimilarity_to_similarity",
    "is_symmetric",
    "similarity_to_dissimilarity",
]

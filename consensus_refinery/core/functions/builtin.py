"""Built-in ClusterFunction adapters over scipy and scikit-learn.

These adapters only translate between the ClusterFunction contract and the
underlying library call; the partitioning itself is done by the library.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import numpy as np
from scipy.cluster.hierarchy import fcluster, linkage, to_tree
from scipy.spatial.distance import squareform

from ..validation import ConfigurationError, suggest_names
from .base import AlgorithmType, ClusterFunction, InputType


# Comparisons against alpha tolerate rounding in 1 - proportion style inputs
_ALPHA_TOL = 1e-10

EVAL_CLUSTER_METHODS = ("maximum", "average")


def _condensed(diss: np.ndarray) -> np.ndarray:
    """Condensed form of a square dissimilarity for scipy linkage."""
    diss = np.asarray(diss, dtype=float)
    return squareform((diss + diss.T) / 2.0, checks=False)


class KMeansFunction(ClusterFunction):
    """k-means on the feature matrix (scikit-learn KMeans)."""

    name = "kmeans"
    algorithm_type = AlgorithmType.K
    input_type = InputType.X
    required_args = ("k",)
    output_type = "vector"

    def apply(self, x=None, diss=None, k: int = 2, n_init: int = 10,
              random_state: Optional[int] = 0, **kwargs: Any) -> np.ndarray:
        from sklearn.cluster import KMeans

        if x is None:
            raise ConfigurationError(
                "kmeans needs a feature matrix",
                error_code="C001_MISSING_INPUT",
                parameter="x",
            )
        model = KMeans(n_clusters=int(k), n_init=n_init, random_state=random_state, **kwargs)
        return model.fit_predict(np.asarray(x, dtype=float)) + 1


class HierarchicalKFunction(ClusterFunction):
    """Hierarchical clustering of a dissimilarity, tree cut into k clusters."""

    name = "hierarchicalK"
    algorithm_type = AlgorithmType.K
    input_type = InputType.DISS
    required_args = ("k",)
    output_type = "vector"

    def apply(self, x=None, diss=None, k: int = 2, linkage_method: str = "average",
              **kwargs: Any) -> np.ndarray:
        n = diss.shape[0]
        if n == 1:
            return np.ones(1, dtype=int)
        tree = linkage(_condensed(diss), method=linkage_method)
        return fcluster(tree, t=int(k), criterion="maxclust")


class Hierarchical01Function(ClusterFunction):
    """Threshold clustering of a dissimilarity using a hierarchical tree.

    Walks the tree from the root and keeps the largest subtrees whose
    members are all within ``alpha`` of each other:

    - ``eval_cluster_method="maximum"``: every pairwise dissimilarity <= alpha
    - ``eval_cluster_method="average"``: every member's mean dissimilarity
      to the other members <= alpha

    Returns a list of index groups; the caller drops groups below its
    minimum size.
    """

    name = "hierarchical01"
    algorithm_type = AlgorithmType.ZERO_ONE
    input_type = InputType.DISS
    required_args = ("alpha",)
    output_type = "list"

    def apply(self, x=None, diss=None, alpha: float = 0.1,
              eval_cluster_method: str = "maximum",
              linkage_method: str = "average", **kwargs: Any) -> List[np.ndarray]:
        if eval_cluster_method not in EVAL_CLUSTER_METHODS:
            raise ConfigurationError(
                "Unknown eval_cluster_method",
                error_code="C007_UNKNOWN_METHOD",
                parameter="eval_cluster_method",
                expected=list(EVAL_CLUSTER_METHODS),
                found=eval_cluster_method,
            )
        diss = np.asarray(diss, dtype=float)
        n = diss.shape[0]
        if n == 1:
            return [np.array([0])]

        root = to_tree(linkage(_condensed(diss), method=linkage_method))
        groups: List[np.ndarray] = []
        # Explicit stack: tree depth can reach n
        stack = [root]
        while stack:
            node = stack.pop()
            members = np.array(sorted(node.pre_order()))
            if self._is_tight(diss, members, alpha, eval_cluster_method):
                groups.append(members)
            else:
                stack.append(node.get_right())
                stack.append(node.get_left())

        groups.sort(key=lambda g: (-len(g), g[0]))
        return groups

    @staticmethod
    def _is_tight(diss: np.ndarray, members: np.ndarray, alpha: float, method: str) -> bool:
        if len(members) == 1:
            return True
        sub = diss[np.ix_(members, members)]
        if method == "maximum":
            return bool(sub.max() <= alpha + _ALPHA_TOL)
        row_means = sub.sum(axis=1) / (len(members) - 1)
        return bool(np.all(row_means <= alpha + _ALPHA_TOL))


BUILTIN_FUNCTIONS: Dict[str, ClusterFunction] = {
    fn.name: fn
    for fn in (KMeansFunction(), HierarchicalKFunction(), Hierarchical01Function())
}


def list_builtin_functions() -> List[str]:
    """Names of the built-in ClusterFunctions."""
    return sorted(BUILTIN_FUNCTIONS)


def get_cluster_function(function: Any) -> ClusterFunction:
    """Resolve a ClusterFunction instance or built-in name.

    Raises
    ------
    ConfigurationError
        If the name is unknown or the object is not a ClusterFunction
    """
    if isinstance(function, ClusterFunction):
        return function
    if isinstance(function, str):
        if function in BUILTIN_FUNCTIONS:
            return BUILTIN_FUNCTIONS[function]
        raise ConfigurationError(
            f"Unknown cluster function '{function}'",
            error_code="C007_UNKNOWN_METHOD",
            parameter="cluster_function",
            found=function,
            suggestion=suggest_names(function, BUILTIN_FUNCTIONS),
        )
    raise ConfigurationError(
        "cluster_function must be a built-in name or a ClusterFunction object",
        error_code="C007_UNKNOWN_METHOD",
        parameter="cluster_function",
        found=type(function).__name__,
    )

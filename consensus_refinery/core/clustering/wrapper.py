"""Main clustering step.

Runs the configured ClusterFunction on a feature matrix or a
dissimilarity, optionally after subsampling co-clustering, and normalizes
whatever it returns to a compact label vector.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import numpy as np

from ...utils.labels import (
    SENTINELS,
    UNASSIGNED,
    cluster_sizes,
    normalize_labels,
    remove_small_clusters,
    renumber_labels,
)
from ...utils.matrix import compute_dissimilarity, similarity_to_dissimilarity
from ..functions import AlgorithmType, ClusterFunction
from ..validation import ComputationInvariantViolation
from .config import MainClusterParams, SubsampleParams
from .subsample import subsample_clustering

SubsampleFn = Callable[..., np.ndarray]

# Default distance per algorithm type when only x is available
DEFAULT_DIST = {
    AlgorithmType.K: "euclidean",
    AlgorithmType.ZERO_ONE: "correlation01",
}


@dataclass
class WrapperResult:
    """Result from the main clustering step.

    Attributes
    ----------
    labels : np.ndarray
        Normalized label vector (length M)
    diss : np.ndarray, optional
        Dissimilarity the ClusterFunction was run on, if any
    best_k : int, optional
        k chosen by find_best_k
    silhouette : Dict[int, float]
        Mean silhouette width per k tried by find_best_k
    """

    labels: np.ndarray
    diss: Optional[np.ndarray] = None
    best_k: Optional[int] = None
    silhouette: Dict[int, float] = field(default_factory=dict)


def default_k_range(k: Optional[int], n_samples: int) -> range:
    """Values of k searched by find_best_k: max(2, k-2) .. k+20, below n."""
    k = int(k) if k is not None else 2
    upper = min(k + 20, n_samples - 1)
    return range(max(2, k - 2), max(upper, 2) + 1)


def _mean_silhouette(diss: np.ndarray, labels: np.ndarray) -> float:
    from sklearn.metrics import silhouette_score

    assigned = ~np.isin(labels, SENTINELS)
    n_clusters = len(np.unique(labels[assigned]))
    if n_clusters < 2 or n_clusters >= assigned.sum():
        return float("-inf")
    sub = diss[np.ix_(assigned, assigned)]
    return float(silhouette_score(sub, labels[assigned], metric="precomputed"))


class MainClusteringWrapper:
    """Invoke the main ClusterFunction and normalize its result.

    Parameters
    ----------
    main : MainClusterParams
        Main clustering configuration
    subsample_fn : Callable, optional
        Subsampling collaborator ``(x, diss, params, logger) -> co-occurrence``.
        Defaults to ``subsample_clustering``.
    logger : logging.Logger, optional
        Logger instance. If None, uses the module logger.

    Example
    -------
    >>> wrapper = MainClusteringWrapper(MainClusterParams(cluster_args={"alpha": 0.2}))
    >>> result = wrapper.apply(diss=diss)
    >>> result.labels
    """

    def __init__(
        self,
        main: MainClusterParams,
        subsample_fn: Optional[SubsampleFn] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.main = main
        self.subsample_fn = subsample_fn or subsample_clustering
        self.logger = logger or logging.getLogger(__name__)

    def apply(
        self,
        x: Optional[np.ndarray] = None,
        diss: Optional[np.ndarray] = None,
        subsample: bool = False,
        subsample_params: Optional[SubsampleParams] = None,
    ) -> WrapperResult:
        """Run the main clustering step.

        Parameters
        ----------
        x : np.ndarray, optional
            Feature matrix (samples x features)
        diss : np.ndarray, optional
            Dissimilarity matrix (samples x samples)
        subsample : bool
            Cluster ``1 - co-occurrence`` from subsampling instead of the input
        subsample_params : SubsampleParams, optional
            Subsampling configuration

        Returns
        -------
        WrapperResult
            Normalized labels and the dissimilarity used
        """
        if subsample:
            params = subsample_params or SubsampleParams()
            co = np.asarray(self.subsample_fn(x, diss, params, logger=self.logger), dtype=float)
            n_expected = x.shape[0] if x is not None else diss.shape[0]
            if co.shape != (n_expected, n_expected) or np.any((co < 0) | (co > 1)):
                raise ComputationInvariantViolation(
                    "Subsampling returned an invalid co-occurrence matrix",
                    error_code="I004_BAD_COOCCURRENCE",
                    expected=f"{n_expected} x {n_expected} matrix in [0, 1]",
                    found=f"shape {co.shape}",
                )
            diss = similarity_to_dissimilarity(co)
            # From here on the main step sees only the derived dissimilarity
            x = None

        return self._cluster(x, diss)

    def _cluster(self, x: Optional[np.ndarray], diss: Optional[np.ndarray]) -> WrapperResult:
        main = self.main
        fn = main.function
        n_samples = diss.shape[0] if diss is not None else x.shape[0]

        needs_diss = fn.accepts_diss and (diss is not None or not fn.accepts_x)
        wants_sil = fn.algorithm_type is AlgorithmType.K and (main.find_best_k or main.remove_sil)
        if (needs_diss or wants_sil) and diss is None:
            dist = main.dist_function or DEFAULT_DIST[fn.algorithm_type]
            self.logger.debug("Computing dissimilarity from x with %s", dist)
            diss = compute_dissimilarity(x, dist)

        inputs: Dict[str, Any] = {"diss": diss} if needs_diss else {"x": x}

        best_k = None
        silhouette: Dict[int, float] = {}
        if fn.algorithm_type is AlgorithmType.K and main.find_best_k:
            k_values = main.k_range or default_k_range(main.cluster_args.get("k"), n_samples)
            candidates = {}
            for k in k_values:
                labels_k = self._run(fn, inputs, n_samples, {**main.cluster_args, "k": k})
                silhouette[int(k)] = _mean_silhouette(diss, labels_k)
                candidates[int(k)] = labels_k
            best_k = max(silhouette, key=lambda k: (silhouette[k], -k))
            labels = candidates[best_k]
            self.logger.info(
                "find_best_k chose k=%d (mean silhouette %.3f)", best_k, silhouette[best_k]
            )
        else:
            labels = self._run(fn, inputs, n_samples, main.cluster_args)

        if fn.algorithm_type is AlgorithmType.K and main.remove_sil:
            labels = self._remove_low_silhouette(diss, labels, main.sil_cutoff)

        labels = remove_small_clusters(labels, int(main.min_size))
        self.logger.debug(
            "Main clustering with %s: %d clusters, %d unassigned",
            fn.name, len(cluster_sizes(labels)), int(np.sum(labels == UNASSIGNED)),
        )
        return WrapperResult(labels=labels, diss=diss, best_k=best_k, silhouette=silhouette)

    @staticmethod
    def _run(
        fn: ClusterFunction,
        inputs: Dict[str, Any],
        n_samples: int,
        cluster_args: Dict[str, Any],
    ) -> np.ndarray:
        raw = fn.apply(**inputs, **cluster_args)
        return normalize_labels(raw, n_samples, fn.output_type)

    def _remove_low_silhouette(self, diss: np.ndarray, labels: np.ndarray, cutoff: float) -> np.ndarray:
        from sklearn.metrics import silhouette_samples

        assigned = ~np.isin(labels, SENTINELS)
        n_clusters = len(np.unique(labels[assigned]))
        if n_clusters < 2 or n_clusters >= assigned.sum():
            self.logger.warning("remove_sil skipped: silhouette needs 2..n-1 clusters")
            return labels
        widths = silhouette_samples(
            diss[np.ix_(assigned, assigned)], labels[assigned], metric="precomputed"
        )
        out = labels.copy()
        idx = np.flatnonzero(assigned)
        out[idx[widths < cutoff]] = UNASSIGNED
        self.logger.info("remove_sil unassigned %d samples", int(np.sum(widths < cutoff)))
        return renumber_labels(out)

"""
Sequential clustering over increasing k (Tseng and Wong, 2005).

Finds tight, stable clusters one at a time:
1. Cluster the remaining samples at k and take the top_can largest clusters
2. Cluster again at k + 1 and compare candidates by Jaccard overlap
3. If the best overlap reaches beta, accept that cluster, remove its
   samples, decrease k0 and restart from the new k0
4. Otherwise move on to k + 2, and so on until a stopping rule fires

Samples never placed in an accepted cluster are unassigned (-1).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from ...utils.labels import UNASSIGNED
from .config import MainClusterParams, SeqParams, SubsampleParams
from .wrapper import MainClusteringWrapper, SubsampleFn

# Stopping reasons recorded in why_stop
STOP_OUT_OF_SAMPLES = "Ran out of samples"
STOP_MAX_K = "Reached maximum k"
STOP_MIN_K = "k0 fell below k_min"


@dataclass
class SequentialResult:
    """Result from the sequential search.

    Attributes
    ----------
    labels : np.ndarray
        Cluster labels 1..n in order of discovery, -1 for unassigned
    cluster_info : List[Dict[str, Any]]
        One record per accepted cluster (k, size, overlap, remaining)
    why_stop : str
        Reason the search ended
    """

    labels: np.ndarray
    cluster_info: List[Dict[str, Any]] = field(default_factory=list)
    why_stop: str = ""


def _jaccard(a: np.ndarray, b: np.ndarray) -> float:
    union = np.union1d(a, b).size
    return np.intersect1d(a, b).size / union if union else 0.0


def top_candidates(labels: np.ndarray, top_can: int) -> List[np.ndarray]:
    """Index sets of the ``top_can`` largest clusters (ties by label)."""
    values, counts = np.unique(labels[labels > 0], return_counts=True)
    order = sorted(zip(values, counts), key=lambda vc: (-vc[1], vc[0]))
    return [np.flatnonzero(labels == v) for v, _ in order[:top_can]]


class SequentialClusterer:
    """Tseng-Wong sequential search for stable clusters.

    The clustering at each k is delegated to ``MainClusteringWrapper``; with
    ``subsample`` the k goes to the subsampling function, otherwise to the
    main (K-type) function.

    Parameters
    ----------
    params : SeqParams
        Sequential search configuration (k0 and beta required)
    logger : logging.Logger, optional
        Logger instance. If None, uses the module logger.

    Example
    -------
    >>> seq = SequentialClusterer(SeqParams(k0=4, beta=0.8, remain_n=10))
    >>> result = seq.run(x=x, main=MainClusterParams("kmeans", {}))
    >>> result.why_stop
    """

    def __init__(self, params: SeqParams, logger: Optional[logging.Logger] = None):
        self.params = params
        self.logger = logger or logging.getLogger(__name__)

    def run(
        self,
        x: Optional[np.ndarray] = None,
        diss: Optional[np.ndarray] = None,
        *,
        subsample: bool = False,
        subsample_params: Optional[SubsampleParams] = None,
        main: Optional[MainClusterParams] = None,
        subsample_fn: Optional[SubsampleFn] = None,
    ) -> SequentialResult:
        """Run the search.

        Parameters
        ----------
        x : np.ndarray, optional
            Feature matrix (samples x features)
        diss : np.ndarray, optional
            Dissimilarity matrix
        subsample : bool
            Cluster by subsampling co-occurrence at each k
        subsample_params : SubsampleParams, optional
            Subsampling configuration (its k is set by the search)
        main : MainClusterParams, optional
            Main clustering configuration
        subsample_fn : Callable, optional
            Subsampling collaborator passed to the wrapper

        Returns
        -------
        SequentialResult
            Labels, per-cluster records, and the stopping reason
        """
        params = self.params
        main = main or MainClusterParams()
        subsample_params = subsample_params or SubsampleParams()
        n_samples = x.shape[0] if x is not None else diss.shape[0]

        k0 = int(params.k0)
        k_max = int(params.k_max) if params.k_max is not None else k0 + 10
        k_min = int(params.k_min)

        labels = np.full(n_samples, UNASSIGNED, dtype=int)
        remaining = np.arange(n_samples)
        cluster_info: List[Dict[str, Any]] = []
        previous: Optional[List[np.ndarray]] = None
        k = k0

        self.logger.info(
            "Sequential search: k0=%d, beta=%.2f, top_can=%d, remain_n=%d",
            k0, params.beta, params.top_can, params.remain_n,
        )

        while True:
            if remaining.size < params.remain_n or k >= remaining.size:
                why_stop = STOP_OUT_OF_SAMPLES
                break
            if k > k_max:
                why_stop = STOP_MAX_K
                break

            current = self._candidates(x, diss, remaining, k, subsample, subsample_params, main, subsample_fn)

            if previous is None:
                previous = current
                k += 1
                continue

            best, best_overlap = self._best_match(previous, current)
            if best is not None and best_overlap >= params.beta:
                found = remaining[best]
                labels[found] = len(cluster_info) + 1
                cluster_info.append({
                    "cluster": len(cluster_info) + 1,
                    "k": k,
                    "size": int(found.size),
                    "overlap": float(best_overlap),
                    "remaining": int(remaining.size - found.size),
                })
                self.logger.info(
                    "Found cluster %d at k=%d: %d samples (overlap %.3f)",
                    len(cluster_info), k, found.size, best_overlap,
                )
                remaining = np.setdiff1d(remaining, found)
                previous = None
                k0 -= 1
                if k0 < k_min:
                    why_stop = STOP_MIN_K
                    break
                k = k0
            else:
                previous = current
                k += 1

        self.logger.info("Sequential search stopped: %s (%d clusters)", why_stop, len(cluster_info))
        return SequentialResult(labels=labels, cluster_info=cluster_info, why_stop=why_stop)

    def _candidates(
        self,
        x: Optional[np.ndarray],
        diss: Optional[np.ndarray],
        remaining: np.ndarray,
        k: int,
        subsample: bool,
        subsample_params: SubsampleParams,
        main: MainClusterParams,
        subsample_fn: Optional[SubsampleFn],
    ) -> List[np.ndarray]:
        """Top candidates at k, as positions within ``remaining``."""
        x_sub = x[remaining] if x is not None else None
        diss_sub = diss[np.ix_(remaining, remaining)] if diss is not None else None

        if subsample:
            wrapper = MainClusteringWrapper(main, subsample_fn=subsample_fn, logger=self.logger)
            result = wrapper.apply(
                x_sub, diss_sub, subsample=True,
                subsample_params=subsample_params.with_cluster_args(k=k),
            )
        else:
            wrapper = MainClusteringWrapper(main.with_cluster_args(k=k), logger=self.logger)
            result = wrapper.apply(x_sub, diss_sub)

        self.logger.debug("k=%d on %d samples", k, remaining.size)
        return top_candidates(result.labels, self.params.top_can)

    @staticmethod
    def _best_match(previous: List[np.ndarray], current: List[np.ndarray]):
        """Current candidate with the highest Jaccard overlap to any previous one."""
        best, best_overlap = None, -1.0
        for cand in current:
            for prev in previous:
                overlap = _jaccard(prev, cand)
                if overlap > best_overlap:
                    best, best_overlap = cand, overlap
        return best, best_overlap


def seq_cluster(
    x: Optional[np.ndarray],
    diss: Optional[np.ndarray],
    *,
    subsample: bool,
    main: MainClusterParams,
    subsample_params: SubsampleParams,
    seq_params: SeqParams,
    subsample_fn: Optional[SubsampleFn] = None,
    logger: Optional[logging.Logger] = None,
) -> SequentialResult:
    """Default sequential collaborator: ``SequentialClusterer(seq_params).run``."""
    return SequentialClusterer(seq_params, logger=logger).run(
        x, diss,
        subsample=subsample,
        subsample_params=subsample_params,
        main=main,
        subsample_fn=subsample_fn,
    )

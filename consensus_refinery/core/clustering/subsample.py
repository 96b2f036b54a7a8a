"""
Subsampling co-clustering.

Repeatedly draws a subsample of the samples, clusters it with a K-type
ClusterFunction, and records how often each pair of samples lands in the
same cluster. Draws are independent, so they run in parallel worker
processes via joblib:
1. Spawn one seed per draw from the configured random seed
2. Cluster each draw in a worker (classifying left-out samples if asked)
3. Stack the per-draw label vectors and compute pairwise co-occurrence
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ...utils.cooccurrence import co_occurrence
from ...utils.labels import MISSING, UNASSIGNED, normalize_labels
from ...utils.matrix import compute_dissimilarity
from ..functions import ClusterFunction
from ..validation import ConfigurationError, check_range
from .config import CLASSIFY_METHODS, SubsampleParams


@dataclass
class SubsampleDraw:
    """Minimal data for one subsample draw.

    Holds only numpy arrays and the (immutable) ClusterFunction so the
    work item is cheap to send to a worker process.
    """
    draw_id: int
    seed: np.random.SeedSequence
    n_sub: int
    classify_method: str


def _classify(
    labels_sub: np.ndarray,
    sub_idx: np.ndarray,
    out_idx: np.ndarray,
    x: Optional[np.ndarray],
    diss: Optional[np.ndarray],
) -> np.ndarray:
    """Assign left-out samples to the closest subsample cluster.

    Uses the nearest cluster centroid in x when available, otherwise the
    smallest mean dissimilarity to the cluster's members.
    """
    clusters = [c for c in np.unique(labels_sub) if c != UNASSIGNED]
    if not clusters or len(out_idx) == 0:
        return np.full(len(out_idx), UNASSIGNED, dtype=int)

    if x is not None:
        centroids = np.vstack([x[sub_idx[labels_sub == c]].mean(axis=0) for c in clusters])
        dists = ((x[out_idx][:, None, :] - centroids[None, :, :]) ** 2).sum(axis=2)
    else:
        dists = np.column_stack([
            diss[np.ix_(out_idx, sub_idx[labels_sub == c])].mean(axis=1) for c in clusters
        ])
    return np.asarray(clusters)[np.argmin(dists, axis=1)]


def worker_subsample(
    draw: SubsampleDraw,
    x: Optional[np.ndarray],
    diss: Optional[np.ndarray],
    cluster_function: ClusterFunction,
    cluster_args: dict,
) -> np.ndarray:
    """Cluster one subsample and return a full-length label vector.

    Samples that do not count for this draw get -2 (missing), so the
    co-occurrence step leaves them out of numerator and denominator.
    """
    n = x.shape[0] if x is not None else diss.shape[0]
    rng = np.random.default_rng(draw.seed)
    sub_idx = np.sort(rng.choice(n, size=draw.n_sub, replace=False))
    out_idx = np.setdiff1d(np.arange(n), sub_idx)

    if x is not None and cluster_function.accepts_x:
        raw = cluster_function.apply(x=x[sub_idx], **cluster_args)
    else:
        raw = cluster_function.apply(diss=diss[np.ix_(sub_idx, sub_idx)], **cluster_args)
    labels_sub = normalize_labels(raw, draw.n_sub, cluster_function.output_type)

    labels = np.full(n, MISSING, dtype=int)
    if draw.classify_method in ("All", "InSample"):
        labels[sub_idx] = labels_sub
    if draw.classify_method in ("All", "OutOfSample"):
        labels[out_idx] = _classify(labels_sub, sub_idx, out_idx, x, diss)
    return labels


class SubsampleCoClusterer:
    """Co-occurrence of samples across clusterings of random subsamples.

    Parameters
    ----------
    params : SubsampleParams
        Subsampling configuration
    logger : logging.Logger, optional
        Logger instance. If None, uses the module logger.

    Example
    -------
    >>> params = SubsampleParams(cluster_args={"k": 3}, resamp_num=50)
    >>> co = SubsampleCoClusterer(params).run(x=x)
    >>> diss = 1 - co
    """

    def __init__(self, params: SubsampleParams, logger: Optional[logging.Logger] = None):
        self.params = params
        self.logger = logger or logging.getLogger(__name__)

    def validate(self) -> None:
        """Check numeric parameters and the classify method."""
        params = self.params
        check_range(params.samp_p, "subsample_params.samp_p", 0.0, 1.0, low_inclusive=False)
        check_range(params.resamp_num, "subsample_params.resamp_num", 1)
        if params.classify_method not in CLASSIFY_METHODS:
            raise ConfigurationError(
                "Unknown classify_method",
                error_code="C007_UNKNOWN_METHOD",
                parameter="subsample_params.classify_method",
                expected=list(CLASSIFY_METHODS),
                found=params.classify_method,
            )

    def run(self, x: Optional[np.ndarray] = None, diss: Optional[np.ndarray] = None) -> np.ndarray:
        """Draw, cluster, and return the M x M co-occurrence matrix.

        Parameters
        ----------
        x : np.ndarray, optional
            Feature matrix (samples x features)
        diss : np.ndarray, optional
            Dissimilarity matrix, used when x is absent or the
            ClusterFunction only takes a dissimilarity

        Returns
        -------
        np.ndarray
            Co-occurrence matrix, diagonal 1
        """
        self.validate()
        params = self.params
        fn = params.function
        fn.check_args(params.cluster_args, parameter="subsample_params.cluster_args")

        if x is None and diss is None:
            raise ConfigurationError(
                "Subsampling needs x or diss",
                error_code="C001_MISSING_INPUT",
                parameter="x",
            )
        x = np.asarray(x, dtype=float) if x is not None else None
        if not fn.accepts_x and diss is None:
            diss = compute_dissimilarity(x)
        diss = np.asarray(diss, dtype=float) if diss is not None else None
        if not fn.accepts_diss and x is None:
            raise ConfigurationError(
                f"Subsampling ClusterFunction '{fn.name}' needs a feature matrix",
                error_code="C001_MISSING_INPUT",
                parameter="subsample_params.cluster_function",
            )

        n = x.shape[0] if x is not None else diss.shape[0]
        n_sub = int(np.floor(params.samp_p * n))
        if n_sub < 2:
            raise ConfigurationError(
                "samp_p leaves fewer than 2 samples per subsample",
                error_code="C006_OUT_OF_RANGE",
                parameter="subsample_params.samp_p",
                found=params.samp_p,
            )

        seeds = np.random.SeedSequence(params.random_seed).spawn(params.resamp_num)
        draws = [
            SubsampleDraw(draw_id=i, seed=s, n_sub=n_sub, classify_method=params.classify_method)
            for i, s in enumerate(seeds)
        ]

        self.logger.info(
            "Subsampling %d draws of %d/%d samples with %s (%d workers)",
            len(draws), n_sub, n, fn.name, params.n_workers,
        )
        start_time = time.time()

        if params.n_workers == 1:
            results = [worker_subsample(d, x, diss, fn, params.cluster_args) for d in draws]
        else:
            from joblib import Parallel, delayed

            results = Parallel(n_jobs=params.n_workers, backend="loky")(
                delayed(worker_subsample)(d, x, diss, fn, params.cluster_args) for d in draws
            )

        self.logger.info("Subsampling completed in %.2f seconds", time.time() - start_time)
        return co_occurrence(np.column_stack(results))


def subsample_clustering(
    x: Optional[np.ndarray],
    diss: Optional[np.ndarray],
    params: SubsampleParams,
    logger: Optional[logging.Logger] = None,
) -> np.ndarray:
    """Default subsampling collaborator: ``SubsampleCoClusterer(params).run``."""
    return SubsampleCoClusterer(params, logger=logger).run(x=x, diss=diss)

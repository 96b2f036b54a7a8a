"""
Single clustering run: validate, reduce, dispatch.

``ClusterSingleEngine`` checks every parameter combination up front, then
runs one of three pipelines:
1. Main clustering of the input (optionally after dimensionality reduction)
2. Main clustering of 1 - co-occurrence from subsampling
3. Sequential search over k, with or without subsampling at each k

All expensive work is delegated to collaborators (subsampling, sequential
search, reduction) that callers may replace.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import numpy as np
import pandas as pd

from ...utils.labels import check_label_vector, cluster_sizes
from ...utils.matrix import similarity_to_dissimilarity
from ..functions import AlgorithmType
from ..reduction import ReductionResult, check_reduce_method, reduce_dimensions
from ..validation import (
    ConfigurationError,
    check_dissimilarity,
    check_pipeline_shape,
    check_range,
    warn,
)
from .config import ClusterSingleConfig
from .sequential import SequentialResult, seq_cluster
from .subsample import SubsampleCoClusterer, subsample_clustering
from .wrapper import MainClusteringWrapper, SubsampleFn

SequentialFn = Callable[..., SequentialResult]
Reducer = Callable[..., ReductionResult]

# Driving input of a run
INPUT_X = "X"
INPUT_DISS = "diss"
INPUT_BOTH = "both"


@dataclass
class ClusterSingleResult:
    """Result from a single clustering run.

    Attributes
    ----------
    labels : np.ndarray
        Cluster labels 1..k, -1 for unassigned (length M)
    cluster_info : Dict[str, Any]
        Provenance of the run (parameters, sequential stopping reason, ...)
    co_clustering : np.ndarray, optional
        Subsampling co-occurrence (subsample without sequential only)
    diss : np.ndarray, optional
        Dissimilarity the main step clustered, if any
    x : np.ndarray, optional
        Feature matrix after transformation and reduction, if any
    reduced : ReductionResult, optional
        Full reduction details
    sample_names : pd.Index, optional
        Row labels when the input was a DataFrame
    """

    labels: np.ndarray
    cluster_info: Dict[str, Any] = field(default_factory=dict)
    co_clustering: Optional[np.ndarray] = None
    diss: Optional[np.ndarray] = None
    x: Optional[np.ndarray] = None
    reduced: Optional[ReductionResult] = None
    sample_names: Optional[pd.Index] = None

    @property
    def n_clusters(self) -> int:
        return len(cluster_sizes(self.labels))

    @property
    def cluster_sizes(self) -> Dict[int, int]:
        return cluster_sizes(self.labels)

    def to_series(self, name: Optional[str] = None) -> pd.Series:
        """Labels as a Series indexed by sample name."""
        return pd.Series(
            self.labels,
            index=self.sample_names,
            name=name or self.cluster_info.get("cluster_label", "clusterSingle"),
        )


class ClusterSingleEngine:
    """Validate a clustering configuration and run it.

    Parameters
    ----------
    config : ClusterSingleConfig, optional
        Run configuration. If None, uses defaults.
    subsample_fn : Callable, optional
        Subsampling collaborator, default ``subsample_clustering``
    sequential_fn : Callable, optional
        Sequential collaborator, default ``seq_cluster``
    reducer : Callable, optional
        Dimensionality reduction, default ``reduce_dimensions``
    logger : logging.Logger, optional
        Logger instance. If None, uses the module logger.

    Example
    -------
    >>> config = ClusterSingleConfig(main=MainClusterParams("kmeans", {"k": 3}))
    >>> engine = ClusterSingleEngine(config)
    >>> result = engine.run(x=x)
    >>> result.n_clusters
    3
    """

    def __init__(
        self,
        config: Optional[ClusterSingleConfig] = None,
        *,
        subsample_fn: Optional[SubsampleFn] = None,
        sequential_fn: Optional[SequentialFn] = None,
        reducer: Optional[Reducer] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or ClusterSingleConfig.default()
        self.subsample_fn = subsample_fn or subsample_clustering
        self.sequential_fn = sequential_fn or seq_cluster
        self.reducer = reducer or reduce_dimensions
        self.logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, x: Optional[np.ndarray], diss: Optional[np.ndarray]) -> str:
        """Check inputs and configuration before any computation.

        Parameters
        ----------
        x : np.ndarray, optional
            Feature matrix (samples x features)
        diss : np.ndarray, optional
            Dissimilarity matrix

        Returns
        -------
        str
            Driving input: "X", "diss", or "both"

        Raises
        ------
        ConfigurationError
            On any invalid input or parameter combination
        """
        config = self.config
        main = config.main
        main_fn = main.function
        sub_params = config.subsample_params
        seq = config.seq_params

        if x is None and diss is None:
            raise ConfigurationError(
                "Must give either a feature matrix x or a dissimilarity diss",
                error_code="C001_MISSING_INPUT",
                parameter="x",
            )
        if diss is not None and config.check_diss:
            check_dissimilarity(diss)
        if x is not None and x.ndim != 2:
            raise ConfigurationError(
                "x must be a 2-D matrix (samples x features)",
                error_code="C010_SHAPE_MISMATCH",
                parameter="x",
                found=f"shape {x.shape}",
            )
        if x is not None and diss is not None and x.shape[0] != diss.shape[0]:
            raise ConfigurationError(
                "x and diss describe a different number of samples",
                error_code="C010_SHAPE_MISMATCH",
                parameter="diss",
                expected=f"{x.shape[0]} x {x.shape[0]}",
                found=f"shape {diss.shape}",
            )

        check_pipeline_shape(config.subsample, config.sequential, main_fn.algorithm_type)

        sub_fn = sub_params.function if config.subsample else None
        if sub_fn is not None and config.sequential:
            if sub_fn.algorithm_type is not AlgorithmType.K:
                raise ConfigurationError(
                    "The sequential search varies k of the subsampling ClusterFunction",
                    error_code="C008_WRONG_ALGORITHM_TYPE",
                    parameter="subsample_params.cluster_function",
                    expected=AlgorithmType.K.value,
                    found=sub_fn.algorithm_type.value,
                )
            if "k" in sub_params.cluster_args:
                warn(
                    "subsample_params.cluster_args['k'] is ignored: the sequential "
                    "search sets k",
                    self.logger,
                )

        if config.sequential:
            if seq is None or seq.k0 is None or seq.beta is None:
                raise ConfigurationError(
                    "Sequential clustering requires seq_params with k0 and beta",
                    error_code="C003_MISSING_SEQ_PARAM",
                    parameter="seq_params",
                    expected="k0 and beta",
                    found=seq.to_dict() if seq is not None else None,
                )
            if "k" in main.cluster_args:
                raise ConfigurationError(
                    "Cannot set k in main.cluster_args with sequential=True",
                    error_code="C005_FORBIDDEN_PARAM",
                    parameter="main.cluster_args.k",
                    suggestion="Set seq_params.k0 instead.",
                )
            if main.find_best_k and not config.subsample:
                raise ConfigurationError(
                    "Cannot use find_best_k with sequential=True and subsample=False",
                    error_code="C005_FORBIDDEN_PARAM",
                    parameter="main.find_best_k",
                )

        input_type = self._resolve_input(x, diss)

        if input_type != INPUT_X and main.dist_function is not None:
            raise ConfigurationError(
                "Cannot give main.dist_function when clustering a supplied dissimilarity",
                error_code="C005_FORBIDDEN_PARAM",
                parameter="main.dist_function",
            )

        check_reduce_method(config.reduce_method)
        if config.reduce_method != "none" and input_type != INPUT_X:
            raise ConfigurationError(
                "Dimensionality reduction needs a feature-matrix driven run",
                error_code="C005_FORBIDDEN_PARAM",
                parameter="reduce_method",
                expected="none",
                found=config.reduce_method,
            )

        # Required arguments, except those the pipeline fills in
        main_supplied = ("k",) if (config.sequential and not config.subsample) or main.find_best_k else ()
        main_fn.check_args(main.cluster_args, supplied=main_supplied, parameter="main.cluster_args")
        if sub_fn is not None:
            sub_supplied = ("k",) if config.sequential else ()
            sub_fn.check_args(
                sub_params.cluster_args, supplied=sub_supplied,
                parameter="subsample_params.cluster_args",
            )
            SubsampleCoClusterer(sub_params, logger=self.logger).validate()

        for flag in ("find_best_k", "remove_sil"):
            if getattr(main, flag) and main_fn.algorithm_type is not AlgorithmType.K:
                raise ConfigurationError(
                    f"main.{flag} only applies to K ClusterFunctions",
                    error_code="C008_WRONG_ALGORITHM_TYPE",
                    parameter=f"main.{flag}",
                    expected=AlgorithmType.K.value,
                    found=main_fn.algorithm_type.value,
                )

        check_range(main.min_size, "main.min_size", 0)
        if main.remove_sil:
            check_range(main.sil_cutoff, "main.sil_cutoff", -1, 1)
        if config.sequential:
            check_range(seq.beta, "seq_params.beta", 0, 1)
            check_range(seq.k0, "seq_params.k0", 1)
            check_range(seq.top_can, "seq_params.top_can", 1)
            check_range(seq.remain_n, "seq_params.remain_n", 0)
            check_range(seq.k_min, "seq_params.k_min", 1)
            if seq.k_max is not None:
                check_range(seq.k_max, "seq_params.k_max", seq.k0)

        return input_type

    def _resolve_input(self, x: Optional[np.ndarray], diss: Optional[np.ndarray]) -> str:
        config = self.config

        if config.subsample:
            sub_fn = config.subsample_params.function
            if x is None and not sub_fn.accepts_diss:
                raise ConfigurationError(
                    f"Subsampling ClusterFunction '{sub_fn.name}' needs a feature matrix x",
                    error_code="C001_MISSING_INPUT",
                    parameter="x",
                )
            return INPUT_X if x is not None else INPUT_DISS

        main_fn = config.main.function
        if main_fn.accepts_diss and diss is not None:
            return INPUT_BOTH if x is not None else INPUT_DISS
        if main_fn.accepts_x:
            if x is None:
                raise ConfigurationError(
                    f"ClusterFunction '{main_fn.name}' needs a feature matrix x",
                    error_code="C001_MISSING_INPUT",
                    parameter="x",
                    suggestion="Use a ClusterFunction that accepts a dissimilarity.",
                )
            if diss is not None:
                warn(
                    f"diss is ignored: ClusterFunction '{main_fn.name}' only takes x",
                    self.logger,
                )
            return INPUT_X
        # Only diss accepted and only x given: computed from x later
        return INPUT_X

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(
        self,
        x: Any = None,
        diss: Any = None,
        trans_fun: Optional[Callable[[np.ndarray], np.ndarray]] = None,
    ) -> ClusterSingleResult:
        """Validate, reduce, and cluster.

        Parameters
        ----------
        x : array-like or pd.DataFrame, optional
            Feature matrix (samples x features)
        diss : array-like or pd.DataFrame, optional
            Dissimilarity matrix (samples x samples)
        trans_fun : Callable, optional
            Transformation applied to x before reduction

        Returns
        -------
        ClusterSingleResult
            Labels and provenance
        """
        config = self.config
        sample_names = None
        if isinstance(x, pd.DataFrame):
            sample_names = x.index
        elif isinstance(diss, pd.DataFrame):
            sample_names = diss.index

        x = np.asarray(x, dtype=float) if x is not None else None
        diss = np.asarray(diss, dtype=float) if diss is not None else None

        input_type = self.validate(x, diss)
        n_samples = x.shape[0] if x is not None else diss.shape[0]
        if not config.subsample and input_type == INPUT_X and config.main.function.accepts_x:
            diss = None

        self.logger.info(
            "Clustering %d samples (input=%s, subsample=%s, sequential=%s, function=%s)",
            n_samples, input_type, config.subsample, config.sequential,
            config.main.function.name,
        )
        start_time = time.time()

        reduced = None
        if x is not None and input_type == INPUT_X:
            n_dims_given = config.n_dims is not None and not (
                isinstance(config.n_dims, float) and np.isnan(config.n_dims)
            )
            if config.reduce_method == "none" and n_dims_given:
                warn("n_dims is ignored with reduce_method='none'", self.logger)
            reduced = self.reducer(
                x,
                method=config.reduce_method,
                n_dims=config.n_dims if config.reduce_method != "none" else None,
                trans_fun=trans_fun,
                is_count=config.is_count,
            )
            x = reduced.matrix
            if reduced.method != "none":
                self.logger.info("Reduced x with %s to %s dimensions", reduced.method, reduced.n_dims)

        seq_result = None
        co_clustering = None
        if config.sequential:
            seq_result = self.sequential_fn(
                x, diss,
                subsample=config.subsample,
                main=config.main,
                subsample_params=config.subsample_params,
                seq_params=config.seq_params,
                subsample_fn=self.subsample_fn,
                logger=self.logger,
            )
            labels = check_label_vector(seq_result.labels, n_samples)
            used_diss = None
        else:
            wrapper = MainClusteringWrapper(config.main, subsample_fn=self.subsample_fn, logger=self.logger)
            wrapped = wrapper.apply(
                x, diss,
                subsample=config.subsample,
                subsample_params=config.subsample_params,
            )
            labels = wrapped.labels
            used_diss = wrapped.diss
            if config.subsample:
                co_clustering = similarity_to_dissimilarity(wrapped.diss)

        n_dims = reduced.n_dims if reduced is not None else None

        cluster_info = {
            "cluster_info": seq_result.cluster_info if seq_result is not None else None,
            "why_stop": seq_result.why_stop if seq_result is not None else None,
            "subsample": config.subsample,
            "sequential": config.sequential,
            "main": config.main.to_dict(),
            "subsample_params": config.subsample_params.to_dict(),
            "seq_params": config.seq_params.to_dict() if config.seq_params else None,
            "reduce_method": config.reduce_method,
            "n_dims": n_dims,
            "input_type": input_type,
            "n_samples": int(n_samples),
            "cluster_label": config.cluster_label,
        }

        result = ClusterSingleResult(
            labels=labels,
            cluster_info=cluster_info,
            co_clustering=co_clustering,
            diss=used_diss,
            x=x,
            reduced=reduced,
            sample_names=sample_names,
        )
        self.logger.info(
            "Found %d clusters (%d unassigned) in %.2f seconds",
            result.n_clusters, int(np.sum(labels == -1)), time.time() - start_time,
        )
        return result


def cluster_single(
    x: Any = None,
    diss: Any = None,
    config: Optional[ClusterSingleConfig] = None,
    *,
    trans_fun: Optional[Callable[[np.ndarray], np.ndarray]] = None,
    subsample_fn: Optional[SubsampleFn] = None,
    sequential_fn: Optional[SequentialFn] = None,
    reducer: Optional[Reducer] = None,
    logger: Optional[logging.Logger] = None,
) -> ClusterSingleResult:
    """Run one clustering configuration on x and/or diss.

    Convenience wrapper around ``ClusterSingleEngine(config).run``.
    """
    engine = ClusterSingleEngine(
        config,
        subsample_fn=subsample_fn,
        sequential_fn=sequential_fn,
        reducer=reducer,
        logger=logger,
    )
    return engine.run(x=x, diss=diss, trans_fun=trans_fun)

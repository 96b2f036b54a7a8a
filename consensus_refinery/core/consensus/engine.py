"""
Consensus of several clusterings of the same samples.

Two branches, chosen by ``proportion``:
1. proportion == 1: samples are grouped when they carry exactly the same
   label in every clustering
2. proportion < 1: samples are clustered on ``1 - co-occurrence`` with a
   ZeroOne ClusterFunction at ``alpha = 1 - proportion``

Both branches finish with the unassigned correction: a sample unassigned
(-1) in more than ``prop_unassigned`` of the clusterings is unassigned in
the consensus.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ...utils.cooccurrence import co_occurrence
from ...utils.labels import UNASSIGNED, cluster_sizes
from ...utils.matrix import similarity_to_dissimilarity
from ..clustering.config import MainClusterParams
from ..clustering.wrapper import MainClusteringWrapper
from ..functions import AlgorithmType, Hierarchical01Function, get_cluster_function
from ..validation import ConfigurationError, check_range, suggest_names
from .config import ConsensusConfig


@dataclass
class ConsensusResult:
    """Result from ``make_consensus``.

    Attributes
    ----------
    clustering : np.ndarray
        Consensus labels after the unassigned correction
    percentage_shared : np.ndarray, optional
        Co-occurrence matrix (None for proportion == 1)
    no_unassigned_correction : np.ndarray
        Consensus labels before the unassigned correction
    sample_names : pd.Index, optional
        Row labels of a DataFrame input
    """

    clustering: np.ndarray
    percentage_shared: Optional[np.ndarray]
    no_unassigned_correction: np.ndarray
    sample_names: Optional[pd.Index] = None

    @property
    def n_clusters(self) -> int:
        return len(cluster_sizes(self.clustering))

    def to_frame(self) -> pd.DataFrame:
        """Both label vectors as a DataFrame indexed by sample."""
        return pd.DataFrame(
            {
                "clustering": self.clustering,
                "no_unassigned_correction": self.no_unassigned_correction,
            },
            index=self.sample_names,
        )

    def shared_frame(self) -> Optional[pd.DataFrame]:
        """percentage_shared as a labelled DataFrame (None if absent)."""
        if self.percentage_shared is None:
            return None
        return pd.DataFrame(
            self.percentage_shared, index=self.sample_names, columns=self.sample_names
        )


class ConsensusBuilder:
    """Build a consensus clustering from a samples x clusterings matrix.

    Parameters
    ----------
    config : ConsensusConfig, optional
        Consensus parameters. If None, uses defaults.
    logger : logging.Logger, optional
        Logger instance. If None, uses the module logger.

    Example
    -------
    >>> builder = ConsensusBuilder(ConsensusConfig(proportion=0.7, min_size=3))
    >>> result = builder.build(batch.labels)
    >>> result.clustering
    """

    def __init__(
        self,
        config: Optional[ConsensusConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or ConsensusConfig.default()
        self.logger = logger or logging.getLogger(__name__)

    def validate(self) -> int:
        """Check scalar parameters; returns min_size rounded to int."""
        config = self.config
        check_range(config.proportion, "proportion", 0, 1)
        check_range(config.prop_unassigned, "prop_unassigned", 0, 1)
        min_size = check_range(config.min_size, "min_size", 0)
        if config.proportion < 1:
            fn = get_cluster_function(config.cluster_function)
            if fn.algorithm_type is not AlgorithmType.ZERO_ONE:
                raise ConfigurationError(
                    "Consensus with proportion < 1 is only implemented for ZeroOne "
                    "ClusterFunctions",
                    error_code="C008_WRONG_ALGORITHM_TYPE",
                    parameter="cluster_function",
                    expected=AlgorithmType.ZERO_ONE.value,
                    found=fn.algorithm_type.value,
                    suggestion="Use 'hierarchical01'.",
                )
            if "alpha" in config.cluster_args:
                raise ConfigurationError(
                    "alpha is set from proportion and cannot be given in cluster_args",
                    error_code="C005_FORBIDDEN_PARAM",
                    parameter="cluster_args.alpha",
                    found=config.cluster_args["alpha"],
                    suggestion="Set proportion instead; alpha = 1 - proportion.",
                )
        return int(round(min_size))

    @staticmethod
    def prepare_matrix(
        cluster_matrix: Any,
        which_clusters: Optional[Sequence[Union[int, str]]] = None,
    ) -> pd.DataFrame:
        """Check the clusterings matrix and return it as an int DataFrame.

        Parameters
        ----------
        cluster_matrix : array-like or pd.DataFrame
            M samples x N clusterings of integer labels
        which_clusters : Sequence, optional
            Column names (or positions) to combine; all columns by default

        Raises
        ------
        ConfigurationError
            If the matrix is not 2-D with >= 1 column of integer labels
        """
        if isinstance(cluster_matrix, pd.DataFrame):
            frame = cluster_matrix
        else:
            array = np.asarray(cluster_matrix)
            if array.ndim != 2:
                raise ConfigurationError(
                    "cluster_matrix must be a 2-D samples x clusterings matrix",
                    error_code="C010_SHAPE_MISMATCH",
                    parameter="cluster_matrix",
                    found=f"shape {array.shape}",
                )
            frame = pd.DataFrame(array)

        if which_clusters is not None:
            which = list(which_clusters)
            missing = [c for c in which if c not in frame.columns]
            if missing and all(isinstance(c, (int, np.integer)) for c in which):
                frame = frame.iloc[:, which]
            elif missing:
                raise ConfigurationError(
                    "Unknown clusterings requested",
                    error_code="C007_UNKNOWN_METHOD",
                    parameter="which_clusters",
                    found=missing,
                    suggestion=suggest_names(str(missing[0]), [str(c) for c in frame.columns]),
                )
            else:
                frame = frame[which]

        if frame.shape[1] == 0 or frame.shape[0] == 0:
            raise ConfigurationError(
                "cluster_matrix needs at least one sample and one clustering",
                error_code="C010_SHAPE_MISMATCH",
                parameter="cluster_matrix",
                found=f"shape {frame.shape}",
            )

        try:
            values = frame.to_numpy(dtype=float)
        except (TypeError, ValueError):
            raise ConfigurationError(
                "cluster_matrix must contain integer cluster labels",
                error_code="C006_OUT_OF_RANGE",
                parameter="cluster_matrix",
            ) from None
        if not np.all(np.isfinite(values)) or not np.all(np.mod(values, 1) == 0):
            raise ConfigurationError(
                "cluster_matrix must contain integer cluster labels",
                error_code="C006_OUT_OF_RANGE",
                parameter="cluster_matrix",
                suggestion="Encode unassigned samples as -1 and missing ones as -2.",
            )
        return pd.DataFrame(values.astype(int), index=frame.index, columns=frame.columns)

    def build(
        self,
        cluster_matrix: Any,
        which_clusters: Optional[Sequence[Union[int, str]]] = None,
    ) -> ConsensusResult:
        """Combine the clusterings.

        Parameters
        ----------
        cluster_matrix : array-like or pd.DataFrame
            M samples x N clusterings, -1 unassigned, -2 missing
        which_clusters : Sequence, optional
            Subset of columns to combine

        Returns
        -------
        ConsensusResult
            Consensus labels, co-occurrence, and the uncorrected labels
        """
        config = self.config
        min_size = self.validate()
        frame = self.prepare_matrix(cluster_matrix, which_clusters)
        sample_names = frame.index if isinstance(cluster_matrix, pd.DataFrame) else None
        n_samples, n_clusterings = frame.shape

        self.logger.info(
            "Building consensus of %d clusterings over %d samples (proportion=%.2f)",
            n_clusterings, n_samples, config.proportion,
        )

        if config.proportion == 1:
            labels = self._exact_agreement(frame.to_numpy(), min_size)
            shared = None
        else:
            shared = co_occurrence(frame)
            labels = self._cluster_shared(shared, min_size)

        corrected = self.correct_unassigned(frame.to_numpy(), labels)
        self.logger.info(
            "Consensus has %d clusters (%d unassigned)",
            len(cluster_sizes(corrected)), int(np.sum(corrected == UNASSIGNED)),
        )
        return ConsensusResult(
            clustering=corrected,
            percentage_shared=shared,
            no_unassigned_correction=labels,
            sample_names=sample_names,
        )

    @staticmethod
    def _exact_agreement(values: np.ndarray, min_size: int) -> np.ndarray:
        """Group samples with identical label tuples.

        Kept groups (size >= min_size and not all -1) are numbered 1..k in
        lexicographic tuple order; the rest are -1.
        """
        tuples, inverse, counts = np.unique(values, axis=0, return_inverse=True, return_counts=True)
        inverse = np.asarray(inverse).ravel()
        keep = (counts >= min_size) & ~np.all(tuples == UNASSIGNED, axis=1)
        ids = np.full(len(tuples), UNASSIGNED, dtype=int)
        ids[keep] = np.arange(1, int(keep.sum()) + 1)
        return ids[inverse]

    def _cluster_shared(self, shared: np.ndarray, min_size: int) -> np.ndarray:
        config = self.config
        fn = get_cluster_function(config.cluster_function)
        cluster_args: Dict[str, Any] = {"alpha": 1 - config.proportion, **config.cluster_args}
        if isinstance(fn, Hierarchical01Function):
            cluster_args.setdefault("eval_cluster_method", "average")

        main = MainClusterParams(cluster_function=fn, cluster_args=cluster_args, min_size=min_size)
        wrapper = MainClusteringWrapper(main, logger=self.logger)
        return wrapper.apply(diss=similarity_to_dissimilarity(shared)).labels

    def correct_unassigned(self, values: np.ndarray, labels: np.ndarray) -> np.ndarray:
        """Unassign samples that are -1 in more than prop_unassigned of the columns.

        The input labels are copied, never modified.
        """
        fraction = np.mean(values == UNASSIGNED, axis=1)
        corrected = np.asarray(labels, dtype=int).copy()
        mask = fraction > self.config.prop_unassigned
        corrected[mask] = UNASSIGNED
        if mask.any():
            self.logger.debug("Unassigned correction removed %d samples", int(mask.sum()))
        return corrected


def make_consensus(
    cluster_matrix: Any,
    proportion: float,
    *,
    cluster_function: Any = "hierarchical01",
    min_size: int = 5,
    prop_unassigned: float = 0.5,
    which_clusters: Optional[Sequence[Union[int, str]]] = None,
    logger: Optional[logging.Logger] = None,
    **cluster_args: Any,
) -> ConsensusResult:
    """Build a consensus clustering.

    Parameters
    ----------
    cluster_matrix : array-like or pd.DataFrame
        M samples x N clusterings, -1 unassigned, -2 missing
    proportion : float
        Fraction of clusterings two samples must share; 1 = exact agreement
    cluster_function : str or ClusterFunction
        ZeroOne function used when proportion < 1
    min_size : int
        Consensus clusters smaller than this become -1
    prop_unassigned : float
        Maximum tolerated fraction of -1 per sample
    which_clusters : Sequence, optional
        Subset of columns to combine
    logger : logging.Logger, optional
        Logger instance
    **cluster_args
        Extra arguments for the ClusterFunction

    Returns
    -------
    ConsensusResult
        Consensus labels and co-occurrence
    """
    config = ConsensusConfig(
        proportion=proportion,
        cluster_function=cluster_function,
        min_size=min_size,
        prop_unassigned=prop_unassigned,
        cluster_args=cluster_args,
    )
    return ConsensusBuilder(config, logger=logger).build(cluster_matrix, which_clusters)

"""Run several clustering configurations on the same data.

The label vectors are collected into a samples x clusterings matrix, the
input ``make_consensus`` expects.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..validation import ConfigurationError
from .config import ClusterSingleConfig
from .engine import ClusterSingleResult, cluster_single


@dataclass
class BatchResult:
    """Result from ``run_many``.

    Attributes
    ----------
    labels : pd.DataFrame
        M samples x N clusterings, one column per configuration
    results : List[ClusterSingleResult]
        Per-configuration results in input order
    """

    labels: pd.DataFrame
    results: List[ClusterSingleResult] = field(default_factory=list)

    @property
    def cluster_info(self) -> Dict[str, Dict[str, Any]]:
        return {col: res.cluster_info for col, res in zip(self.labels.columns, self.results)}


def unique_labels(names: Sequence[str]) -> List[str]:
    """Make column names unique by suffixing repeats with .1, .2, ..."""
    seen: Dict[str, int] = {}
    out = []
    for name in names:
        if name in seen:
            seen[name] += 1
            out.append(f"{name}.{seen[name]}")
        else:
            seen[name] = 0
            out.append(name)
    return out


def _run_one(x, diss, config: ClusterSingleConfig) -> ClusterSingleResult:
    return cluster_single(x=x, diss=diss, config=config)


def run_many(
    x: Any = None,
    diss: Any = None,
    configs: Sequence[ClusterSingleConfig] = (),
    n_workers: int = 1,
    logger: Optional[logging.Logger] = None,
) -> BatchResult:
    """Run each configuration with ``cluster_single``.

    Parameters
    ----------
    x : array-like or pd.DataFrame, optional
        Feature matrix (samples x features)
    diss : array-like or pd.DataFrame, optional
        Dissimilarity matrix
    configs : Sequence[ClusterSingleConfig]
        Configurations to run; columns are named by ``cluster_label``
    n_workers : int
        Parallel workers (1 = sequential)
    logger : logging.Logger, optional
        Logger instance. If None, uses the module logger.

    Returns
    -------
    BatchResult
        Label matrix and per-configuration results
    """
    logger = logger or logging.getLogger(__name__)
    configs = list(configs)
    if not configs:
        raise ConfigurationError(
            "run_many needs at least one configuration",
            error_code="C001_MISSING_INPUT",
            parameter="configs",
        )

    logger.info("Running %d clusterings (%d workers)", len(configs), n_workers)
    start_time = time.time()

    if n_workers == 1:
        results = [_run_one(x, diss, c) for c in configs]
    else:
        from joblib import Parallel, delayed

        results = Parallel(n_jobs=n_workers, backend="loky")(
            delayed(_run_one)(x, diss, c) for c in configs
        )

    columns = unique_labels([c.cluster_label for c in configs])
    index = results[0].sample_names
    labels = pd.DataFrame(
        np.column_stack([r.labels for r in results]),
        index=index,
        columns=columns,
    )
    logger.info("Completed %d clusterings in %.2f seconds", len(results), time.time() - start_time)
    return BatchResult(labels=labels, results=results)

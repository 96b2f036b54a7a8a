"""Single-run clustering: validation, subsampling, sequential search.

Example Usage
-------------
>>> from consensus_refinery.core.clustering import (
...     ClusterSingleConfig, MainClusterParams, cluster_single,
... )
>>> config = ClusterSingleConfig(main=MainClusterParams("kmeans", {"k": 3}))
>>> result = cluster_single(x=x, config=config)
>>> result.labels
"""

from .batch import BatchResult, run_many
from .config import (
    CLASSIFY_METHODS,
    ClusterSingleConfig,
    MainClusterParams,
    SeqParams,
    SubsampleParams,
)
from .engine import ClusterSingleEngine, ClusterSingleResult, cluster_single
from .sequential import SequentialClusterer, SequentialResult, seq_cluster
from .subsample import SubsampleCoClusterer, subsample_clustering
from .wrapper import MainClusteringWrapper, WrapperResult

__all__ = [
    # Configuration
    "CLASSIFY_METHODS",
    "ClusterSingleConfig",
    "MainClusterParams",
    "SeqParams",
    "SubsampleParams",
    # Orchestration
    "ClusterSingleEngine",
    "ClusterSingleResult",
    "cluster_single",
    "BatchResult",
    "run_many",
    # Collaborators
    "MainClusteringWrapper",
    "WrapperResult",
    "SequentialClusterer",
    "SequentialResult",
    "seq_cluster",
    "SubsampleCoClusterer",
    "subsample_clustering",
]

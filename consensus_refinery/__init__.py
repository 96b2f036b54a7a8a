"""Consensus-Refinery: clustering orchestration and consensus building.

This package provides tools for:
- Running a single clustering with optional subsampling, sequential
  search, and dimensionality reduction (``cluster_single``)
- Combining many clusterings of the same samples into one robust
  partition (``make_consensus``)
- Plugging in base clustering algorithms through a capability interface
  (``ClusterFunction`` with ``algorithm_type`` K or ZeroOne)

Example usage:
    >>> from consensus_refinery.core.clustering import ClusterSingleConfig, cluster_single
    >>> from consensus_refinery.core.consensus import make_consensus
    >>>
    >>> # Cluster once
    >>> result = cluster_single(x, config=ClusterSingleConfig.from_yaml("cluster.yaml"))
    >>>
    >>> # Combine several clusterings (samples x clusterings)
    >>> consensus = make_consensus(cluster_matrix, proportion=0.7, min_size=10)
    >>> consensus.clustering
"""

__version__ = "0.1.0"

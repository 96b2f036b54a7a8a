"""Consensus of several clusterings.

Example Usage
-------------
>>> from consensus_refinery.core.consensus import make_consensus
>>> result = make_consensus(cluster_matrix, proportion=0.7, min_size=3)
>>> result.clustering
>>> result.percentage_shared
"""

from ...utils.cooccurrence import co_occurrence
from .config import ConsensusConfig
from .engine import ConsensusBuilder, ConsensusResult, make_consensus

__all__ = [
    "ConsensusBuilder",
    "ConsensusConfig",
    "ConsensusResult",
    "co_occurrence",
    "make_consensus",
]

"""ClusterFunction capability interface and built-in adapters.

Example Usage
-------------
>>> from consensus_refinery.core.functions import (
...     AlgorithmType, get_cluster_function,
... )
>>> fn = get_cluster_function("hierarchical01")
>>> fn.algorithm_type is AlgorithmType.ZERO_ONE
True
>>> groups = fn.apply(diss=diss, alpha=0.2)
"""

from .base import (
    AlgorithmType,
    CallableClusterFunction,
    ClusterFunction,
    InputType,
)
from .builtin import (
    BUILTIN_FUNCTIONS,
    HierarchicalKFunction,
    Hierarchical01Function,
    KMeansFunction,
    get_cluster_function,
    list_builtin_functions,
)

__all__ = [
    # Interface
    "AlgorithmType",
    "CallableClusterFunction",
    "ClusterFunction",
    "InputType",
    # Built-ins
    "BUILTIN_FUNCTIONS",
    "HierarchicalKFunction",
    "Hierarchical01Function",
    "KMeansFunction",
    "get_cluster_function",
    "list_builtin_functions",
]

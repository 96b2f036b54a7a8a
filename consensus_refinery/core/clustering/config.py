"""Configuration classes for the clustering module.

All parameters are immutable once constructed; a run validates them once
and reads them throughout.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

import yaml

from ..functions import ClusterFunction, get_cluster_function

FunctionLike = Union[str, ClusterFunction]

CLASSIFY_METHODS = ("All", "InSample", "OutOfSample")


def _function_name(function: FunctionLike) -> str:
    return function if isinstance(function, str) else function.name


def _dist_name(dist_function: Any) -> Optional[str]:
    if dist_function is None or isinstance(dist_function, str):
        return dist_function
    return getattr(dist_function, "__name__", repr(dist_function))


@dataclass(frozen=True)
class MainClusterParams:
    """Configuration for the main clustering step.

    Attributes
    ----------
    cluster_function : str or ClusterFunction
        Built-in name or ClusterFunction instance
    cluster_args : Dict[str, Any]
        Arguments for the ClusterFunction (``k`` for K, ``alpha`` for ZeroOne)
    min_size : int
        Clusters smaller than this become unassigned (-1)
    find_best_k : bool
        Search k over ``k_range`` by mean silhouette width (K only)
    k_range : Tuple[int, ...], optional
        Values of k searched when find_best_k is set
    remove_sil : bool
        Unassign samples with silhouette width below ``sil_cutoff`` (K only)
    sil_cutoff : float
        Silhouette cutoff for remove_sil
    dist_function : str or Callable, optional
        Distance used when the function needs a dissimilarity and only a
        feature matrix is available
    """

    cluster_function: FunctionLike = "hierarchical01"
    cluster_args: Dict[str, Any] = field(default_factory=lambda: {"alpha": 0.1})
    min_size: int = 1
    find_best_k: bool = False
    k_range: Optional[Tuple[int, ...]] = None
    remove_sil: bool = False
    sil_cutoff: float = 0.0
    dist_function: Optional[Union[str, Callable[..., Any]]] = None

    def __post_init__(self):
        object.__setattr__(self, "cluster_args", dict(self.cluster_args or {}))
        if self.k_range is not None:
            object.__setattr__(self, "k_range", tuple(int(k) for k in self.k_range))

    @property
    def function(self) -> ClusterFunction:
        """Resolved ClusterFunction."""
        return get_cluster_function(self.cluster_function)

    def with_cluster_args(self, **cluster_args: Any) -> "MainClusterParams":
        """Copy with cluster_args updated."""
        return replace(self, cluster_args={**self.cluster_args, **cluster_args})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "cluster_function": _function_name(self.cluster_function),
            "cluster_args": dict(self.cluster_args),
            "min_size": self.min_size,
            "find_best_k": self.find_best_k,
            "k_range": list(self.k_range) if self.k_range is not None else None,
            "remove_sil": self.remove_sil,
            "sil_cutoff": self.sil_cutoff,
            "dist_function": _dist_name(self.dist_function),
        }


@dataclass(frozen=True)
class SubsampleParams:
    """Configuration for subsampling co-clustering.

    Attributes
    ----------
    cluster_function : str or ClusterFunction
        K-type function applied to each subsample
    cluster_args : Dict[str, Any]
        Arguments for the ClusterFunction (``k`` is required unless the
        sequential search supplies it)
    classify_method : str
        "All" (classify every sample), "InSample" (only the subsample), or
        "OutOfSample" (only samples left out of the draw)
    resamp_num : int
        Number of subsamples drawn
    samp_p : float
        Fraction of samples in each subsample
    n_workers : int
        Parallel workers for the draws (1 = sequential)
    random_seed : int
        Seed for reproducible draws
    """

    cluster_function: FunctionLike = "kmeans"
    cluster_args: Dict[str, Any] = field(default_factory=dict)
    classify_method: str = "All"
    resamp_num: int = 100
    samp_p: float = 0.7
    n_workers: int = 1
    random_seed: int = 1337

    def __post_init__(self):
        object.__setattr__(self, "cluster_args", dict(self.cluster_args or {}))

    @property
    def function(self) -> ClusterFunction:
        """Resolved ClusterFunction."""
        return get_cluster_function(self.cluster_function)

    def with_cluster_args(self, **cluster_args: Any) -> "SubsampleParams":
        """Copy with cluster_args updated."""
        return replace(self, cluster_args={**self.cluster_args, **cluster_args})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "cluster_function": _function_name(self.cluster_function),
            "cluster_args": dict(self.cluster_args),
            "classify_method": self.classify_method,
            "resamp_num": self.resamp_num,
            "samp_p": self.samp_p,
            "n_workers": self.n_workers,
            "random_seed": self.random_seed,
        }


@dataclass(frozen=True)
class SeqParams:
    """Configuration for the sequential search.

    ``k0`` and ``beta`` have no safe default and must be given.

    Attributes
    ----------
    k0 : int
        Starting number of clusters
    beta : float
        Overlap (Jaccard) needed between consecutive k to accept a cluster
    top_can : int
        Number of largest clusters compared between consecutive k
    remain_n : int
        Stop when fewer samples remain
    k_min : int
        Stop when k0 falls below this after removing clusters
    k_max : int, optional
        Stop when k exceeds this (default k0 + 10)
    """

    k0: Optional[int] = None
    beta: Optional[float] = None
    top_can: int = 5
    remain_n: int = 30
    k_min: int = 3
    k_max: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "k0": self.k0,
            "beta": self.beta,
            "top_can": self.top_can,
            "remain_n": self.remain_n,
            "k_min": self.k_min,
            "k_max": self.k_max,
        }


@dataclass(frozen=True)
class ClusterSingleConfig:
    """Master configuration for a single clustering run.

    Attributes
    ----------
    subsample : bool
        Cluster the co-occurrence of subsampled clusterings
    sequential : bool
        Use the sequential search over k
    reduce_method : str
        "none", "PCA", or a filter statistic
    n_dims : float, optional
        Dimensions kept by the reduction (None = method default)
    is_count : bool
        Transform with log2(x + 1) before reduction
    check_diss : bool
        Structurally check a supplied dissimilarity
    cluster_label : str
        Label recorded in provenance
    main : MainClusterParams
        Main clustering step configuration
    subsample_params : SubsampleParams
        Subsampling configuration
    seq_params : SeqParams, optional
        Sequential search configuration (required if sequential)
    """

    subsample: bool = False
    sequential: bool = False
    reduce_method: str = "none"
    n_dims: Optional[float] = None
    is_count: bool = False
    check_diss: bool = True
    cluster_label: str = "clusterSingle"
    main: MainClusterParams = field(default_factory=MainClusterParams)
    subsample_params: SubsampleParams = field(default_factory=SubsampleParams)
    seq_params: Optional[SeqParams] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClusterSingleConfig":
        """Build configuration from a (YAML-style) dictionary."""
        data = dict(data or {})
        seq = data.get("seq_params")
        return cls(
            subsample=bool(data.get("subsample", False)),
            sequential=bool(data.get("sequential", False)),
            reduce_method=data.get("reduce_method", "none"),
            n_dims=data.get("n_dims"),
            is_count=bool(data.get("is_count", False)),
            check_diss=bool(data.get("check_diss", True)),
            cluster_label=data.get("cluster_label", "clusterSingle"),
            main=MainClusterParams(**data.get("main", {})),
            subsample_params=SubsampleParams(**data.get("subsample_params", {})),
            seq_params=SeqParams(**seq) if seq is not None else None,
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "ClusterSingleConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        # Handle nested cluster_single section
        if "cluster_single" in data:
            data = data["cluster_single"]

        return cls.from_dict(data)

    @classmethod
    def default(cls) -> "ClusterSingleConfig":
        """Create default configuration."""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "subsample": self.subsample,
            "sequential": self.sequential,
            "reduce_method": self.reduce_method,
            "n_dims": self.n_dims,
            "is_count": self.is_count,
            "check_diss": self.check_diss,
            "cluster_label": self.cluster_label,
            "main": self.main.to_dict(),
            "subsample_params": self.subsample_params.to_dict(),
            "seq_params": self.seq_params.to_dict() if self.seq_params else None,
        }

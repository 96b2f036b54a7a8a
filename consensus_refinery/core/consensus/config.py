"""Configuration for consensus building."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from ..functions import ClusterFunction

FunctionLike = Union[str, ClusterFunction]


@dataclass(frozen=True)
class ConsensusConfig:
    """Parameters of ``make_consensus``.

    Attributes
    ----------
    proportion : float
        Fraction of clusterings two samples must share a cluster in
        (1 = identical label in every clustering)
    cluster_function : str or ClusterFunction
        ZeroOne function used when proportion < 1
    min_size : int
        Consensus clusters smaller than this become unassigned
    prop_unassigned : float
        Samples unassigned in more than this fraction of clusterings are
        unassigned in the consensus
    cluster_args : Dict[str, Any]
        Extra arguments for the ClusterFunction
    """

    proportion: float = 0.7
    cluster_function: FunctionLike = "hierarchical01"
    min_size: int = 5
    prop_unassigned: float = 0.5
    cluster_args: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "cluster_args", dict(self.cluster_args or {}))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConsensusConfig":
        """Build configuration from a (YAML-style) dictionary."""
        data = dict(data or {})
        return cls(
            proportion=data.get("proportion", 0.7),
            cluster_function=data.get("cluster_function", "hierarchical01"),
            min_size=data.get("min_size", 5),
            prop_unassigned=data.get("prop_unassigned", 0.5),
            cluster_args=data.get("cluster_args", {}),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "ConsensusConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        # Handle nested consensus section
        if "consensus" in data:
            data = data["consensus"]

        return cls.from_dict(data)

    @classmethod
    def default(cls) -> "ConsensusConfig":
        """Create default configuration."""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "proportion": self.proportion,
            "cluster_function": (
                self.cluster_function if isinstance(self.cluster_function, str)
                else self.cluster_function.name
            ),
            "min_size": self.min_size,
            "prop_unassigned": self.prop_unassigned,
            "cluster_args": dict(self.cluster_args),
        }

"""ClusterFunction capability interface.

A ClusterFunction declares, statically, what kind of clustering it performs
(``algorithm_type``) and what input it consumes (``input_type``), so that
pipeline legality can be checked before any data is touched.

- AlgorithmType.K: needs a target ``k`` and assigns every sample to one of
  ``k`` clusters.
- AlgorithmType.ZERO_ONE: works on a dissimilarity with a threshold
  ``alpha`` in [0, 1] and may leave samples unassigned (-1).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import numpy as np

from ..validation import ConfigurationError


class AlgorithmType(str, Enum):
    """Capability tag of a ClusterFunction."""

    K = "K"
    ZERO_ONE = "01"

    @classmethod
    def parse(cls, value: Any) -> "AlgorithmType":
        """Parse 'K', '01' or 'ZeroOne' (case-insensitive)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text == "k":
            return cls.K
        if text in ("01", "zeroone", "zero_one"):
            return cls.ZERO_ONE
        raise ConfigurationError(
            "Unknown algorithm type",
            error_code="C007_UNKNOWN_METHOD",
            parameter="algorithm_type",
            expected="'K' or '01'",
            found=value,
        )


class InputType(str, Enum):
    """Input a ClusterFunction can consume."""

    X = "X"
    DISS = "diss"
    EITHER = "either"


class ClusterFunction(ABC):
    """Base class for pluggable clustering algorithms.

    Subclasses set the class attributes and implement ``apply``. Instances
    are immutable and safe to share across concurrent runs.

    Attributes
    ----------
    name : str
        Registry name
    algorithm_type : AlgorithmType
        K or ZeroOne
    input_type : InputType
        X, diss, or either
    required_args : Tuple[str, ...]
        Cluster arguments that must be supplied
    output_type : str
        "vector" (flat labels) or "list" (index groups)
    """

    name: str = "custom"
    algorithm_type: AlgorithmType = AlgorithmType.K
    input_type: InputType = InputType.X
    required_args: Tuple[str, ...] = ()
    output_type: str = "vector"

    @property
    def accepts_x(self) -> bool:
        return self.input_type in (InputType.X, InputType.EITHER)

    @property
    def accepts_diss(self) -> bool:
        return self.input_type in (InputType.DISS, InputType.EITHER)

    def check_args(
        self,
        cluster_args: Mapping[str, Any],
        supplied: Tuple[str, ...] = (),
        parameter: str = "cluster_args",
    ) -> None:
        """Check that required arguments are present.

        Parameters
        ----------
        cluster_args : Mapping[str, Any]
            Arguments the caller will pass to ``apply``
        supplied : Tuple[str, ...]
            Arguments the pipeline fills in itself (e.g. ``k`` in a
            sequential search)
        parameter : str
            Name used in the error message

        Raises
        ------
        ConfigurationError
            If a required argument is missing
        """
        missing = [
            arg for arg in self.required_args
            if arg not in cluster_args and arg not in supplied
        ]
        if missing:
            raise ConfigurationError(
                f"ClusterFunction '{self.name}' requires argument(s): {', '.join(missing)}",
                error_code="C009_MISSING_CLUSTER_ARG",
                parameter=parameter,
                expected=list(self.required_args),
                found=sorted(cluster_args),
            )
        if "alpha" in cluster_args and self.algorithm_type is AlgorithmType.ZERO_ONE:
            alpha = cluster_args["alpha"]
            if not isinstance(alpha, (int, float)) or not 0 <= alpha <= 1:
                raise ConfigurationError(
                    "alpha must lie in [0, 1]",
                    error_code="C006_OUT_OF_RANGE",
                    parameter=f"{parameter}.alpha",
                    expected="[0, 1]",
                    found=alpha,
                )

    @abstractmethod
    def apply(
        self,
        x: Optional[np.ndarray] = None,
        diss: Optional[np.ndarray] = None,
        **cluster_args: Any,
    ) -> Any:
        """Cluster x (samples x features) or diss (samples x samples).

        Returns a label vector or a list of index groups.
        """

    def describe(self) -> Dict[str, Any]:
        """Describe the capability for provenance records."""
        return {
            "name": self.name,
            "algorithm_type": self.algorithm_type.value,
            "input_type": self.input_type.value,
            "required_args": list(self.required_args),
            "output_type": self.output_type,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, "
            f"algorithm_type={self.algorithm_type.value!r}, "
            f"input_type={self.input_type.value!r})"
        )


@dataclass(frozen=True, repr=False)
class CallableClusterFunction(ClusterFunction):
    """Wrap a plain callable as a ClusterFunction.

    Example
    -------
    >>> fn = CallableClusterFunction(
    ...     name="first_k",
    ...     func=lambda x=None, diss=None, k=2: np.arange(len(x)) % k,
    ...     algorithm_type=AlgorithmType.K,
    ...     input_type=InputType.X,
    ... )
    """

    name: str = "custom"
    func: Optional[Callable[..., Any]] = None
    algorithm_type: AlgorithmType = AlgorithmType.K
    input_type: InputType = InputType.X
    required_args: Tuple[str, ...] = field(default=())
    output_type: str = "vector"

    def __post_init__(self):
        if self.func is None or not callable(self.func):
            raise ConfigurationError(
                "CallableClusterFunction needs a callable 'func'",
                error_code="C007_UNKNOWN_METHOD",
                parameter="func",
            )
        object.__setattr__(self, "algorithm_type", AlgorithmType.parse(self.algorithm_type))
        object.__setattr__(self, "input_type", InputType(self.input_type))
        object.__setattr__(self, "required_args", tuple(self.required_args))

    def apply(self, x=None, diss=None, **cluster_args):
        return self.func(x=x, diss=diss, **cluster_args)

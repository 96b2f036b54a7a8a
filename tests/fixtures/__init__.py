"""Test fixtures for Consensus-Refinery.

Provides synthetic data generators and collaborator fakes.
"""

from .mock_data import (
    RecordingReducer,
    RecordingSequential,
    RecordingSubsample,
    block_dissimilarity,
    create_blobs,
    create_cluster_matrix,
    create_scenario_matrix,
    make_fixed_function,
)

__all__ = [
    "RecordingReducer",
    "RecordingSequential",
    "RecordingSubsample",
    "block_dissimilarity",
    "create_blobs",
    "create_cluster_matrix",
    "create_scenario_matrix",
    "make_fixed_function",
]

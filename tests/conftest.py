"""Pytest configuration and shared fixtures for Consensus-Refinery tests."""

import sys
from pathlib import Path

import pytest
import numpy as np
import pandas as pd

# Add package to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tests.fixtures import (
    block_dissimilarity,
    create_blobs,
    create_cluster_matrix,
    create_scenario_matrix,
)


# ============================================================================
# Data Fixtures
# ============================================================================


@pytest.fixture
def blobs():
    """Three well separated clusters of 20 samples, 10 features."""
    return create_blobs(n_per_cluster=20, n_clusters=3, n_features=10)


@pytest.fixture
def blobs_frame():
    """Blobs as a DataFrame with sample names."""
    return create_blobs(n_per_cluster=20, n_clusters=3, n_features=10, as_frame=True)


@pytest.fixture
def blob_diss(blobs) -> np.ndarray:
    """Euclidean dissimilarity of the blobs."""
    from consensus_refinery.utils import compute_dissimilarity

    x, _ = blobs
    return compute_dissimilarity(x)


@pytest.fixture
def small_diss() -> np.ndarray:
    """Two blocks of three samples: 0.1 within, 0.9 across."""
    return block_dissimilarity(np.array([1, 1, 1, 2, 2, 2]))


@pytest.fixture
def scenario_matrix() -> np.ndarray:
    """[[1, 1], [1, 2], [-1, -1]]."""
    return create_scenario_matrix()


@pytest.fixture
def noisy_clusterings(blobs) -> pd.DataFrame:
    """Six noisy clusterings of the blob partition."""
    _, truth = blobs
    return create_cluster_matrix(truth, n_clusterings=6)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def cluster_yaml(tmp_path) -> Path:
    """Cluster configuration file with a nested cluster_single section."""
    path = tmp_path / "cluster.yaml"
    path.write_text(
        """
cluster_single:
  cluster_label: kmeans_k3
  reduce_method: PCA
  n_dims: 5
  main:
    cluster_function: kmeans
    cluster_args:
      k: 3
"""
    )
    return path

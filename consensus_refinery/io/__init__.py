"""I/O utilities for Consensus-Refinery.

Provides logging, provenance records, and CSV I/O.
"""

from .logging import (
    get_logger,
    get_timestamped_log_path,
    log_json,
    to_serializable,
    write_yaml,
)
from .csv import (
    ensure_output_dir,
    load_cluster_matrix,
    load_dissimilarity,
    load_matrix,
    write_dataframe,
)

__all__ = [
    # Logging
    "get_logger",
    "get_timestamped_log_path",
    "log_json",
    "to_serializable",
    "write_yaml",
    # CSV I/O
    "ensure_output_dir",
    "load_cluster_matrix",
    "load_dissimilarity",
    "load_matrix",
    "write_dataframe",
]

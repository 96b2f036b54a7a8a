"""CSV I/O utilities for Consensus-Refinery.

Loads feature matrices, dissimilarity matrices and clusterings matrices.
All tables are samples in rows; the first column holds sample ids.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def ensure_output_dir(path: PathLike) -> Path:
    """Create the directory at path if it does not exist and return it."""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def _read_table(path: PathLike, kind: str, index_col: Optional[int] = 0) -> pd.DataFrame:
    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"{kind} not found: {csv_path}")
    df = pd.read_csv(csv_path, index_col=index_col)
    if df.empty:
        raise ValueError(f"{kind} {csv_path} is empty")
    df.index = df.index.astype(str)
    return df


def load_matrix(
    path: PathLike,
    index_col: Optional[int] = 0,
    drop_columns: Optional[List[str]] = None,
) -> pd.DataFrame:
    """Read a samples x features matrix.

    Parameters
    ----------
    path : PathLike
        Path to the CSV file
    index_col : int, optional
        Column holding sample ids (None for a plain numeric table)
    drop_columns : List[str], optional
        Non-feature columns to drop

    Returns
    -------
    pd.DataFrame
        Numeric matrix indexed by sample id

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    ValueError
        If the table is empty or has non-numeric feature columns
    """
    df = _read_table(path, "Feature matrix", index_col)
    if drop_columns:
        df = df.drop(columns=[c for c in drop_columns if c in df.columns])
    non_numeric = [c for c in df.columns if not pd.api.types.is_numeric_dtype(df[c])]
    if non_numeric:
        raise ValueError(f"Non-numeric columns in {path}: {non_numeric}")
    logger.info("Loaded matrix %s: %d x %d", path, df.shape[0], df.shape[1])
    return df


def load_dissimilarity(path: PathLike, index_col: Optional[int] = 0) -> pd.DataFrame:
    """Read a square samples x samples dissimilarity matrix."""
    df = load_matrix(path, index_col=index_col)
    if df.shape[0] != df.shape[1]:
        raise ValueError(f"Dissimilarity matrix {path} is not square: {df.shape}")
    return df


def load_cluster_matrix(
    path: PathLike,
    index_col: Optional[int] = 0,
    columns: Optional[List[str]] = None,
) -> pd.DataFrame:
    """Read a samples x clusterings label matrix.

    Empty cells are read as -2 (sample not clustered).

    Parameters
    ----------
    path : PathLike
        Path to the CSV file
    index_col : int, optional
        Column holding sample ids
    columns : List[str], optional
        Clusterings to keep (all by default)

    Returns
    -------
    pd.DataFrame
        Integer label matrix indexed by sample id
    """
    df = _read_table(path, "Cluster matrix", index_col)
    if columns:
        missing = [c for c in columns if c not in df.columns]
        if missing:
            raise ValueError(f"Cluster matrix {path} missing columns: {missing}")
        df = df[columns]
    values = df.apply(pd.to_numeric, errors="raise").fillna(-2)
    if not np.all(np.mod(values.to_numpy(dtype=float), 1) == 0):
        raise ValueError(f"Cluster matrix {path} contains non-integer labels")
    logger.info("Loaded %d clusterings of %d samples from %s", df.shape[1], df.shape[0], path)
    return values.astype(int)


def write_dataframe(df: pd.DataFrame, path: PathLike, *, index: bool = False) -> Path:
    """Write DataFrame to path ensuring the parent directory exists."""
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=index)
    return output_path

"""
Loading observation tables for eurocluster.
"""

import logging
import pandas as pd
from typing import List, Optional, Any

from eurocluster.math.named_matrix import NamedMatrix

logger = logging.getLogger(__name__)


def frame_to_named_matrix(df: pd.DataFrame,
                          label_column: Optional[Any] = None,
                          columns: Optional[List[Any]] = None) -> NamedMatrix:
    """
    Turn a DataFrame into a NamedMatrix.

    Args:
        df: Table with one row-label column and numeric feature columns
        label_column: Name of the label column (defaults to the first column)
        columns: Feature columns to keep (defaults to all other columns)

    Returns:
        NamedMatrix with row labels as row names

    Raises:
        ValueError: If a column is missing or a feature column is not numeric
    """
    if df.shape[1] == 0:
        raise ValueError("Table has no columns")

    if label_column is None:
        label_column = df.columns[0]
    if label_column not in df.columns:
        raise ValueError(f"Label column '{label_column}' not found")

    if columns is None:
        columns = [c for c in df.columns if c != label_column]
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"Column(s) not found: {missing}")

    features = df[list(columns)]
    non_numeric = [c for c in features.columns if not pd.api.types.is_numeric_dtype(features[c])]
    if non_numeric:
        raise ValueError(f"Non-numeric feature column(s): {non_numeric}")

    if features.isna().any().any():
        raise ValueError("Feature columns contain missing values")

    labels = df[label_column].astype(str).str.strip().tolist()
    return NamedMatrix(features.to_numpy(dtype=float), rownames=labels, colnames=list(columns))


def load_table(path: str,
               label_column: Optional[Any] = None,
               columns: Optional[List[Any]] = None,
               **read_csv_kwargs) -> NamedMatrix:
    """
    Read a delimited table into a NamedMatrix.

    Args:
        path: File path or URL accepted by ``pandas.read_csv``
        label_column: Name of the label column (defaults to the first column)
        columns: Feature columns to keep (defaults to all other columns)
        **read_csv_kwargs: Passed through to ``pandas.read_csv``

    Returns:
        NamedMatrix of the feature columns
    """
    logger.info(f"Loading table from {path}")
    df = pd.read_csv(path, **read_csv_kwargs)
    nmat = frame_to_named_matrix(df, label_column, columns)
    logger.info(f"Loaded {nmat.shape[0]} rows x {nmat.shape[1]} columns")
    return nmat

"""
Named Matrix implementation for eurocluster.

This module provides a data structure for a numeric observation matrix
with named rows (e.g. countries) and named columns (e.g. industries).
Row names are carried along as labels only; they never take part in
distance computations.
"""

import numpy as np
import pandas as pd
from typing import List, Optional, Union, Any


class NamedMatrix:
    """
    An immutable numeric matrix with named rows and columns.

    Uses a pandas DataFrame as the underlying storage. Every operation
    that changes the data returns a new NamedMatrix.
    """

    def __init__(self,
                 matrix: Optional[Union[np.ndarray, pd.DataFrame, List[List[float]]]] = None,
                 rownames: Optional[List[Any]] = None,
                 colnames: Optional[List[Any]] = None):
        """
        Initialize a NamedMatrix.

        Args:
            matrix: Matrix data (numpy array, nested lists or pandas DataFrame)
            rownames: List of row names
            colnames: List of column names
        """
        if matrix is None:
            rows = [] if rownames is None else list(rownames)
            cols = [] if colnames is None else list(colnames)
            df = pd.DataFrame(np.zeros((len(rows), len(cols))), index=rows, columns=cols)
        elif isinstance(matrix, pd.DataFrame):
            df = matrix.copy()
            if rownames is not None:
                df.index = list(rownames)
            if colnames is not None:
                df.columns = list(colnames)
        else:
            values = np.asarray(matrix, dtype=float)
            if values.ndim != 2:
                raise ValueError(f"Expected a 2-D matrix, got {values.ndim} dimension(s)")
            rows = list(rownames) if rownames is not None else list(range(values.shape[0]))
            cols = list(colnames) if colnames is not None else list(range(values.shape[1]))
            df = pd.DataFrame(values, index=rows, columns=cols)

        if df.index.has_duplicates:
            raise ValueError("Row names must be unique")
        if df.columns.has_duplicates:
            raise ValueError("Column names must be unique")

        self._matrix = df.astype(float)

    @property
    def matrix(self) -> pd.DataFrame:
        """Get a copy of the underlying DataFrame."""
        return self._matrix.copy()

    @property
    def values(self) -> np.ndarray:
        """Get the matrix as a (read-only copy of a) numpy array."""
        return self._matrix.to_numpy(dtype=float, copy=True)

    @property
    def shape(self):
        return self._matrix.shape

    def rownames(self) -> List[Any]:
        """Get the list of row names."""
        return list(self._matrix.index)

    def colnames(self) -> List[Any]:
        """Get the list of column names."""
        return list(self._matrix.columns)

    def with_values(self, values: np.ndarray) -> 'NamedMatrix':
        """
        Create a matrix with the same names and new values.

        Args:
            values: Array with the same shape as this matrix

        Returns:
            A new NamedMatrix
        """
        values = np.asarray(values, dtype=float)
        if values.shape != self.shape:
            raise ValueError(f"Shape mismatch: expected {self.shape}, got {values.shape}")
        return NamedMatrix(values, self.rownames(), self.colnames())

    def colname_subset(self, colnames: List[Any]) -> 'NamedMatrix':
        """
        Create a subset of the matrix with only the specified columns.

        Unknown column names are ignored.

        Args:
            colnames: List of column names to include

        Returns:
            A new NamedMatrix with only the specified columns
        """
        valid_cols = [col for col in colnames if col in self._matrix.columns]
        return NamedMatrix(self._matrix[valid_cols])

    def __len__(self) -> int:
        return self._matrix.shape[0]

    def __repr__(self) -> str:
        return f"NamedMatrix(rows={self.shape[0]}, cols={self.shape[1]})"

    def __str__(self) -> str:
        return (f"NamedMatrix with {self.shape[0]} rows and "
                f"{self.shape[1]} columns\n{self._matrix}")

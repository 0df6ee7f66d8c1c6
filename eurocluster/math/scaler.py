"""
Column standardization for eurocluster.

Each column is centered on its own mean and divided by its own
standard deviation, both computed from the matrix being transformed.
"""

import logging
import numpy as np
from typing import List, Optional, Union, Any

from eurocluster.math.errors import InvalidParameterError, ZeroVarianceError
from eurocluster.math.named_matrix import NamedMatrix

logger = logging.getLogger(__name__)

ON_CONSTANT_POLICIES = ('raise', 'drop')


def _as_array(data: Union[np.ndarray, NamedMatrix]) -> np.ndarray:
    if isinstance(data, NamedMatrix):
        values = data.values
    else:
        values = np.asarray(data, dtype=float)

    if values.ndim != 2:
        raise InvalidParameterError(f"Expected a 2-D matrix, got {values.ndim} dimension(s)")
    if not np.all(np.isfinite(values)):
        raise InvalidParameterError("Matrix contains NaN or infinite values")
    return values


class Scaler:
    """
    Standardizes columns to zero mean and unit standard deviation.

    Zero-variance columns are either rejected (``on_constant='raise'``)
    or removed from the output (``on_constant='drop'``); the names or
    indices of removed columns are kept in ``dropped_``.
    """

    def __init__(self, ddof: int = 1, on_constant: str = 'raise'):
        """
        Args:
            ddof: Delta degrees of freedom for the standard deviation
                (1 gives the sample standard deviation)
            on_constant: Zero-variance policy, 'raise' or 'drop'
        """
        if on_constant not in ON_CONSTANT_POLICIES:
            raise InvalidParameterError(
                f"on_constant must be one of {ON_CONSTANT_POLICIES}, got {on_constant!r}"
            )
        if ddof < 0:
            raise InvalidParameterError(f"ddof must be non-negative, got {ddof}")

        self.ddof = ddof
        self.on_constant = on_constant
        self.center_: Optional[np.ndarray] = None
        self.scale_: Optional[np.ndarray] = None
        self.kept_: Optional[np.ndarray] = None
        self.dropped_: List[Any] = []

    def fit(self, data: Union[np.ndarray, NamedMatrix]) -> 'Scaler':
        """
        Compute column means and standard deviations.

        Args:
            data: Observation matrix

        Returns:
            self
        """
        values = _as_array(data)
        n_rows = values.shape[0]
        if n_rows <= self.ddof:
            raise InvalidParameterError(
                f"Need more than {self.ddof} row(s) to standardize, got {n_rows}"
            )

        center = values.mean(axis=0)
        scale = values.std(axis=0, ddof=self.ddof)
        # Constant means every value in the column is identical
        constant = np.ptp(values, axis=0) == 0

        colnames = data.colnames() if isinstance(data, NamedMatrix) else list(range(values.shape[1]))
        constant_cols = [colnames[j] for j in np.flatnonzero(constant)]

        if constant_cols and self.on_constant == 'raise':
            raise ZeroVarianceError(constant_cols)

        if constant_cols:
            logger.warning(f"Dropping zero-variance column(s): {constant_cols}")

        self.center_ = center
        self.scale_ = scale
        self.kept_ = ~constant
        self.dropped_ = constant_cols
        return self

    def transform(self, data: Union[np.ndarray, NamedMatrix]) -> Union[np.ndarray, NamedMatrix]:
        """
        Standardize data with the fitted statistics.

        A NamedMatrix input gives a NamedMatrix output; arrays give arrays.
        Dropped columns are removed from the output.
        """
        if self.center_ is None:
            raise RuntimeError("Scaler has not been fitted")

        values = _as_array(data)
        if values.shape[1] != len(self.center_):
            raise InvalidParameterError(
                f"Expected {len(self.center_)} column(s), got {values.shape[1]}"
            )

        kept = self.kept_
        scaled = (values[:, kept] - self.center_[kept]) / self.scale_[kept]

        if isinstance(data, NamedMatrix):
            colnames = [c for c, keep in zip(data.colnames(), kept) if keep]
            return data.colname_subset(colnames).with_values(scaled)
        return scaled

    def fit_transform(self, data: Union[np.ndarray, NamedMatrix]) -> Union[np.ndarray, NamedMatrix]:
        return self.fit(data).transform(data)

    def inverse_transform(self, scaled: np.ndarray) -> np.ndarray:
        """
        Map standardized vectors (e.g. centroids) back to original units.

        Only the kept columns are returned.
        """
        if self.center_ is None:
            raise RuntimeError("Scaler has not been fitted")

        scaled = np.atleast_2d(np.asarray(scaled, dtype=float))
        kept = self.kept_
        return scaled * self.scale_[kept] + self.center_[kept]


def standardize(data: Union[np.ndarray, NamedMatrix],
                ddof: int = 1,
                on_constant: str = 'raise') -> Union[np.ndarray, NamedMatrix]:
    """
    Standardize every column of a matrix to mean 0 and standard deviation 1.

    Args:
        data: Observation matrix
        ddof: Delta degrees of freedom for the standard deviation
        on_constant: Zero-variance policy, 'raise' or 'drop'

    Returns:
        Standardized matrix of the same type as the input
    """
    return Scaler(ddof=ddof, on_constant=on_constant).fit_transform(data)

"""
Tests for the scaler module.
"""

import pytest
import numpy as np
import sys
import os

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from eurocluster.math.errors import InvalidParameterError, ZeroVarianceError
from eurocluster.math.named_matrix import NamedMatrix
from eurocluster.math.scaler import Scaler, standardize


@pytest.fixture
def employment():
    """A few rows of industry employment percentages."""
    return NamedMatrix(
        np.array([
            [3.3, 0.9, 27.6, 0.9, 8.2, 19.1, 6.2, 26.6, 7.2],
            [9.2, 0.1, 21.8, 0.6, 8.3, 14.6, 6.5, 32.2, 7.1],
            [10.8, 0.8, 27.5, 0.9, 8.9, 16.8, 6.0, 22.6, 5.7],
            [6.7, 1.3, 35.8, 0.9, 7.3, 14.4, 5.0, 22.3, 6.1],
            [23.2, 1.0, 20.7, 1.3, 7.5, 16.8, 2.8, 20.8, 6.1],
        ]),
        rownames=['Belgium', 'Denmark', 'France', 'W. Germany', 'Ireland'],
        colnames=['Agr', 'Min', 'Man', 'PS', 'Con', 'SI', 'Fin', 'SPS', 'TC']
    )


class TestScaler:
    """Tests for the Scaler class."""

    def test_moments(self, employment):
        """Test zero mean and unit standard deviation per column."""
        scaled = standardize(employment)
        values = scaled.values

        assert np.allclose(values.mean(axis=0), 0.0, atol=1e-9)
        assert np.allclose(values.std(axis=0, ddof=1), 1.0, atol=1e-9)

    def test_population_ddof(self, employment):
        """Test standardizing with the population standard deviation."""
        values = standardize(employment.values, ddof=0)

        assert np.allclose(values.std(axis=0), 1.0, atol=1e-9)

    def test_shape_and_names(self, employment):
        """Test that names and shape are kept."""
        scaled = standardize(employment)

        assert isinstance(scaled, NamedMatrix)
        assert scaled.shape == employment.shape
        assert scaled.rownames() == employment.rownames()
        assert scaled.colnames() == employment.colnames()

    def test_array_input(self, employment):
        """Test that arrays give arrays."""
        scaled = standardize(employment.values)

        assert isinstance(scaled, np.ndarray)
        assert np.allclose(scaled, standardize(employment).values)

    def test_zero_variance_raises(self):
        """Test that a constant column is rejected by default."""
        nmat = NamedMatrix(np.array([[1.0, 0.1], [2.0, 0.1], [3.0, 0.1]]),
                           colnames=['a', 'b'])

        with pytest.raises(ZeroVarianceError) as excinfo:
            standardize(nmat)

        assert excinfo.value.columns == ['b']
        assert isinstance(excinfo.value, InvalidParameterError)

    def test_zero_variance_drop(self):
        """Test dropping constant columns under the 'drop' policy."""
        nmat = NamedMatrix(np.array([[1.0, 5.0, 2.0], [2.0, 5.0, 4.0], [3.0, 5.0, 9.0]]),
                           colnames=['a', 'b', 'c'])

        scaler = Scaler(on_constant='drop')
        scaled = scaler.fit_transform(nmat)

        assert scaled.colnames() == ['a', 'c']
        assert scaler.dropped_ == ['b']
        assert np.all(np.isfinite(scaled.values))

    def test_inverse_transform(self, employment):
        """Test mapping standardized values back to original units."""
        scaler = Scaler()
        scaled = scaler.fit_transform(employment)

        assert np.allclose(scaler.inverse_transform(scaled.values), employment.values)

    def test_invalid_input(self):
        """Test rejection of unusable input."""
        with pytest.raises(InvalidParameterError):
            standardize(np.array([[1.0, 2.0]]))
        with pytest.raises(InvalidParameterError):
            standardize(np.array([[1.0], [np.nan], [2.0]]))
        with pytest.raises(InvalidParameterError):
            Scaler(on_constant='ignore')

    def test_transform_before_fit(self):
        """Test that transforming an unfitted scaler fails."""
        with pytest.raises(RuntimeError):
            Scaler().transform(np.ones((2, 2)))

"""
Numerical core of eurocluster: scaling, k-means and choice of K.
"""

from eurocluster.math.errors import InvalidParameterError, ZeroVarianceError
from eurocluster.math.named_matrix import NamedMatrix
from eurocluster.math.scaler import Scaler, standardize
from eurocluster.math.clusters import Cluster, KMeansResult, fit, clusters_to_dict
from eurocluster.math.selection import (
    silhouette_samples, mean_silhouette, reference_datasets, gap_statistic,
    scan, recommend, diagnostics_frame
)

"""
eurocluster: k-means clustering of labelled tabular data.

Standardizes an observation matrix, fits k-means with seeded restarts
and chooses the number of clusters with the elbow, silhouette and gap
statistic diagnostics.
"""

__version__ = '0.1.0'

from eurocluster.components.config import Config, ConfigManager
from eurocluster.analysis import Analysis

"""
End-to-end clustering analysis for eurocluster.

An Analysis standardizes an observation matrix, scans a range of K,
picks K (configured, else the gap statistic's choice, else the
silhouette's) and fits the final k-means solution. Results are
exposed as plain dictionaries and pandas frames for reporting.
"""

import json
import logging
import time
import numpy as np
import pandas as pd
from typing import Dict, Optional, Any

from eurocluster.components.config import Config, ConfigManager
from eurocluster.math.clusters import KMeansResult, fit, clusters_to_dict
from eurocluster.math.errors import InvalidParameterError
from eurocluster.math.named_matrix import NamedMatrix
from eurocluster.math.scaler import Scaler
from eurocluster.math.selection import scan, recommend, diagnostics_frame

logger = logging.getLogger(__name__)


class Analysis:
    """
    Clustering of one observation matrix.
    """

    def __init__(self, matrix: NamedMatrix, config: Optional[Config] = None):
        """
        Initialize an analysis.

        Args:
            matrix: Observation matrix with row labels
            config: Configuration (defaults to the shared configuration)
        """
        self.matrix = matrix
        self.config = config or ConfigManager.get_config()

        self.scaler: Optional[Scaler] = None
        self.scaled: Optional[NamedMatrix] = None
        self.scan_result: Dict[int, Dict[str, Any]] = {}
        self.recommendation: Dict[str, Optional[int]] = {}
        self.k: Optional[int] = None
        self.result: Optional[KMeansResult] = None

    def _standardize(self) -> None:
        self.scaler = Scaler(
            ddof=self.config.get('scaler.ddof', 1),
            on_constant=self.config.get('scaler.on-constant', 'raise')
        )
        self.scaled = self.scaler.fit_transform(self.matrix)

    def _scan(self) -> None:
        self.scan_result = scan(
            self.scaled,
            k_min=self.config.get('selection.k-min'),
            k_max=self.config.get('selection.k-max'),
            restarts=self.config.get('kmeans.restarts'),
            max_iters=self.config.get('kmeans.max-iters'),
            seed=self.config.get('kmeans.seed'),
            n_refs=self.config.get('selection.gap-refs'),
            gap_seed=self.config.get('selection.gap-seed'),
            gap_restarts=self.config.get('selection.gap-restarts'),
            workers=self.config.get('kmeans.workers', 1)
        )
        self.recommendation = recommend(self.scan_result)
        logger.info(f"Recommended k: {self.recommendation}")

    def _choose_k(self) -> int:
        configured = self.config.get('kmeans.k')
        if configured is not None:
            return configured

        for method in ('gap', 'silhouette'):
            k = self.recommendation.get(method)
            if k is not None:
                logger.info(f"Using k={k} from the {method} recommendation")
                return k

        raise InvalidParameterError("No k could be recommended from the scan; set kmeans.k")

    def _fit(self) -> None:
        self.result = fit(
            self.scaled,
            self.k,
            restarts=self.config.get('kmeans.restarts'),
            max_iters=self.config.get('kmeans.max-iters'),
            seed=self.config.get('kmeans.seed'),
            workers=self.config.get('kmeans.workers', 1)
        )

    def run(self) -> 'Analysis':
        """
        Run standardization, the K scan and the final fit.

        Returns:
            self
        """
        start_time = time.time()
        logger.info(f"Clustering {self.matrix.shape[0]} rows x {self.matrix.shape[1]} columns")

        self._standardize()
        self._scan()
        self.k = self._choose_k()
        self._fit()

        logger.info(f"[{time.time() - start_time:.2f}s] Final fit: k={self.k}, "
                    f"inertia={self.result.inertia:.4f}, converged={self.result.converged}")
        return self

    def _require_result(self) -> KMeansResult:
        if self.result is None:
            raise RuntimeError("Analysis has not been run")
        return self.result

    def assignment_frame(self) -> pd.DataFrame:
        """
        Cluster label of every row, indexed by row label.
        """
        result = self._require_result()
        return pd.DataFrame({'cluster': result.assignments}, index=self.scaled.rownames())

    def centroid_frame(self, scaled: bool = False) -> pd.DataFrame:
        """
        Cluster centers as a table indexed by cluster label.

        Args:
            scaled: Report standardized coordinates instead of original units

        Returns:
            K x J DataFrame
        """
        result = self._require_result()
        centers = result.centroids if scaled else self.scaler.inverse_transform(result.centroids)
        index = pd.Index(range(1, result.k + 1), name='cluster')
        return pd.DataFrame(centers, index=index, columns=self.scaled.colnames())

    def diagnostics(self) -> pd.DataFrame:
        """Per-K scan diagnostics indexed by K."""
        return diagnostics_frame(self.scan_result)

    def get_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the analysis.

        Returns:
            Dictionary with analysis summary
        """
        result = self._require_result()
        return {
            'n_rows': self.matrix.shape[0],
            'n_columns': self.scaled.shape[1],
            'dropped_columns': list(self.scaler.dropped_),
            'k': self.k,
            'inertia': result.inertia,
            'converged': result.converged,
            'iterations': result.n_iter,
            'restart': result.restart,
            'reseeds': result.n_reseeds
        }

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the analysis results to a JSON-serializable dictionary.
        """
        result = self._require_result()
        colnames = self.scaled.colnames()
        original = self.scaler.inverse_transform(result.centroids)

        return {
            'summary': self.get_summary(),
            'assignments': result.assignments_by_label(),
            'cluster_sizes': {int(j + 1): int(size) for j, size in enumerate(result.sizes())},
            'centroids': {
                int(j + 1): dict(zip(colnames, map(float, original[j])))
                for j in range(result.k)
            },
            'centroids_scaled': {
                int(j + 1): dict(zip(colnames, map(float, result.centroids[j])))
                for j in range(result.k)
            },
            'clusters': clusters_to_dict(result.clusters(), self.scaled.rownames()),
            'diagnostics': {int(k): dict(rec) for k, rec in self.scan_result.items()},
            'recommendation': dict(self.recommendation)
        }

    def save(self, filepath: str) -> None:
        """
        Write the analysis results to a JSON file.

        Args:
            filepath: Output path
        """
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2, default=_json_default)
        logger.info(f"Saved analysis to {filepath}")


def _json_default(value: Any) -> Any:
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.floating):
        return float(value)
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.bool_):
        return bool(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")

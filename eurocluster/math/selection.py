"""
Choosing the number of clusters for eurocluster.

This module provides the silhouette width, the gap statistic and a
scan that fits k-means over a range of K and records, for every K,
the total inertia, the mean silhouette and the gap value. Three
recommendations are derived from a scan: an advisory elbow, the
silhouette maximum and the gap statistic's one-standard-error rule.
"""

import logging
import numpy as np
import pandas as pd
from scipy.spatial.distance import pdist, squareform
from typing import Dict, List, Optional, Union, Any

from eurocluster.math.clusters import fit, validate_data, SeedLike
from eurocluster.math.errors import InvalidParameterError
from eurocluster.math.named_matrix import NamedMatrix

logger = logging.getLogger(__name__)


def distance_matrix(data: Union[np.ndarray, NamedMatrix]) -> np.ndarray:
    """
    Calculate the Euclidean distance matrix for a set of rows.

    Args:
        data: N x J matrix

    Returns:
        N x N matrix of pairwise distances
    """
    values = validate_data(data)
    if values.shape[0] == 1:
        return np.zeros((1, 1))
    return squareform(pdist(values, metric='euclidean'))


def silhouette_samples(data: Union[np.ndarray, NamedMatrix],
                       assignments: np.ndarray,
                       dist_matrix: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Calculate the silhouette width of every row.

    For row i, a is the mean distance to the other members of its own
    cluster and b the smallest mean distance to the members of another
    cluster; the width is (b - a) / max(a, b). Rows in singleton
    clusters, and rows with a == b == 0, get 0.

    Args:
        data: N x J matrix
        assignments: Length-N cluster labels (any integer labelling)
        dist_matrix: Optional precomputed distance matrix

    Returns:
        Length-N array of widths in [-1, 1]

    Raises:
        InvalidParameterError: With fewer than two distinct clusters
    """
    values = validate_data(data)
    labels = np.asarray(assignments)
    n_rows = values.shape[0]

    if labels.shape != (n_rows,):
        raise InvalidParameterError(
            f"Expected {n_rows} assignments, got {labels.shape[0] if labels.ndim else 0}"
        )

    cluster_ids = np.unique(labels)
    if len(cluster_ids) < 2:
        raise InvalidParameterError("Silhouette is undefined for fewer than two clusters")

    dist = distance_matrix(values) if dist_matrix is None else dist_matrix

    # Summed distance from each row to the members of each cluster
    sums = np.column_stack([dist[:, labels == c].sum(axis=1) for c in cluster_ids])
    sizes = np.array([np.sum(labels == c) for c in cluster_ids])
    own = np.searchsorted(cluster_ids, labels)
    own_size = sizes[own]
    rows = np.arange(n_rows)

    a = sums[rows, own] / np.maximum(own_size - 1, 1)

    means = sums / sizes
    means[rows, own] = np.inf
    b = means.min(axis=1)

    denom = np.maximum(a, b)
    widths = np.zeros(n_rows)
    positive = denom > 0
    widths[positive] = (b[positive] - a[positive]) / denom[positive]
    widths[own_size == 1] = 0.0

    return widths


def mean_silhouette(data: Union[np.ndarray, NamedMatrix],
                    assignments: np.ndarray,
                    dist_matrix: Optional[np.ndarray] = None) -> float:
    """
    Average silhouette width over all rows.

    Raises:
        InvalidParameterError: With fewer than two distinct clusters
    """
    return float(np.mean(silhouette_samples(data, assignments, dist_matrix)))


def reference_datasets(data: Union[np.ndarray, NamedMatrix],
                       n_refs: int,
                       seed: SeedLike = None) -> List[np.ndarray]:
    """
    Draw uniform reference datasets for the gap statistic.

    Each column is sampled independently and uniformly between its
    observed minimum and maximum.

    Args:
        data: N x J matrix
        n_refs: Number of reference datasets
        seed: Seed or RandomState

    Returns:
        List of n_refs arrays shaped like ``data``
    """
    values = validate_data(data)
    if n_refs < 1:
        raise InvalidParameterError(f"n_refs must be at least 1, got {n_refs}")

    rng = seed if isinstance(seed, np.random.RandomState) else np.random.RandomState(seed)
    lows = values.min(axis=0)
    highs = values.max(axis=0)
    return [rng.uniform(lows, highs, size=values.shape) for _ in range(n_refs)]


def gap_statistic(observed_inertia: float,
                  references: List[np.ndarray],
                  k: int,
                  restarts: int = 10,
                  max_iters: int = 100,
                  seed: SeedLike = None,
                  workers: int = 1) -> Dict[str, Any]:
    """
    Calculate the gap statistic for one K.

    gap = mean(log W_ref) - log W_obs, where W is the k-means inertia.
    The standard error is sd(log W_ref) * sqrt(1 + 1/B) with B the
    number of references.

    Args:
        observed_inertia: Inertia of the observed data at this K
        references: Reference datasets from ``reference_datasets``
        k: Number of clusters
        restarts: Restarts for each reference fit
        max_iters: Iteration cap for each reference fit
        seed: Seed for the reference fits
        workers: Threads per reference fit

    Returns:
        Dictionary with 'gap', 'gap_se' (None when a log is undefined)
        and 'ref_inertias'
    """
    if not references:
        raise InvalidParameterError("At least one reference dataset is required")

    ref_inertias = [
        fit(ref, k, restarts=restarts, max_iters=max_iters, seed=seed, workers=workers).inertia
        for ref in references
    ]

    if observed_inertia <= 0 or min(ref_inertias) <= 0:
        logger.warning(f"k={k}: zero inertia, gap statistic is undefined")
        return {'gap': None, 'gap_se': None, 'ref_inertias': ref_inertias}

    log_refs = np.log(ref_inertias)
    n_refs = len(references)
    gap = float(np.mean(log_refs) - np.log(observed_inertia))
    gap_se = float(np.std(log_refs) * np.sqrt(1 + 1.0 / n_refs))

    return {'gap': gap, 'gap_se': gap_se, 'ref_inertias': ref_inertias}


def scan(data: Union[np.ndarray, NamedMatrix],
         k_min: int,
         k_max: int,
         restarts: int = 10,
         max_iters: int = 100,
         seed: SeedLike = None,
         n_refs: int = 10,
         gap_seed: SeedLike = None,
         gap_restarts: Optional[int] = None,
         workers: int = 1) -> Dict[int, Dict[str, Any]]:
    """
    Fit k-means for every K in [k_min, k_max] and record diagnostics.

    A K that cannot be fitted (e.g. K larger than the number of rows)
    gets its error message recorded and the scan moves on.

    Args:
        data: Standardized N x J matrix
        k_min: Smallest K (>= 1)
        k_max: Largest K (>= k_min)
        restarts: Restarts per fit
        max_iters: Iteration cap per restart
        seed: Seed for the observed-data and reference fits (a
            RandomState is reduced to one integer seed up front)
        n_refs: Number of gap reference datasets
        gap_seed: Seed for drawing the reference datasets
        gap_restarts: Restarts per reference fit (defaults to ``restarts``)
        workers: Threads per fit

    Returns:
        Mapping from K to a record with keys 'k', 'inertia',
        'mean_silhouette', 'gap', 'gap_se', 'converged' and 'error'
    """
    values = validate_data(data)
    if k_min < 1:
        raise InvalidParameterError(f"k_min must be at least 1, got {k_min}")
    if k_min > k_max:
        raise InvalidParameterError(f"k_min ({k_min}) exceeds k_max ({k_max})")
    if gap_restarts is None:
        gap_restarts = restarts

    # Every fit starts from the same integer seed so that no K depends
    # on the fits run before it
    if isinstance(seed, np.random.RandomState):
        seed = int(seed.randint(0, 2 ** 31 - 1))

    dist = distance_matrix(values)
    references = reference_datasets(values, n_refs, gap_seed)

    logger.info(f"Scanning k={k_min}..{k_max} over {values.shape[0]} rows "
                f"({restarts} restarts, {n_refs} gap references)")

    results = {}
    for k in range(k_min, k_max + 1):
        record = {
            'k': k,
            'inertia': None,
            'mean_silhouette': None,
            'gap': None,
            'gap_se': None,
            'converged': None,
            'error': None
        }
        results[k] = record

        try:
            result = fit(values, k, restarts=restarts, max_iters=max_iters,
                         seed=seed, workers=workers)
        except InvalidParameterError as e:
            logger.warning(f"k={k} skipped: {e}")
            record['error'] = str(e)
            continue

        record['inertia'] = result.inertia
        record['converged'] = result.converged

        if k >= 2:
            record['mean_silhouette'] = mean_silhouette(values, result.assignments, dist)

        gap = gap_statistic(result.inertia, references, k, restarts=gap_restarts,
                            max_iters=max_iters, seed=seed, workers=workers)
        record['gap'] = gap['gap']
        record['gap_se'] = gap['gap_se']

        logger.debug(f"k={k}: inertia={record['inertia']:.4f}, "
                     f"silhouette={record['mean_silhouette']}, gap={record['gap']}")

    return results


def elbow_k(scan_result: Dict[int, Dict[str, Any]]) -> Optional[int]:
    """
    Advisory elbow of the inertia curve.

    Both axes are rescaled to [0, 1] and the K farthest from the chord
    joining the first and last points is returned. Needs at least three
    fitted K values and a non-flat curve.
    """
    ks = sorted(k for k, rec in scan_result.items() if rec['inertia'] is not None)
    if len(ks) < 3:
        return None

    x = np.array(ks, dtype=float)
    y = np.array([scan_result[k]['inertia'] for k in ks], dtype=float)
    if np.ptp(y) == 0:
        return None

    x = (x - x.min()) / np.ptp(x)
    y = (y - y.min()) / np.ptp(y)

    dx = x[-1] - x[0]
    dy = y[-1] - y[0]
    dists = np.abs(dy * x - dx * y + x[-1] * y[0] - y[-1] * x[0]) / np.hypot(dx, dy)

    best = int(np.argmax(dists))
    if dists[best] == 0:
        return None
    return ks[best]


def silhouette_k(scan_result: Dict[int, Dict[str, Any]]) -> Optional[int]:
    """K with the highest mean silhouette; the smallest such K on ties."""
    best_k = None
    best_value = None
    for k in sorted(scan_result):
        value = scan_result[k]['mean_silhouette']
        if value is None:
            continue
        if best_value is None or value > best_value:
            best_k, best_value = k, value
    return best_k


def gap_k(scan_result: Dict[int, Dict[str, Any]]) -> Optional[int]:
    """
    Smallest K with gap(K) >= gap(K+1) - se(K+1).

    Falls back to the K with the largest gap when no K satisfies the rule.
    """
    ks = sorted(k for k, rec in scan_result.items() if rec['gap'] is not None)

    for k in ks:
        following = scan_result.get(k + 1)
        if following is None or following['gap'] is None:
            continue
        if scan_result[k]['gap'] >= following['gap'] - following['gap_se']:
            return k

    best_k = None
    for k in ks:
        if best_k is None or scan_result[k]['gap'] > scan_result[best_k]['gap']:
            best_k = k
    return best_k


def recommend(scan_result: Dict[int, Dict[str, Any]]) -> Dict[str, Optional[int]]:
    """
    Recommend K from a scan.

    Returns:
        Dictionary with 'elbow', 'silhouette' and 'gap' entries
    """
    return {
        'elbow': elbow_k(scan_result),
        'silhouette': silhouette_k(scan_result),
        'gap': gap_k(scan_result)
    }


def diagnostics_frame(scan_result: Dict[int, Dict[str, Any]]) -> pd.DataFrame:
    """
    Scan records as a DataFrame indexed by K.
    """
    columns = ['k', 'inertia', 'mean_silhouette', 'gap', 'gap_se', 'converged', 'error']
    records = [scan_result[k] for k in sorted(scan_result)]
    return pd.DataFrame.from_records(records, columns=columns).set_index('k')

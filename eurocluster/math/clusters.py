"""
K-means clustering implementation for eurocluster.

This module provides Lloyd's k-means with seeded random restarts.
Each restart draws K distinct rows as initial centers, alternates
assignment and update steps until no row changes cluster (or the
iteration cap is hit), and the restart with the lowest total
within-cluster sum of squares is returned.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
import numpy as np
from typing import Dict, List, Optional, Tuple, Union, Any

from eurocluster.math.errors import InvalidParameterError
from eurocluster.math.named_matrix import NamedMatrix

logger = logging.getLogger(__name__)

SeedLike = Union[None, int, np.random.RandomState]


class Cluster:
    """
    Represents a single cluster of a k-means solution.
    """

    def __init__(self,
                 center: np.ndarray,
                 members: Optional[List[int]] = None,
                 id: Optional[int] = None):
        """
        Initialize a cluster with a center and optional members.

        Args:
            center: The center of the cluster
            members: Row indices of members belonging to the cluster
            id: Cluster label (1-based)
        """
        self.center = np.array(center, dtype=float)
        self.members = [] if members is None else list(members)
        self.id = id

    @property
    def size(self) -> int:
        return len(self.members)

    def __repr__(self) -> str:
        return f"Cluster(id={self.id}, members={len(self.members)})"


class KMeansResult:
    """
    Outcome of a k-means fit.

    Attributes:
        assignments: Length-N array of cluster labels in 1..K
        centroids: K x J array of cluster centers
        inertia: Total within-cluster sum of squares
        converged: False when the iteration cap was reached first
        n_iter: Number of update steps performed by the kept restart
        restart: Index of the kept restart
        restart_inertias: Inertia of every restart, in restart order
        n_reseeds: Number of empty clusters re-seeded in the kept restart
        rownames: Optional row labels aligned with ``assignments``
    """

    def __init__(self,
                 assignments: np.ndarray,
                 centroids: np.ndarray,
                 inertia: float,
                 converged: bool,
                 n_iter: int,
                 restart: int = 0,
                 restart_inertias: Optional[List[float]] = None,
                 n_reseeds: int = 0,
                 rownames: Optional[List[Any]] = None):
        self.assignments = assignments
        self.centroids = centroids
        self.inertia = inertia
        self.converged = converged
        self.n_iter = n_iter
        self.restart = restart
        self.restart_inertias = [] if restart_inertias is None else list(restart_inertias)
        self.n_reseeds = n_reseeds
        self.rownames = rownames

    @property
    def k(self) -> int:
        return self.centroids.shape[0]

    @property
    def labels(self) -> np.ndarray:
        """0-based cluster labels, for indexing into ``centroids``."""
        return self.assignments - 1

    def sizes(self) -> np.ndarray:
        return np.bincount(self.labels, minlength=self.k)

    def clusters(self) -> List[Cluster]:
        """
        Split the solution into per-cluster records.

        Returns:
            List of K clusters ordered by label
        """
        return [
            Cluster(self.centroids[j], np.flatnonzero(self.labels == j).tolist(), j + 1)
            for j in range(self.k)
        ]

    def within_cluster_ss(self, data: Union[np.ndarray, NamedMatrix]) -> np.ndarray:
        """
        Sum of squares of each cluster around its centroid.

        Args:
            data: The matrix the result was fitted on

        Returns:
            Length-K array; sums to ``inertia``
        """
        values = validate_data(data)
        row_ss = np.sum((values - self.centroids[self.labels]) ** 2, axis=1)
        return np.bincount(self.labels, weights=row_ss, minlength=self.k)

    def assignments_by_label(self) -> Dict[Any, int]:
        """Map each row label (or row index) to its cluster label."""
        names = self.rownames if self.rownames is not None else range(len(self.assignments))
        return {name: int(a) for name, a in zip(names, self.assignments)}

    def __repr__(self) -> str:
        return (f"KMeansResult(k={self.k}, inertia={self.inertia:.4f}, "
                f"converged={self.converged}, restart={self.restart})")


def validate_data(data: Union[np.ndarray, NamedMatrix]) -> np.ndarray:
    """
    Extract a finite float matrix from the input.

    Raises:
        InvalidParameterError: If the data is not 2-D, empty or non-finite
    """
    values = data.values if isinstance(data, NamedMatrix) else np.asarray(data, dtype=float)

    if values.ndim != 2:
        raise InvalidParameterError(f"Expected a 2-D matrix, got {values.ndim} dimension(s)")
    if values.shape[0] == 0 or values.shape[1] == 0:
        raise InvalidParameterError(f"Cannot cluster an empty matrix of shape {values.shape}")
    if not np.all(np.isfinite(values)):
        raise InvalidParameterError("Matrix contains NaN or infinite values")
    return values


def validate_k(k: int, n_rows: int) -> None:
    """
    Raises:
        InvalidParameterError: If k is not in [1, n_rows]
    """
    if k < 1:
        raise InvalidParameterError(f"k must be at least 1, got {k}")
    if k > n_rows:
        raise InvalidParameterError(f"k={k} exceeds the number of rows ({n_rows})")


def squared_distances(data: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """
    Squared Euclidean distance from every row to every center.

    Args:
        data: N x J matrix
        centers: K x J matrix

    Returns:
        N x K matrix of squared distances
    """
    diff = data[:, np.newaxis, :] - centers[np.newaxis, :, :]
    return np.einsum('ijk,ijk->ij', diff, diff)


def assign_points(data: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """
    Assign each row to its nearest center.

    Ties go to the lowest cluster index.

    Returns:
        Length-N array of 0-based labels
    """
    return np.argmin(squared_distances(data, centers), axis=1)


def compute_inertia(data: np.ndarray, labels: np.ndarray, centers: np.ndarray) -> float:
    """
    Total within-cluster sum of squared residuals.

    Args:
        data: N x J matrix
        labels: 0-based labels
        centers: K x J matrix

    Returns:
        Sum over all rows of the squared distance to the assigned center
    """
    diff = data - centers[labels]
    return float(np.sum(diff * diff))


def init_center_indices(data: np.ndarray, k: int, rng: np.random.RandomState) -> np.ndarray:
    """
    Pick k distinct rows to serve as initial centers.

    Rows are visited in a random order and a row is skipped when its
    values duplicate an already chosen center. If the data holds fewer
    than k distinct rows, the remaining slots are filled with duplicate
    rows in the same random order.

    Each call consumes exactly one permutation from ``rng``.

    Args:
        data: N x J matrix
        k: Number of centers
        rng: Random state

    Returns:
        Array of k row indices
    """
    order = rng.permutation(data.shape[0])

    chosen = []
    for idx in order:
        if any(np.array_equal(data[idx], data[c]) for c in chosen):
            continue
        chosen.append(idx)
        if len(chosen) == k:
            return np.array(chosen)

    logger.warning(f"Only {len(chosen)} distinct rows for k={k}; initial centers will repeat")
    taken = set(chosen)
    chosen.extend([idx for idx in order if idx not in taken][:k - len(chosen)])
    return np.array(chosen)


def update_centers(data: np.ndarray,
                   labels: np.ndarray,
                   centers: np.ndarray) -> Tuple[np.ndarray, np.ndarray, int]:
    """
    Move every center to the mean of its members, re-seeding empty clusters.

    An empty cluster takes over the row farthest from its own center,
    among rows whose cluster keeps at least one other member. Ties go
    to the lowest row index.

    Args:
        data: N x J matrix
        labels: 0-based labels
        centers: Current K x J centers

    Returns:
        Tuple of (new centers, labels after re-seeding, number of re-seeds)
    """
    k = centers.shape[0]
    new_centers = centers.copy()
    counts = np.bincount(labels, minlength=k)

    for j in np.flatnonzero(counts):
        new_centers[j] = data[labels == j].mean(axis=0)

    empty = np.flatnonzero(counts == 0)
    if len(empty) == 0:
        return new_centers, labels, 0

    labels = labels.copy()
    dists = np.sum((data - new_centers[labels]) ** 2, axis=1)

    for j in empty:
        eligible = counts[labels] > 1
        candidate = np.where(eligible, dists, -1.0)
        idx = int(np.argmax(candidate))
        donor = labels[idx]

        labels[idx] = j
        counts[donor] -= 1
        counts[j] += 1
        dists[idx] = 0.0

        new_centers[j] = data[idx]
        new_centers[donor] = data[labels == donor].mean(axis=0)
        logger.debug(f"Re-seeded empty cluster {j} with row {idx} taken from cluster {donor}")

    return new_centers, labels, len(empty)


def lloyd(data: np.ndarray,
          initial_centers: np.ndarray,
          max_iters: int = 100) -> KMeansResult:
    """
    Run Lloyd's algorithm from the given centers.

    Stops when no row changes cluster between consecutive update steps,
    when an update step leaves every center where it was, or after
    ``max_iters`` update steps. The returned centers are always
    the means of the returned assignments.

    Args:
        data: N x J matrix
        initial_centers: K x J starting centers
        max_iters: Maximum number of update steps

    Returns:
        KMeansResult for this single run
    """
    centers = np.array(initial_centers, dtype=float)
    labels = assign_points(data, centers)
    converged = False
    n_reseeds = 0
    n_iter = 0

    while n_iter < max_iters:
        n_iter += 1
        previous_centers = centers
        centers, labels, reseeds = update_centers(data, labels, centers)
        n_reseeds += reseeds

        # Unchanged centers are a fixed point even when a re-seeded row
        # ties back to a lower-index cluster on reassignment
        new_labels = assign_points(data, centers)
        if np.array_equal(new_labels, labels) or np.array_equal(centers, previous_centers):
            converged = True
            break
        if n_iter < max_iters:
            labels = new_labels

    return KMeansResult(
        assignments=labels + 1,
        centroids=centers,
        inertia=compute_inertia(data, labels, centers),
        converged=converged,
        n_iter=n_iter,
        n_reseeds=n_reseeds
    )


def _random_state(seed: SeedLike) -> np.random.RandomState:
    if isinstance(seed, np.random.RandomState):
        return seed
    return np.random.RandomState(seed)


def fit(data: Union[np.ndarray, NamedMatrix],
        k: int,
        restarts: int = 10,
        max_iters: int = 100,
        seed: SeedLike = None,
        workers: int = 1) -> KMeansResult:
    """
    Perform K-means clustering with multiple random restarts.

    Initial centers for all restarts are drawn up front, in restart
    order, from a single random state, so restart r always starts from
    the same centers for a given seed whatever the restart count.

    Args:
        data: Standardized N x J matrix (array or NamedMatrix)
        k: Number of clusters, 1 <= k <= N
        restarts: Number of random restarts (>= 1)
        max_iters: Iteration cap per restart (>= 1)
        seed: Seed or RandomState for center initialization
        workers: Threads used to run restarts (1 runs them serially)

    Returns:
        KMeansResult of the restart with the lowest inertia (lowest
        restart index on ties)

    Raises:
        InvalidParameterError: For invalid k, restarts, max_iters or data
    """
    values = validate_data(data)
    validate_k(k, values.shape[0])
    if restarts < 1:
        raise InvalidParameterError(f"restarts must be at least 1, got {restarts}")
    if max_iters < 1:
        raise InvalidParameterError(f"max_iters must be at least 1, got {max_iters}")

    rng = _random_state(seed)
    starts = [values[init_center_indices(values, k, rng)] for _ in range(restarts)]

    def run(initial_centers):
        return lloyd(values, initial_centers, max_iters)

    if workers > 1 and restarts > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            runs = list(executor.map(run, starts))
    else:
        runs = [run(initial_centers) for initial_centers in starts]

    best = 0
    for r, result in enumerate(runs):
        logger.debug(f"k={k} restart {r}: inertia={result.inertia:.6f}, "
                     f"iterations={result.n_iter}, converged={result.converged}")
        if result.inertia < runs[best].inertia:
            best = r

    result = runs[best]
    result.restart = best
    result.restart_inertias = [run_result.inertia for run_result in runs]
    if isinstance(data, NamedMatrix):
        result.rownames = data.rownames()

    if not result.converged:
        logger.warning(f"k={k}: best restart did not converge within {max_iters} iterations")

    return result


def clusters_to_dict(clusters: List[Cluster], data_indices: Optional[List[Any]] = None) -> List[Dict]:
    """
    Convert clusters to a dictionary format for serialization.

    Args:
        clusters: List of clusters
        data_indices: Optional mapping from row indices to row labels

    Returns:
        List of cluster dictionaries
    """
    result = []

    for cluster in clusters:
        if data_indices is not None:
            members = [data_indices[idx] for idx in cluster.members]
        else:
            members = list(cluster.members)

        result.append({
            'id': cluster.id,
            'center': cluster.center.tolist(),
            'members': members
        })

    return result


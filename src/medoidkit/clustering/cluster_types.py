"""Core data structures and enums for K-Medoids clustering."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List

import numpy as np


class KMedoidsDataType(Enum):
    """Representation of the input data."""

    POINTS = "points"  # Rows are points; distances come from a metric
    DISTANCE_MATRIX = "distance_matrix"  # Rows are precomputed distance vectors


class KMedoidsState(Enum):
    """Stage of a K-Medoids run."""

    UNINITIALIZED = "uninitialized"  # No run started (or the last one failed)
    ASSIGNED = "assigned"  # Points assigned to the current medoids
    SWAPPING = "swapping"  # Searching for an improving medoid swap
    CONVERGED = "converged"  # Run finished


@dataclass
class ClusterAssignment:
    """Working assignment of points to medoids for one run.

    For every point the distances to its nearest and second-nearest medoids
    are kept so that a medoid swap can be priced without recomputing every
    point-to-medoid distance.
    """

    labels: np.ndarray  # Cluster index of each point (-1 before assignment)
    distance_first_medoid: np.ndarray  # Distance to the nearest medoid
    distance_second_medoid: np.ndarray  # Distance to the second-nearest medoid
    deviations: np.ndarray  # Sum of member distances per cluster

    @classmethod
    def empty(cls, n_points: int, n_clusters: int) -> "ClusterAssignment":
        """Create an assignment with no point assigned yet."""
        return cls(
            labels=np.full(n_points, -1, dtype=np.int64),
            distance_first_medoid=np.zeros(n_points, dtype=np.float64),
            distance_second_medoid=np.zeros(n_points, dtype=np.float64),
            deviations=np.zeros(n_clusters, dtype=np.float64),
        )

    @property
    def n_points(self) -> int:
        return int(self.labels.shape[0])

    @property
    def n_clusters(self) -> int:
        return int(self.deviations.shape[0])

    @property
    def total_deviation(self) -> float:
        """Sum of distances from every point to its medoid."""
        return float(np.sum(self.distance_first_medoid))

    def get_clusters(self) -> List[List[int]]:
        """Member indices of each cluster, in cluster order."""
        clusters: List[List[int]] = [[] for _ in range(self.n_clusters)]
        for index_point, label in enumerate(self.labels):
            if label >= 0:
                clusters[int(label)].append(index_point)
        return clusters


@dataclass
class KMedoidsResult:
    """Outcome of a K-Medoids run.

    A caller may create one up front and pass it to ``KMedoids.process``,
    which fills it in place.
    """

    labels: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    medoids: List[int] = field(default_factory=list)  # Medoid index per cluster
    clusters: List[List[int]] = field(default_factory=list)  # Member indices per cluster
    distances: np.ndarray = field(
        default_factory=lambda: np.zeros(0, dtype=np.float64)
    )  # Distance of each point to its medoid
    iterations: int = 0  # Swap/assignment iterations performed
    changes: float = math.inf  # Last per-cluster deviation change
    total_deviation: float = 0.0  # Sum of distances to medoids
    cost_history: List[float] = field(default_factory=list)  # Total deviation per assignment
    converged: bool = False  # False when the run stopped on the iteration limit

    @property
    def n_clusters(self) -> int:
        """Number of clusters."""
        return len(self.medoids)

    def get_cluster_sizes(self) -> Dict[int, int]:
        """Get size of each cluster."""
        return {index: len(members) for index, members in enumerate(self.clusters)}

    def clear(self) -> None:
        """Reset to the empty state."""
        self.labels = np.zeros(0, dtype=np.int64)
        self.medoids = []
        self.clusters = []
        self.distances = np.zeros(0, dtype=np.float64)
        self.iterations = 0
        self.changes = math.inf
        self.total_deviation = 0.0
        self.cost_history = []
        self.converged = False

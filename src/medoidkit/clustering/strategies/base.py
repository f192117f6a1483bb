"""Base clustering strategy interface and utilities."""

from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, List, Tuple

import numpy as np

from ...utils.metric import as_point_matrix


@dataclass
class ClusteringResult:
    """Result of a clustering operation."""

    clusters: Dict[int, List[Hashable]]  # cluster_id -> list of keys
    medoids: Dict[int, Hashable]  # cluster_id -> key of the medoid point
    metrics: Dict[str, float]  # clustering quality metrics
    metadata: Dict[str, Any] = field(default_factory=dict)  # strategy-specific metadata

    @property
    def n_clusters(self) -> int:
        """Number of clusters formed."""
        return len(self.clusters)

    @property
    def total_points(self) -> int:
        """Total number of points clustered."""
        return sum(len(members) for members in self.clusters.values())

    def get_cluster_sizes(self) -> Dict[int, int]:
        """Get size of each cluster."""
        return {cluster_id: len(members) for cluster_id, members in self.clusters.items()}


class ClusteringStrategy(ABC):
    """Abstract base class for clustering strategies."""

    def __init__(self, **params):
        """Initialize strategy with parameters."""
        self.params = params
        self.validate_params()

    @property
    @abstractmethod
    def name(self) -> str:
        """Strategy name."""
        pass

    @abstractmethod
    def validate_params(self) -> None:
        """Validate strategy parameters."""
        pass

    @abstractmethod
    def cluster(self, vectors: Dict[Hashable, np.ndarray]) -> ClusteringResult:
        """
        Cluster keyed vectors.

        Args:
            vectors: Dict mapping a key to its vector

        Returns:
            ClusteringResult with clusters, medoids, and metrics
        """
        pass

    def _prepare_data(
        self, vectors: Dict[Hashable, np.ndarray]
    ) -> Tuple[np.ndarray, List[Hashable]]:
        """
        Flatten keyed vectors into a data matrix.

        Returns:
            data_matrix: One row per key (n_samples, n_features)
            key_list: Keys in row order

        Raises:
            DimensionalityError: If vectors differ in size
        """
        key_list = list(vectors.keys())
        data_matrix = as_point_matrix([np.asarray(vectors[key]).ravel() for key in key_list])
        return data_matrix, key_list

    def _labels_to_clusters(
        self, labels: np.ndarray, key_list: List[Hashable]
    ) -> Dict[int, List[Hashable]]:
        """Convert label array to cluster dictionary."""
        clusters = defaultdict(list)
        for idx, label in enumerate(labels):
            clusters[int(label)].append(key_list[idx])
        return dict(clusters)

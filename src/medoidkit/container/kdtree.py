"""
KD tree for proximity queries over points of arbitrary dimension.

The tree is built by insertion: each level splits on the next coordinate
(depth modulo dimension), and points equal to a node along its discriminator
go to the right subtree. Queries on an empty tree return None or an empty
list rather than raising.
"""

from __future__ import annotations

import logging
import math
from typing import Generic, Iterator, List, Optional, Sequence, Tuple, TypeVar

import numpy as np

from ..errors import DimensionalityError
from .kdnode import KDNode, Point

logger = logging.getLogger(__name__)

T = TypeVar("T")


class KDTree(Generic[T]):
    """
    KD tree owning a set of ``KDNode`` objects rooted at one node.

    Example:
        >>> tree = KDTree([[0.0, 0.0], [5.0, 5.0]], payloads=["a", "b"])
        >>> tree.find_nearest_node([4.0, 4.5]).payload
        'b'
    """

    def __init__(
        self,
        points: Optional[Sequence[Point]] = None,
        payloads: Optional[Sequence[T]] = None,
    ):
        """
        Initialize the tree, optionally inserting points in order.

        Args:
            points: Points to insert
            payloads: Payload for each point (same length as points)

        Raises:
            ValueError: If payloads and points differ in length
        """
        self._root: Optional[KDNode[T]] = None
        self._size = 0
        self._dimension: Optional[int] = None

        if points is not None:
            if payloads is not None and len(payloads) != len(points):
                raise ValueError(
                    f"Number of payloads ({len(payloads)}) does not match "
                    f"number of points ({len(points)})"
                )
            for index, point in enumerate(points):
                self.insert(point, payloads[index] if payloads is not None else None)
            logger.debug(f"Built KD tree with {self._size} nodes")

    @classmethod
    def from_points(
        cls, points: Sequence[Point], payloads: Optional[Sequence[T]] = None
    ) -> KDTree[T]:
        """Build a tree by inserting ``points`` in order."""
        return cls(points, payloads)

    @property
    def root(self) -> Optional[KDNode[T]]:
        return self._root

    @property
    def size(self) -> int:
        return self._size

    @property
    def dimension(self) -> Optional[int]:
        """Dimension of the stored points, or None for an empty tree."""
        return self._dimension

    def __len__(self) -> int:
        return self._size

    def __iter__(self) -> Iterator[KDNode[T]]:
        return iter(self.traverse())

    def insert(self, point: Point, payload: Optional[T] = None) -> KDNode[T]:
        """
        Insert a point and return the node created for it.

        Args:
            point: Coordinates to insert
            payload: Data associated with the point

        Returns:
            The new leaf node (or the root for an empty tree)

        Raises:
            DimensionalityError: If the point's dimension differs from the
                points already in the tree
        """
        node: KDNode[T] = KDNode(point, payload)

        if self._root is None:
            if node.dimension == 0:
                raise DimensionalityError("Cannot insert a zero-dimensional point")
            self._root = node
            self._dimension = node.dimension
            self._size = 1
            return node

        if node.dimension != self._dimension:
            raise DimensionalityError(
                f"Point dimension {node.dimension} does not match tree dimension "
                f"{self._dimension}"
            )

        coordinates = node.data
        current = self._root
        while True:
            child_discriminator = (current.discriminator + 1) % self._dimension
            if current <= coordinates:
                if current.right is None:
                    current._set_right(node)
                    break
                current = current.right
            else:
                if current.left is None:
                    current._set_left(node)
                    break
                current = current.left

        node._set_parent(current)
        node._set_discriminator(child_discriminator)
        self._size += 1
        return node

    def find_node(self, point: Point) -> Optional[KDNode[T]]:
        """Return the first node whose coordinates equal ``point``, or None."""
        target = np.asarray(point, dtype=np.float64).ravel()
        for node in self._descend(point):
            if np.array_equal(node.data, target):
                return node
        return None

    def find_node_with_payload(self, point: Point, payload: T) -> Optional[KDNode[T]]:
        """Return the node with coordinates ``point`` and an equal payload, or None."""
        target = np.asarray(point, dtype=np.float64).ravel()
        for node in self._descend(point):
            if np.array_equal(node.data, target) and (
                node.payload is payload or node.payload == payload
            ):
                return node
        return None

    def find_nearest_node(self, point: Point) -> Optional[KDNode[T]]:
        """
        Find the node closest to ``point`` by Euclidean distance.

        Subtrees whose splitting plane is farther than the best distance so
        far are skipped. Ties keep the node found first.

        Returns:
            The nearest node, or None for an empty tree
        """
        result = self._nearest(point)
        return result[1] if result is not None else None

    def find_nearest_distance_node(self, point: Point) -> Optional[Tuple[float, KDNode[T]]]:
        """Like ``find_nearest_node`` but returns ``(distance, node)``."""
        result = self._nearest(point)
        if result is None:
            return None
        return math.sqrt(result[0]), result[1]

    def find_nearest_nodes(self, point: Point, radius: float) -> List[Tuple[float, KDNode[T]]]:
        """
        Find all nodes within ``radius`` of ``point`` (Euclidean, inclusive).

        Args:
            point: Query point
            radius: Search radius

        Returns:
            List of ``(distance, node)`` sorted by ascending distance; nodes
            at equal distance keep pre-order traversal order
        """
        if self._root is None or radius < 0:
            return []

        target = np.asarray(point, dtype=np.float64).ravel()
        radius_square = radius * radius
        found: List[Tuple[float, KDNode[T]]] = []

        stack = [self._root]
        while stack:
            node = stack.pop()
            distance_square = float(np.sum((node.data - target) ** 2))
            if distance_square <= radius_square:
                found.append((math.sqrt(distance_square), node))

            offset = target[node.discriminator] - node.get_value()
            if node.right is not None and offset >= -radius:
                stack.append(node.right)
            if node.left is not None and offset <= radius:
                stack.append(node.left)

        found.sort(key=lambda item: item[0])
        return found

    def get_children(self, node: KDNode[T]) -> List[KDNode[T]]:
        """Immediate children of ``node``, left first."""
        return node.get_children()

    def traverse(self, node: Optional[KDNode[T]] = None) -> List[KDNode[T]]:
        """
        Enumerate a subtree in pre-order (node, left subtree, right subtree).

        Args:
            node: Subtree root; the tree root when omitted

        Returns:
            Nodes of the subtree, empty for an empty tree
        """
        start = node if node is not None else self._root
        if start is None:
            return []

        nodes = []
        stack = [start]
        while stack:
            current = stack.pop()
            nodes.append(current)
            if current.right is not None:
                stack.append(current.right)
            if current.left is not None:
                stack.append(current.left)
        return nodes

    def clear(self) -> None:
        """Drop every node."""
        self._root = None
        self._size = 0
        self._dimension = None

    # Private helpers

    def _descend(self, point: Point) -> Iterator[KDNode[T]]:
        """Yield nodes on the insertion path of ``point``."""
        current = self._root
        while current is not None:
            yield current
            current = current.right if current <= point else current.left

    def _nearest(self, point: Point) -> Optional[Tuple[float, KDNode[T]]]:
        if self._root is None:
            return None

        target = np.asarray(point, dtype=np.float64).ravel()
        best_node: Optional[KDNode[T]] = None
        best_square = math.inf

        # (node, squared lower bound of the distance to anything in its subtree)
        stack: List[Tuple[KDNode[T], float]] = [(self._root, 0.0)]
        while stack:
            node, bound = stack.pop()
            if bound >= best_square:
                continue

            distance_square = float(np.sum((node.data - target) ** 2))
            if distance_square < best_square:
                best_square = distance_square
                best_node = node

            offset = target[node.discriminator] - node.get_value()
            if offset >= 0:
                near, far = node.right, node.left
            else:
                near, far = node.left, node.right

            if far is not None:
                stack.append((far, max(bound, offset * offset)))
            if near is not None:
                stack.append((near, bound))

        return best_square, best_node

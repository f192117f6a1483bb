"""
Node of a KD tree.

A node holds a point, an arbitrary payload, links to its children and a
non-owning link to its parent. Children are owned by their parent; the parent
link is a weak reference so that dropping a subtree releases it.
"""

from __future__ import annotations

import weakref
from typing import Generic, List, Optional, Sequence, TypeVar, Union

import numpy as np

T = TypeVar("T")

Point = Union[Sequence[float], np.ndarray]


class KDNode(Generic[T]):
    """
    Node of a KD tree.

    Ordering operators compare a node with a raw point along the node's
    discriminator only: ``node < point`` means
    ``node.data[node.discriminator] < point[node.discriminator]``. They are a
    one-dimensional comparison used to descend the tree, not a total order.
    Equality between two nodes falls back to identity.
    """

    __slots__ = (
        "_data",
        "_payload",
        "_left",
        "_right",
        "_parent_ref",
        "_discriminator",
        "__weakref__",
    )

    # Make numpy arrays defer to the reflected operators below.
    __array_ufunc__ = None

    def __init__(
        self,
        data: Point,
        payload: Optional[T] = None,
        left: Optional[KDNode[T]] = None,
        right: Optional[KDNode[T]] = None,
        parent: Optional[KDNode[T]] = None,
        discriminator: int = 0,
    ):
        """
        Initialize a node.

        Args:
            data: Coordinates of the node
            payload: Data associated with the point
            left: Left child
            right: Right child
            parent: Parent node (held weakly)
            discriminator: Index of the coordinate used to split children
        """
        self._data = np.array(data, dtype=np.float64).ravel()
        self._payload = payload
        self._left = left
        self._right = right
        self._parent_ref = weakref.ref(parent) if parent is not None else None
        self._discriminator = discriminator

    # Structure

    @property
    def left(self) -> Optional[KDNode[T]]:
        return self._left

    @property
    def right(self) -> Optional[KDNode[T]]:
        return self._right

    @property
    def parent(self) -> Optional[KDNode[T]]:
        """Parent node, or None for the root (or if the parent was released)."""
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    def _set_left(self, node: Optional[KDNode[T]]) -> None:
        self._left = node

    def _set_right(self, node: Optional[KDNode[T]]) -> None:
        self._right = node

    def _set_parent(self, node: Optional[KDNode[T]]) -> None:
        self._parent_ref = weakref.ref(node) if node is not None else None

    def _set_discriminator(self, discriminator: int) -> None:
        self._discriminator = discriminator

    def get_children(self) -> List[KDNode[T]]:
        """Return existing children, left first."""
        return [child for child in (self._left, self._right) if child is not None]

    # Content

    @property
    def payload(self) -> Optional[T]:
        return self._payload

    @property
    def data(self) -> np.ndarray:
        """Coordinates of the node.

        The array is mutable; changing the discriminator coordinate of a node
        that is already in a tree breaks the tree ordering.
        """
        return self._data

    @property
    def data_view(self) -> np.ndarray:
        """Read-only view of the coordinates."""
        view = self._data.view()
        view.flags.writeable = False
        return view

    @property
    def discriminator(self) -> int:
        return self._discriminator

    @property
    def dimension(self) -> int:
        return self._data.shape[0]

    def get_value(self, discriminator: Optional[int] = None) -> float:
        """Coordinate along the node's discriminator (or the given one)."""
        if discriminator is None:
            discriminator = self._discriminator
        return float(self._data[discriminator])

    # One-dimensional comparison with a point

    def __lt__(self, point: Point) -> bool:
        if isinstance(point, KDNode):
            return NotImplemented
        return self.get_value() < point[self._discriminator]

    def __gt__(self, point: Point) -> bool:
        if isinstance(point, KDNode):
            return NotImplemented
        return self.get_value() > point[self._discriminator]

    def __le__(self, point: Point) -> bool:
        if isinstance(point, KDNode):
            return NotImplemented
        return self.get_value() <= point[self._discriminator]

    def __ge__(self, point: Point) -> bool:
        if isinstance(point, KDNode):
            return NotImplemented
        return self.get_value() >= point[self._discriminator]

    def __eq__(self, point: object) -> bool:
        if isinstance(point, KDNode):
            return NotImplemented
        try:
            return bool(self.get_value() == point[self._discriminator])
        except (TypeError, IndexError, KeyError):
            return NotImplemented

    __hash__ = object.__hash__

    def __repr__(self) -> str:
        return (
            f"KDNode(data={self._data.tolist()}, discriminator={self._discriminator}, "
            f"payload={self._payload!r})"
        )

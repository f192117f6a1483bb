"""Spatial containers: KD tree and its nodes."""

from .kdnode import KDNode
from .kdtree import KDTree

__all__ = ["KDNode", "KDTree"]

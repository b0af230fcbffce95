"""Axis-aligned bounding-volume hierarchy for nearest-point queries.

The tree is built once over a fixed triangle set and is read-only
afterwards, so any number of threads may query it at the same time.

A query carries a mutable search radius.  Traversal visits every triangle
whose box lies within the current radius of the query point, handing it to
a caller-supplied callback; the callback shrinks ``query.radius`` when it
finds something closer and returns ``True``.  Boxes farther than the radius
are pruned, nearer children are visited first, and traversal stops as soon
as the radius reaches zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List

import numpy as np


@dataclass
class PointQuery:
    """Query point plus the shrinking search radius."""

    point: np.ndarray
    radius: float = float("inf")


QueryCallback = Callable[[PointQuery, int], bool]


def _box_distance(point: np.ndarray, lo: np.ndarray, hi: np.ndarray) -> float:
    d = np.maximum(np.maximum(lo - point, point - hi), 0.0)
    return float(np.sqrt(d @ d))


class TriangleBVH:
    """Median-split AABB tree over triangles.

    Parameters
    ----------
    vertices:
        ``(V, 3)`` vertex positions.
    triangles:
        ``(F, 3)`` vertex indices.
    leaf_size:
        Maximum number of triangles per leaf.
    """

    def __init__(self, vertices: np.ndarray, triangles: np.ndarray, leaf_size: int = 4) -> None:
        if leaf_size < 1:
            raise ValueError("leaf_size must be at least 1")
        corners = np.asarray(vertices, dtype=np.float64)[np.asarray(triangles)]  # (F, 3, 3)
        self._tri_lo = corners.min(axis=1)
        self._tri_hi = corners.max(axis=1)
        centroids = corners.mean(axis=1)
        self.leaf_size = leaf_size

        # Flat node arrays; a leaf has left == -1 and owns prims[start:start+count].
        self._lo: List[np.ndarray] = []
        self._hi: List[np.ndarray] = []
        self._left: List[int] = []
        self._right: List[int] = []
        self._start: List[int] = []
        self._count: List[int] = []
        self.prims = np.arange(len(corners))
        if len(corners):
            self._build(centroids, 0, len(corners))

    def __len__(self) -> int:
        return len(self.prims)

    @property
    def node_count(self) -> int:
        return len(self._lo)

    def _new_node(self, start: int, stop: int) -> int:
        ids = self.prims[start:stop]
        self._lo.append(self._tri_lo[ids].min(axis=0))
        self._hi.append(self._tri_hi[ids].max(axis=0))
        self._left.append(-1)
        self._right.append(-1)
        self._start.append(start)
        self._count.append(stop - start)
        return len(self._lo) - 1

    def _build(self, centroids: np.ndarray, start: int, stop: int) -> int:
        node = self._new_node(start, stop)
        if stop - start <= self.leaf_size:
            return node
        ids = self.prims[start:stop]
        spread = centroids[ids].max(axis=0) - centroids[ids].min(axis=0)
        axis = int(np.argmax(spread))
        order = np.argsort(centroids[ids, axis], kind="stable")
        self.prims[start:stop] = ids[order]
        mid = (start + stop) // 2
        self._left[node] = self._build(centroids, start, mid)
        self._right[node] = self._build(centroids, mid, stop)
        return node

    def point_query(self, query: PointQuery, callback: QueryCallback) -> bool:
        """Run a shrinking-radius query; returns ``True`` if any callback improved it."""
        if not self._lo:
            return False
        point = np.asarray(query.point, dtype=np.float64)
        improved = False
        stack = [(0, _box_distance(point, self._lo[0], self._hi[0]))]
        while stack:
            node, dist = stack.pop()
            if dist > query.radius:
                continue
            left = self._left[node]
            if left < 0:
                start = self._start[node]
                for prim in self.prims[start:start + self._count[node]]:
                    if callback(query, int(prim)):
                        improved = True
                        if query.radius <= 0.0:
                            return True
                continue
            right = self._right[node]
            dl = _box_distance(point, self._lo[left], self._hi[left])
            dr = _box_distance(point, self._lo[right], self._hi[right])
            # pushed last is popped first
            if dl <= dr:
                stack.append((right, dr))
                stack.append((left, dl))
            else:
                stack.append((left, dl))
                stack.append((right, dr))
        return improved

from __future__ import annotations

"""Dense arena storing the relational graph and per-node state."""

import heapq
import logging
import math
from collections import deque
from typing import Iterable, Iterator, Tuple

import networkx as nx
import numpy as np

from .node_state import NodeState

logger = logging.getLogger(__name__)

#: Shortest signal length of one edge, so full-weight edges still take time
MIN_EDGE_LENGTH = 1e-6


class SpacetimeGraph:
    """Weighted undirected graph with gauge phases on edges.

    Nodes are dense integer indices ``0..N-1``. Adjacency, weights and phases
    are ``N x N`` arrays; the phase matrix is antisymmetric so that
    ``phases[i, j] == -phases[j, i]``. Any change to adjacency must be
    followed by :meth:`invalidate_topology` which bumps
    :attr:`topology_version` and drops derived caches.

    Parameters
    ----------
    n:
        Number of nodes.
    """

    def __init__(self, n: int) -> None:
        if n < 0:
            raise ValueError("node count must be non-negative")
        self.n = int(n)
        self.edges = np.zeros((n, n), dtype=bool)
        self.weights = np.zeros((n, n), dtype=float)
        self.phases = np.zeros((n, n), dtype=float)
        self.degree = np.zeros(n, dtype=np.int64)
        self.topology_version = 0

        # per-node state, struct-of-arrays
        self.state = np.full(n, int(NodeState.REST), dtype=np.int8)
        self.refractory_counter = np.zeros(n, dtype=np.int64)
        self.proper_time = np.zeros(n, dtype=float)
        self.next_update_time = np.zeros(n, dtype=float)
        self.time_dilation = np.ones(n, dtype=float)
        self.local_potential = np.zeros(n, dtype=float)

        self._parity: np.ndarray | None = None
        self._parity_version = -1

    # ------------------------------------------------------------------
    @classmethod
    def ring(cls, n: int, weight: float = 0.5) -> "SpacetimeGraph":
        """Return a cycle graph of ``n`` nodes with uniform ``weight``."""

        g = cls(n)
        for i in range(n):
            g.add_edge(i, (i + 1) % n, weight)
        return g

    @classmethod
    def from_edges(
        cls, n: int, edges: Iterable[Tuple[int, int, float]]
    ) -> "SpacetimeGraph":
        """Build a graph from ``(i, j, weight)`` triples."""

        g = cls(n)
        for i, j, w in edges:
            g.add_edge(i, j, w)
        return g

    # ------------------------------------------------------------------
    def valid_node(self, i: object) -> bool:
        """Return ``True`` if ``i`` is an in-range integer node index."""

        if isinstance(i, bool) or not isinstance(i, (int, np.integer)):
            return False
        return 0 <= int(i) < self.n

    def valid_pair(self, i: object, j: object) -> bool:
        """Return ``True`` for two distinct valid node indices."""

        return self.valid_node(i) and self.valid_node(j) and int(i) != int(j)

    def has_edge(self, i: int, j: int) -> bool:
        if not self.valid_pair(i, j):
            return False
        return bool(self.edges[i, j])

    def neighbors(self, i: int) -> np.ndarray:
        """Return the sorted neighbour indices of ``i``."""

        return np.flatnonzero(self.edges[i])

    def iter_edges(self) -> Iterator[Tuple[int, int]]:
        """Yield each undirected edge once as ``(i, j)`` with ``i < j``."""

        rows, cols = np.nonzero(np.triu(self.edges, k=1))
        for i, j in zip(rows.tolist(), cols.tolist()):
            yield i, j

    @property
    def edge_count(self) -> int:
        return int(np.triu(self.edges, k=1).sum())

    def total_weight(self) -> float:
        """Return the summed weight of all undirected edges."""

        return float(np.triu(self.weights, k=1).sum())

    # ------------------------------------------------------------------
    # mutation
    def add_edge(self, i: int, j: int, weight: float, phase: float = 0.0) -> bool:
        """Insert edge ``(i, j)``. Returns ``False`` for invalid pairs."""

        if not self.valid_pair(i, j):
            logger.debug("ignoring add_edge(%r, %r)", i, j)
            return False
        if not self.edges[i, j]:
            self.degree[i] += 1
            self.degree[j] += 1
        self.edges[i, j] = self.edges[j, i] = True
        self.set_weight(i, j, weight)
        self.set_phase(i, j, phase)
        self.invalidate_topology()
        return True

    def remove_edge(self, i: int, j: int) -> bool:
        """Delete edge ``(i, j)``. Returns ``False`` if it did not exist."""

        if not self.has_edge(i, j):
            return False
        self.edges[i, j] = self.edges[j, i] = False
        self.weights[i, j] = self.weights[j, i] = 0.0
        self.phases[i, j] = self.phases[j, i] = 0.0
        self.degree[i] -= 1
        self.degree[j] -= 1
        self.invalidate_topology()
        return True

    def set_weight(self, i: int, j: int, weight: float) -> None:
        w = float(weight)
        self.weights[i, j] = self.weights[j, i] = w

    def set_phase(self, i: int, j: int, phase: float) -> None:
        """Store ``phase`` for ``i -> j`` and its negation for ``j -> i``."""

        self.phases[i, j] = float(phase)
        self.phases[j, i] = -float(phase)

    def invalidate_topology(self) -> None:
        self.topology_version += 1
        self._parity = None

    def recalculate_all_degrees(self) -> None:
        """Recompute :attr:`degree` from adjacency."""

        self.degree = self.edges.sum(axis=1).astype(np.int64)

    # ------------------------------------------------------------------
    # parity
    def parity(self) -> np.ndarray:
        """Return a BFS two-colouring of the nodes.

        Each connected component is coloured from its lowest index. On
        non-bipartite graphs some edges join equal colours; see
        :meth:`frustrated_edge_count`.
        """

        if self._parity is not None and self._parity_version == self.topology_version:
            return self._parity
        colours = np.full(self.n, -1, dtype=np.int8)
        for start in range(self.n):
            if colours[start] >= 0:
                continue
            colours[start] = 0
            queue = deque([start])
            while queue:
                u = queue.popleft()
                for v in self.neighbors(u):
                    if colours[v] < 0:
                        colours[v] = 1 - colours[u]
                        queue.append(int(v))
        self._parity = colours
        self._parity_version = self.topology_version
        return colours

    def same_parity(self, i: int, j: int) -> bool:
        p = self.parity()
        return bool(p[i] == p[j])

    def frustrated_edge_count(self) -> int:
        """Number of edges whose endpoints share a parity colour."""

        p = self.parity()
        return sum(1 for i, j in self.iter_edges() if p[i] == p[j])

    def is_bipartite(self) -> bool:
        return self.frustrated_edge_count() == 0

    # ------------------------------------------------------------------
    # distances
    def hop_distance(self, a: int, b: int, limit: int | None = None) -> int:
        """Return the BFS hop count between ``a`` and ``b``.

        Search stops once ``limit`` hops are exceeded; in that case, or when
        ``b`` is unreachable, ``limit + 1`` is returned (``-1`` without a
        limit).
        """

        miss = -1 if limit is None else limit + 1
        if not (self.valid_node(a) and self.valid_node(b)):
            return miss
        if a == b:
            return 0
        seen = np.zeros(self.n, dtype=bool)
        seen[a] = True
        frontier = [a]
        depth = 0
        while frontier:
            depth += 1
            if limit is not None and depth > limit:
                return miss
            nxt: list[int] = []
            for u in frontier:
                for v in self.neighbors(u):
                    if v == b:
                        return depth
                    if not seen[v]:
                        seen[v] = True
                        nxt.append(int(v))
            frontier = nxt
        return miss

    def weighted_distances(self, source: int) -> np.ndarray:
        """Dijkstra distances from ``source`` with edge length ``-ln(w)``.

        Lengths are floored at :data:`MIN_EDGE_LENGTH`. Unreachable nodes are
        ``inf``. Edges with non-positive weight are treated as absent.
        """

        dist = np.full(self.n, math.inf)
        if not self.valid_node(source):
            return dist
        dist[source] = 0.0
        heap = [(0.0, source)]
        while heap:
            d, u = heapq.heappop(heap)
            if d > dist[u]:
                continue
            for v in self.neighbors(u):
                w = self.weights[u, v]
                if w <= 0.0:
                    continue
                nd = d + max(-math.log(min(w, 1.0)), MIN_EDGE_LENGTH)
                if nd < dist[v]:
                    dist[v] = nd
                    heapq.heappush(heap, (nd, int(v)))
        return dist

    # ------------------------------------------------------------------
    def to_networkx(self) -> nx.Graph:
        """Return a :class:`networkx.Graph` view with ``weight`` attributes."""

        g = nx.Graph()
        g.add_nodes_from(range(self.n))
        for i, j in self.iter_edges():
            g.add_edge(i, j, weight=float(self.weights[i, j]))
        return g


__all__ = ["SpacetimeGraph"]

"""Gauge invariance checks for edge removal."""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import List, Optional, Tuple

import numpy as np

from ..config import Config
from .graph import SpacetimeGraph

logger = logging.getLogger(__name__)


def normalize_phase(phase: float) -> float:
    """Wrap ``phase`` into ``(-pi, pi]``."""

    wrapped = math.fmod(phase + math.pi, 2.0 * math.pi)
    if wrapped <= 0.0:
        wrapped += 2.0 * math.pi
    return wrapped - math.pi


class GaugeSafetyGuard:
    """Veto edge removals that would strand gauge flux.

    Removing an edge that closes triangles carrying non-trivial Wilson
    phase is allowed only if another path between the endpoints exists,
    along which the flux can be redistributed. A bridge carrying flux is
    never removed.

    Parameters
    ----------
    graph:
        Graph whose adjacency and edge phases are inspected.
    tolerance:
        Flux magnitude regarded as trivial. Defaults to
        ``Config.gauge["tolerance"]``.
    """

    def __init__(self, graph: SpacetimeGraph, tolerance: Optional[float] = None) -> None:
        self.graph = graph
        self._tolerance = tolerance

    @property
    def tolerance(self) -> float:
        if self._tolerance is not None:
            return self._tolerance
        return float(Config.gauge.get("tolerance", 0.1))

    # ------------------------------------------------------------------
    def find_triangles(self, i: int, j: int) -> List[Tuple[int, int, int]]:
        """Return the triangles ``(i, j, k)`` closed by edge ``(i, j)``."""

        g = self.graph
        common = np.flatnonzero(g.edges[i] & g.edges[j])
        return [(i, j, int(k)) for k in common if k != i and k != j]

    def triangle_phase(self, i: int, j: int, k: int) -> float:
        """Wilson loop phase ``phi_ij + phi_jk + phi_ki`` in ``(-pi, pi]``."""

        p = self.graph.phases
        return normalize_phase(p[i, j] + p[j, k] + p[k, i])

    def find_alternate_path(self, i: int, j: int) -> Optional[List[int]]:
        """BFS path from ``i`` to ``j`` that avoids the direct edge.

        Returns the node sequence including both endpoints, or ``None``.
        """

        g = self.graph
        parent = {i: -1}
        queue = deque([i])
        while queue:
            u = queue.popleft()
            for v in g.neighbors(u):
                v = int(v)
                if u == i and v == j:
                    continue
                if v in parent:
                    continue
                parent[v] = u
                if v == j:
                    path = [j]
                    while parent[path[-1]] != -1:
                        path.append(parent[path[-1]])
                    return path[::-1]
                queue.append(v)
        return None

    def has_alternate_path(self, i: int, j: int) -> bool:
        return self.find_alternate_path(i, j) is not None

    # ------------------------------------------------------------------
    def edge_wilson_flux(self, i: int, j: int) -> float:
        """Mean absolute triangle phase through ``(i, j)``."""

        triangles = self.find_triangles(i, j)
        if not triangles:
            return abs(normalize_phase(self.graph.phases[i, j]))
        return float(np.mean([abs(self.triangle_phase(*t)) for t in triangles]))

    def compute_edge_flux(self, i: int, j: int) -> float:
        """Signed mean triangle phase through ``(i, j)``."""

        triangles = self.find_triangles(i, j)
        if not triangles:
            return normalize_phase(self.graph.phases[i, j])
        return float(np.mean([self.triangle_phase(*t) for t in triangles]))

    def is_removal_safe(self, i: int, j: int) -> bool:
        """Return ``True`` if removing ``(i, j)`` keeps gauge invariance.

        Absent edges are trivially safe. Without triangles the edge's own
        phase must be trivial. With triangles, any non-trivial Wilson loop
        requires an alternate path for the flux.
        """

        g = self.graph
        if not g.has_edge(i, j):
            return True
        triangles = self.find_triangles(i, j)
        if not triangles:
            return abs(normalize_phase(g.phases[i, j])) < self.tolerance
        tol = self.tolerance
        for t in triangles:
            if abs(self.triangle_phase(*t)) > tol:
                if not self.has_alternate_path(i, j):
                    logger.debug("removal of (%d, %d) vetoed: flux on bridge", i, j)
                    return False
                break
        return True

    def would_create_topological_defect(self, i: int, j: int) -> bool:
        """Return ``True`` for a bridge carrying more than ``pi/4`` of flux."""

        if not self.graph.has_edge(i, j):
            return False
        if abs(self.compute_edge_flux(i, j)) <= math.pi / 4:
            return False
        return not self.has_alternate_path(i, j)

    def redistribute_flux(self, i: int, j: int) -> bool:
        """Spread the phase of ``(i, j)`` along an alternate path.

        The path ``i -> ... -> j`` receives ``phi_ij`` split evenly across
        its edges, so every loop that used the removed edge keeps its
        holonomy. Returns ``False`` if nothing was redistributed.
        """

        g = self.graph
        if not g.has_edge(i, j):
            return False
        flux = g.phases[i, j]
        if abs(flux) < 1e-12:
            return False
        path = self.find_alternate_path(i, j)
        if path is None or len(path) < 2:
            return False
        share = flux / (len(path) - 1)
        for a, b in zip(path, path[1:]):
            g.set_phase(a, b, normalize_phase(g.phases[a, b] + share))
        return True

    def total_flux(self) -> float:
        """Sum of absolute triangle phases over all triangles."""

        g = self.graph
        total = 0.0
        for i, j in g.iter_edges():
            for _, _, k in self.find_triangles(i, j):
                if k > j:
                    total += abs(self.triangle_phase(i, j, k))
        return total


__all__ = ["GaugeSafetyGuard", "normalize_phase"]

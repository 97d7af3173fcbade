from __future__ import annotations

"""Local action differences for single-edge changes."""

import math
from typing import Dict, Optional, Tuple

from ..config import Config
from ..geometry.curvature import forman_ricci
from .backend import sanitize
from .fields import FieldModule
from .graph import SpacetimeGraph


class LocalAction:
    """Evaluate ``ΔS`` for changing the weight of one edge.

    Only the two endpoints and their neighbourhoods are read, so evaluation
    cost is independent of graph size except for the global volume terms,
    which use cached totals from the arena.

    The action change is the sum of

    ``geometry``
        Einstein-Hilbert analogue ``-(1/G) Δ(w R)`` using Forman-Ricci
        curvature.
    ``matter``
        Smoothed stress-energy on the edge times ``Δw``.
    ``volume``
        Quadratic restoring terms pulling total weight and edge count toward
        their targets, plus a cosmological constant term.
    ``field``
        Scalar gradient energy ``0.5 Δw (φ_i - φ_j)^2``.
    ``chirality``
        Soft penalty for edges joining nodes of equal bipartite parity.
    """

    def __init__(self, graph: SpacetimeGraph, fields: Optional[FieldModule] = None) -> None:
        self.graph = graph
        self.fields = fields
        self._stress_ema: Dict[Tuple[int, int], float] = {}

    @staticmethod
    def _param(name: str, default: float) -> float:
        return float(Config.topology.get(name, default))

    # ------------------------------------------------------------------
    def delta_geometry(self, i: int, j: int, new_weight: float) -> float:
        g = self.graph
        old = g.weights[i, j] if g.edges[i, j] else 0.0
        r_old = forman_ricci(g, i, j, old)
        r_new = forman_ricci(g, i, j, new_weight)
        coupling = self._param("gravitational_coupling", 0.1)
        return -(1.0 / coupling) * (new_weight * r_new - old * r_old)

    def averaged_stress_energy(self, i: int, j: int) -> float:
        """Exponential moving average of the edge stress-energy."""

        if self.fields is None:
            return 0.0
        key = (min(i, j), max(i, j))
        current = sanitize(self.fields.stress_energy(i, j))
        alpha = self._param("stress_ema_alpha", 0.05)
        prev = self._stress_ema.get(key)
        value = current if prev is None else alpha * current + (1.0 - alpha) * prev
        self._stress_ema[key] = value
        return value

    def delta_matter(self, i: int, j: int, dw: float) -> float:
        scale = self._param("curvature_term_scale", 0.05)
        return self.averaged_stress_energy(i, j) * dw * scale

    def delta_volume(self, edge_delta: int, dw: float) -> float:
        """Volume penalty change for ``Δw`` and an edge count change."""

        g = self.graph
        cosmological = self._param("cosmological_constant", 1e-4)
        lam_w = self._param("volume_lambda", 0.0)
        lam_e = self._param("edge_count_lambda", 0.0)
        if lam_w <= 0 and lam_e <= 0:
            return cosmological * dw
        delta = 0.0
        if lam_w > 0:
            dv = g.total_weight() - self._param("target_volume", 0.0)
            delta += lam_w * ((dv + dw) ** 2 - dv**2)
        if lam_e > 0 and edge_delta:
            de = g.edge_count - self._param("target_edge_count", 0.0)
            delta += lam_e * ((de + edge_delta) ** 2 - de**2)
        return delta + cosmological * dw * 0.1

    def delta_field(self, i: int, j: int, dw: float) -> float:
        if self.fields is None:
            return 0.0
        phi = self.fields.scalar_field()
        return 0.5 * dw * (phi[i] - phi[j]) ** 2

    def delta_chirality(self, i: int, j: int, dw: float) -> float:
        if not self.graph.same_parity(i, j):
            return 0.0
        return self._param("chirality_penalty", 1.0 / 137.0) * abs(dw)

    # ------------------------------------------------------------------
    def delta(self, i: int, j: int, new_weight: float) -> float:
        """Return the total ``ΔS`` of setting edge ``(i, j)`` to ``new_weight``.

        Invalid pairs give ``inf`` so that callers always reject them.
        """

        g = self.graph
        if not g.valid_pair(i, j):
            return math.inf
        exists = bool(g.edges[i, j])
        old = g.weights[i, j] if exists else 0.0
        dw = new_weight - old
        if abs(dw) < 1e-12:
            return 0.0
        if not exists and new_weight > 0:
            edge_delta = 1
        elif exists and new_weight <= 0:
            edge_delta = -1
        else:
            edge_delta = 0
        total = (
            self.delta_geometry(i, j, new_weight)
            + self.delta_matter(i, j, dw)
            + self.delta_volume(edge_delta, dw)
            + self.delta_field(i, j, dw)
            + self.delta_chirality(i, j, dw)
        )
        if math.isnan(total):
            return math.inf
        return total

    def forget(self, i: int, j: int) -> None:
        """Drop the smoothed stress history of a removed edge."""

        self._stress_ema.pop((min(i, j), max(i, j)), None)


__all__ = ["LocalAction"]

from __future__ import annotations

"""Field collaborators consulted by the scheduler and topology engine.

The core never evolves fields itself. It reads curvature, stress-energy,
scalar values and masses through :class:`FieldModule` and asks it to
capture the energy stored on an edge before that edge is deleted.
:class:`GraphFields` is the default implementation used when no external
field solver is attached.
"""

import math
from typing import Optional, Protocol

import numpy as np

from ..geometry.curvature import forman_ricci, node_curvature
from .backend import evolve_potential, sanitize, sanitize_array
from .graph import SpacetimeGraph


class FieldModule(Protocol):
    def local_curvature(self, node: int) -> float: ...

    def edge_curvature(self, i: int, j: int) -> float: ...

    def stress_energy(self, i: int, j: int) -> float: ...

    def scalar_field(self) -> np.ndarray: ...

    def node_mass(self) -> Optional[np.ndarray]: ...

    def capture_edge_energy(self, i: int, j: int) -> float: ...

    def measure(self, node: int) -> float: ...

    def relax(self, dt: float) -> None: ...


class GraphFields:
    """Minimal fields living directly on the graph arena.

    Parameters
    ----------
    graph:
        Graph the fields are defined on.
    masses:
        Optional per-node mass. Defaults to zeros.
    scalar:
        Optional per-node scalar field value. Defaults to zeros.
    gauge_weight, scalar_weight, mass_weight:
        Relative weights of the gauge, scalar-gradient and mass
        contributions to edge energy.
    """

    def __init__(
        self,
        graph: SpacetimeGraph,
        masses: Optional[np.ndarray] = None,
        scalar: Optional[np.ndarray] = None,
        *,
        gauge_weight: float = 1.0,
        scalar_weight: float = 1.0,
        mass_weight: float = 1.0,
    ) -> None:
        self.graph = graph
        n = graph.n
        self.masses = sanitize_array(masses) if masses is not None else np.zeros(n)
        self.scalar = sanitize_array(scalar) if scalar is not None else np.zeros(n)
        self.amplitude = np.ones(n, dtype=complex)
        self.gauge_weight = gauge_weight
        self.scalar_weight = scalar_weight
        self.mass_weight = mass_weight

    # curvature ---------------------------------------------------------
    def local_curvature(self, node: int) -> float:
        return sanitize(node_curvature(self.graph, node))

    def edge_curvature(self, i: int, j: int) -> float:
        return sanitize(forman_ricci(self.graph, i, j))

    # energy ------------------------------------------------------------
    def stress_energy(self, i: int, j: int) -> float:
        """Instantaneous energy density ``T_ij`` on edge ``(i, j)``."""

        g = self.graph
        gauge = 1.0 - math.cos(g.phases[i, j]) if g.edges[i, j] else 0.0
        grad = 0.5 * (self.scalar[i] - self.scalar[j]) ** 2
        mass = 0.5 * (self.masses[i] + self.masses[j])
        return sanitize(
            self.gauge_weight * gauge + self.scalar_weight * grad + self.mass_weight * mass
        )

    def capture_edge_energy(self, i: int, j: int) -> float:
        """Energy released when edge ``(i, j)`` is removed."""

        g = self.graph
        if not g.edges[i, j]:
            return 0.0
        w = g.weights[i, j]
        gauge = self.gauge_weight * (1.0 - math.cos(g.phases[i, j]))
        grad = self.scalar_weight * 0.5 * (self.scalar[i] - self.scalar[j]) ** 2
        return max(0.0, sanitize(w * (gauge + grad)))

    # node quantities ---------------------------------------------------
    def scalar_field(self) -> np.ndarray:
        return self.scalar

    def node_mass(self) -> Optional[np.ndarray]:
        return self.masses

    def measure(self, node: int) -> float:
        """Normalise the amplitude of ``node`` and return its prior norm."""

        amp = self.amplitude[node]
        norm = abs(amp)
        if norm > 0 and math.isfinite(norm):
            self.amplitude[node] = amp / norm
        else:
            self.amplitude[node] = 1.0
            norm = 0.0
        return float(norm)

    def relax(self, dt: float) -> None:
        """Diffuse and decay the local signal potential."""

        decay = min(max(dt, 0.0), 1.0)
        self.graph.local_potential[:] = evolve_potential(
            self.graph.local_potential, self.graph.weights, decay=decay
        )


__all__ = ["FieldModule", "GraphFields"]

from __future__ import annotations

"""Excitable-medium state machine for graph nodes."""

import math
from enum import IntEnum
from typing import TYPE_CHECKING, List, Optional

from ..config import Config

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .fields import FieldModule
    from .graph import SpacetimeGraph


class NodeState(IntEnum):
    REST = 0
    EXCITED = 1
    REFRACTORY = 2


class NodeStateMachine:
    """Drive ``REST -> EXCITED -> REFRACTORY -> REST`` transitions.

    The machine only writes the updated node's own entries in the graph
    arena. Signals are returned to the caller as lists of target ids so that
    nodes of one colour class can be updated concurrently and the signals
    applied afterwards. Random draws are passed in for the same reason.

    Parameters
    ----------
    graph:
        Arena holding node state arrays.
    fields:
        Optional collaborator providing curvature and mass. Without one the
        spontaneous excitation and mass-dependent refractory terms are zero.
    """

    def __init__(
        self, graph: "SpacetimeGraph", fields: Optional["FieldModule"] = None
    ) -> None:
        self.graph = graph
        self.fields = fields

    @property
    def base_refractory_steps(self) -> int:
        return int(Config.node_state.get("base_refractory_steps", 2))

    # ------------------------------------------------------------------
    def excitation_probability(self, node: int) -> float:
        """Return the probability that a resting ``node`` fires this update."""

        g = self.graph
        curvature = self.fields.local_curvature(node) if self.fields else 0.0
        p_spont = min(max(1.0 - math.exp(-abs(curvature)), 0.0), 0.5)

        nbrs = g.neighbors(node)
        p_neigh = 0.0
        if len(nbrs):
            excited = nbrs[g.state[nbrs] == NodeState.EXCITED]
            if len(excited):
                density = len(excited) / len(nbrs)
                mean_w = float(g.weights[node, excited].mean())
                p_neigh = 1.0 - math.exp(-density * mean_w)

        total = p_spont + p_neigh
        potential = g.local_potential[node]
        if potential > 0:
            total *= 1.0 + potential
        return min(max(total, 0.0), 0.99)

    def refractory_period(self, node: int) -> int:
        base = self.base_refractory_steps
        if self.fields is None:
            return base
        masses = self.fields.node_mass()
        if masses is None or len(masses) == 0:
            return base
        avg = float(masses.mean())
        if avg <= 0:
            return base
        return base + max(0, int(round(masses[node] / avg)))

    def update(self, node: int, u: float) -> List[int]:
        """Advance ``node`` by one update using the uniform draw ``u``.

        Returns
        -------
        list[int]
            Neighbours that should receive a signal from ``node``.
        """

        g = self.graph
        state = NodeState(int(g.state[node]))
        if state is NodeState.REFRACTORY:
            g.refractory_counter[node] -= 1
            if g.refractory_counter[node] <= 0:
                g.refractory_counter[node] = 0
                g.state[node] = NodeState.REST
            return []
        if state is NodeState.EXCITED:
            g.state[node] = NodeState.REFRACTORY
            g.refractory_counter[node] = self.refractory_period(node)
            return [int(v) for v in g.neighbors(node)]
        if u < self.excitation_probability(node):
            g.state[node] = NodeState.EXCITED
        return []

    def on_signal(self, target: int, source: int, u: float) -> List[int]:
        """Handle a signal arriving at ``target`` from ``source``.

        An excited or refractory source excites a resting target with
        probability ``w * signal_excitation_probability``. The arriving
        signal always raises the target's local potential by
        ``w * signal_strength_factor``. Returns the neighbours to signal when
        the target fired.
        """

        g = self.graph
        if not g.valid_pair(source, target):
            return []
        cfg = Config.scheduler
        w = float(g.weights[source, target])
        fired: List[int] = []
        src_state = int(g.state[source])
        if (
            src_state in (NodeState.EXCITED, NodeState.REFRACTORY)
            and g.state[target] == NodeState.REST
            and u < w * cfg.get("signal_excitation_probability", 0.1)
        ):
            g.state[target] = NodeState.EXCITED
            fired = [int(v) for v in g.neighbors(target)]
        g.local_potential[target] += w * cfg.get("signal_strength_factor", 1.0)
        return fired


__all__ = ["NodeState", "NodeStateMachine"]

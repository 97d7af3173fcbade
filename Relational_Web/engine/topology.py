"""Metropolis-Hastings edge mutation under causal, gauge and energy limits."""

from __future__ import annotations

import logging
import math
import random
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..config import Config
from .action import LocalAction
from .fields import FieldModule
from .gauge import GaugeSafetyGuard, normalize_phase
from .graph import SpacetimeGraph
from .ledger import EnergyLedger
from .logging import log_model
from .logging_models import TopologyChangeLog, TopologyChangePayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EdgeProposal:
    """A single candidate change to edge ``(i, j)``."""

    i: int
    j: int
    old_weight: float
    new_weight: float
    is_create: bool = False
    is_remove: bool = False

    @property
    def delta_weight(self) -> float:
        return self.new_weight - self.old_weight


@dataclass
class MutationStats:
    """Counters describing the outcome of Metropolis steps."""

    attempts: int = 0
    accepted: int = 0
    created: int = 0
    removed: int = 0
    reweighted: int = 0
    rejected: Dict[str, int] = field(
        default_factory=lambda: {
            "budget": 0,
            "causality": 0,
            "gauge": 0,
            "action": 0,
            "invalid": 0,
        }
    )

    def reject(self, reason: str) -> bool:
        self.rejected[reason] = self.rejected.get(reason, 0) + 1
        return False

    def as_dict(self) -> dict:
        return {
            "attempts": self.attempts,
            "accepted": self.accepted,
            "created": self.created,
            "removed": self.removed,
            "reweighted": self.reweighted,
            **{f"rejected_{k}": v for k, v in self.rejected.items()},
        }


class TopologyMutationEngine:
    """Propose and commit single-edge changes.

    Every random draw is paid for from the :class:`EnergyLedger`; when the
    pool cannot cover a draw the step aborts without touching the graph.
    Creations must lie inside the causal horizon and pay
    ``edge_creation_cost``. Removals must pass the
    :class:`GaugeSafetyGuard`. Surviving proposals are accepted with the
    Metropolis rule on the local action change.

    Parameters
    ----------
    graph:
        Arena to mutate. The engine should be the only writer of adjacency.
    ledger:
        Vacuum energy pool gating random draws and edge creation.
    fields:
        Optional field collaborator for the matter and field action terms
        and for energy captured from removed edges.
    rng:
        Random source. Defaults to a generator seeded from
        ``Config.random_seed``.
    """

    def __init__(
        self,
        graph: SpacetimeGraph,
        ledger: EnergyLedger,
        fields: Optional[FieldModule] = None,
        rng: Optional[random.Random] = None,
        gauge_guard: Optional[GaugeSafetyGuard] = None,
    ) -> None:
        self.graph = graph
        self.ledger = ledger
        self.fields = fields
        self.rng = rng or random.Random(Config.random_seed)
        self.gauge_guard = gauge_guard or GaugeSafetyGuard(graph)
        self.action = LocalAction(graph, fields)
        self.stats = MutationStats()

    @staticmethod
    def _param(name: str, default: float) -> float:
        return float(Config.topology.get(name, default))

    # ------------------------------------------------------------------
    # causality
    def shortest_path_hop_count(self, a: int, b: int, limit: int) -> int:
        """BFS hop distance, or ``limit + 1`` when farther or unreachable."""

        return self.graph.hop_distance(a, b, limit)

    def is_causally_allowed(self, i: int, j: int) -> bool:
        """Return ``True`` if ``i`` and ``j`` lie within ``max_hops``."""

        g = self.graph
        if not g.valid_pair(i, j):
            return False
        if g.edges[i, j]:
            return True
        max_hops = int(self._param("max_hops", 3))
        return self.shortest_path_hop_count(i, j, max_hops + 1) <= max_hops

    # ------------------------------------------------------------------
    def _draw(self, context: str) -> Optional[float]:
        """Pay for and return one uniform draw, or ``None`` if unaffordable."""

        if not self.ledger.try_spend_vacuum_energy(self._param("rng_step_cost", 0.001), context):
            return None
        return self.rng.random()

    def quantize(self, weight: float, removing: bool = False) -> float:
        """Round ``weight`` to the weight quantum.

        Positive weights other than removals keep at least one quantum.
        """

        if weight <= 0:
            return 0.0
        quantum = self._param("edge_weight_quantum", 0.01)
        if quantum <= 0:
            return weight
        q = round(weight / quantum) * quantum
        if q < quantum and not removing:
            q = quantum
        return q

    def propose(self) -> Optional[EdgeProposal]:
        """Draw a proposal, paying for each random draw.

        Returns ``None`` when the step aborts before a proposal exists.
        """

        g = self.graph
        rng_cost = self._param("rng_step_cost", 0.001)
        if g.n < 2 or not self.ledger.try_spend_vacuum_energy(rng_cost, "pair_selection"):
            self.stats.reject("budget")
            return None
        i = self.rng.randrange(g.n)
        j = self.rng.randrange(g.n)
        if i == j:
            self.stats.reject("invalid")
            return None

        exists = bool(g.edges[i, j])
        w_old = float(g.weights[i, j]) if exists else 0.0
        u = self._draw("move_selection")
        if u is None:
            self.stats.reject("budget")
            return None

        create = remove = False
        if u < 0.2 and not exists:
            if not self.is_causally_allowed(i, j):
                self.stats.reject("causality")
                return None
            if not self.ledger.can_afford(self._param("edge_creation_cost", 0.1)):
                self.stats.reject("budget")
                return None
            u2 = self._draw("edge_weight")
            if u2 is None:
                self.stats.reject("budget")
                return None
            create = True
            w_new = 0.1 + 0.3 * u2
        elif u < 0.4 and exists and w_old < 0.15:
            if not self.gauge_guard.is_removal_safe(i, j):
                self.stats.reject("gauge")
                return None
            remove = True
            w_new = 0.0
        elif exists:
            u2 = self._draw("reweight")
            if u2 is None:
                self.stats.reject("budget")
                return None
            w_new = min(max(w_old + (2.0 * u2 - 1.0) * 0.1, 0.05), 1.0)
        else:
            self.stats.reject("invalid")
            return None

        w_new = self.quantize(w_new, removing=remove)
        return EdgeProposal(i, j, w_old, w_new, create, remove)

    def accept(self, proposal: EdgeProposal) -> Tuple[Optional[bool], float]:
        """Apply the Metropolis rule.

        Returns ``(accepted, ΔS)`` where ``accepted`` is ``None`` if the pool
        could not pay for the acceptance draw.
        """

        delta = self.action.delta(proposal.i, proposal.j, proposal.new_weight)
        if delta == math.inf:
            return False, delta
        if delta <= 0:
            return True, delta
        u = self._draw("metropolis")
        if u is None:
            return None, delta
        temperature = self._param("temperature", 1.0)
        if temperature <= 0:
            return False, delta
        return u < math.exp(-delta / temperature), delta

    def propose_topology_step(self) -> bool:
        """Run one Metropolis-Hastings step. Returns ``True`` if committed."""

        self.stats.attempts += 1
        proposal = self.propose()
        if proposal is None:
            return False
        accepted, delta = self.accept(proposal)
        if accepted is None:
            return self.stats.reject("budget")
        if not accepted:
            return self.stats.reject("action")
        return self.commit(proposal, delta)

    def commit(self, proposal: EdgeProposal, delta: float = 0.0) -> bool:
        """Apply an accepted proposal to the graph and ledger."""

        g = self.graph
        i, j = proposal.i, proposal.j
        if proposal.is_create:
            cost = self._param("edge_creation_cost", 0.1)
            if not self.ledger.try_spend_vacuum_energy(cost, "edge_creation"):
                return self.stats.reject("budget")
            phase = self.minimal_flux_phase(i, j)
            g.add_edge(i, j, proposal.new_weight, phase)
            self.stats.created += 1
            action = "create"
        elif proposal.is_remove:
            self._remove(i, j, refund=self._param("edge_creation_cost", 0.1))
            self.stats.removed += 1
            action = "remove"
        else:
            g.set_weight(i, j, proposal.new_weight)
            self.stats.reweighted += 1
            action = "reweight"
        self.stats.accepted += 1
        if action != "reweight":
            log_model(
                "event",
                TopologyChangeLog(
                    payload=TopologyChangePayload(
                        i=i,
                        j=j,
                        action=action,
                        old_weight=proposal.old_weight,
                        new_weight=proposal.new_weight,
                        delta_action=delta,
                        topology_version=g.topology_version,
                    )
                ),
                frame=self.stats.attempts,
            )
        return True

    def _remove(self, i: int, j: int, refund: float) -> None:
        self.gauge_guard.redistribute_flux(i, j)
        captured = self.fields.capture_edge_energy(i, j) if self.fields is not None else 0.0
        if captured > 0:
            self.ledger.register_radiation(captured)
        self.ledger.register_radiation(refund)
        self.graph.remove_edge(i, j)
        self.action.forget(i, j)

    def metropolis_sweep(self, attempts: Optional[int] = None) -> int:
        """Run ``attempts`` steps (default ``max(10, N // 10)``)."""

        if attempts is None:
            attempts = max(10, self.graph.n // 10)
        accepted = 0
        for _ in range(attempts):
            if self.propose_topology_step():
                accepted += 1
        return accepted

    # ------------------------------------------------------------------
    def minimal_flux_phase(self, i: int, j: int) -> float:
        """Phase for a new edge ``(i, j)`` minimising triangle flux."""

        g = self.graph
        common = np.flatnonzero(g.edges[i] & g.edges[j])
        if len(common) == 0:
            return 0.0
        p = g.phases
        closing = [-(p[j, k] + p[k, i]) for k in common]
        return normalize_phase(float(np.mean(closing)))

    # ------------------------------------------------------------------
    def _cutoff_candidates(self, edges: List[Tuple[int, int]], threshold: float) -> List[Tuple[int, int]]:
        g = self.graph
        return [
            (i, j)
            for i, j in edges
            if g.weights[i, j] <= threshold and self.gauge_guard.is_removal_safe(i, j)
        ]

    def enforce_planck_cutoff(self) -> int:
        """Remove sub-Planckian edges that are gauge-safe to delete.

        Candidates are found by a read-only parallel scan. Removals are then
        committed on the calling thread; each returns its captured field
        energy plus ``edge_creation_cost * w`` to the ledger. Returns the
        number of removed edges.
        """

        g = self.graph
        threshold = self._param("weight_lower_soft_wall", 0.01) * 1.1
        edges = list(g.iter_edges())
        if not edges:
            return 0
        workers = getattr(Config, "thread_count", None) or 1
        chunks = [edges[k::workers] for k in range(workers)]
        with ThreadPoolExecutor(max_workers=workers) as ex:
            results = list(ex.map(lambda c: self._cutoff_candidates(c, threshold), chunks))
        candidates = sorted(pair for chunk in results for pair in chunk)

        cost = self._param("edge_creation_cost", 0.1)
        removed = 0
        for i, j in candidates:
            # earlier removals may have turned this edge into a bridge
            if not g.edges[i, j] or not self.gauge_guard.is_removal_safe(i, j):
                continue
            self._remove(i, j, refund=cost * g.weights[i, j])
            removed += 1
        if removed:
            logger.debug("planck cutoff removed %d edges", removed)
        return removed


__all__ = ["EdgeProposal", "MutationStats", "TopologyMutationEngine"]

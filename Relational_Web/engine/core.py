"""Facade wiring the graph, ledger, scheduler and topology engine together."""

from __future__ import annotations

import logging
import random
from typing import Optional

from ..config import Config
from .fields import FieldModule, GraphFields
from .gauge import GaugeSafetyGuard
from .graph import SpacetimeGraph
from .ledger import EnergyLedger
from .parallel import ParallelEventEngine
from .scheduler import CausalEventScheduler
from .topology import TopologyMutationEngine

logger = logging.getLogger(__name__)


class SimulationCore:
    """Entry point for driving a relational graph simulation.

    All components share one random generator seeded from
    ``Config.random_seed`` (or ``seed``) so a run is reproducible.

    Parameters
    ----------
    graph:
        Arena to simulate.
    fields:
        Field collaborator. Defaults to :class:`GraphFields` on ``graph``.
    ledger:
        Energy ledger. Defaults to one built from ``Config.ledger``.
    seed:
        Overrides ``Config.random_seed``.
    """

    def __init__(
        self,
        graph: SpacetimeGraph,
        fields: Optional[FieldModule] = None,
        ledger: Optional[EnergyLedger] = None,
        seed: Optional[int] = None,
    ) -> None:
        self.graph = graph
        self.fields = fields if fields is not None else GraphFields(graph)
        self.ledger = ledger if ledger is not None else EnergyLedger.from_config()
        self.rng = random.Random(Config.random_seed if seed is None else seed)
        self.gauge_guard = GaugeSafetyGuard(graph)
        self.scheduler = CausalEventScheduler(graph, fields=self.fields, rng=self.rng)
        self.topology = TopologyMutationEngine(
            graph, self.ledger, self.fields, rng=self.rng, gauge_guard=self.gauge_guard
        )
        self._parallel: Optional[ParallelEventEngine] = None

    # scheduling --------------------------------------------------------
    def schedule_initial(self) -> None:
        self.scheduler.schedule_initial()

    def step_event_based(self) -> bool:
        return self.scheduler.step_event_based()

    def step_event_based_batch(self, n: int) -> int:
        return self.scheduler.step_event_based_batch(n)

    def run_event_based(self, duration: float, max_events: int = 100_000) -> int:
        return self.scheduler.run(duration, max_events)

    # topology ----------------------------------------------------------
    def propose_topology_step(self) -> bool:
        return self.topology.propose_topology_step()

    def metropolis_sweep(self, attempts: Optional[int] = None) -> int:
        return self.topology.metropolis_sweep(attempts)

    def enforce_planck_cutoff(self) -> int:
        return self.topology.enforce_planck_cutoff()

    def is_causally_allowed(self, i: int, j: int) -> bool:
        return self.topology.is_causally_allowed(i, j)

    def can_remove_edge_gauge_invariant(self, i: int, j: int) -> bool:
        if not self.graph.valid_pair(i, j):
            logger.debug("ignoring gauge query for (%r, %r)", i, j)
            return False
        return self.gauge_guard.is_removal_safe(i, j)

    # parallel ----------------------------------------------------------
    def parallel_engine(self, worker_count: Optional[int] = None) -> ParallelEventEngine:
        """Return the shared :class:`ParallelEventEngine`, creating it once."""

        if self._parallel is None:
            self._parallel = ParallelEventEngine(self.scheduler, worker_count)
        return self._parallel

    def close(self) -> None:
        if self._parallel is not None:
            self._parallel.close()
            self._parallel = None


__all__ = ["SimulationCore"]

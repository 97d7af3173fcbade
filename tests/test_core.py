import math

import pytest

import Relational_Web
from Relational_Web.config import Config
from Relational_Web.engine.core import SimulationCore
from Relational_Web.engine.graph import SpacetimeGraph
from Relational_Web.engine.ledger import EnergyLedger
from invariants import checks


def test_package_exposes_simulation_core():
    assert Relational_Web.SimulationCore is SimulationCore


def test_core_end_to_end_run():
    Config.topology["edge_count_lambda"] = 1.0
    Config.topology["target_edge_count"] = 10
    core = SimulationCore(SpacetimeGraph.ring(10, 0.5), seed=11)
    core.schedule_initial()
    for _ in range(20):
        core.step_event_based_batch(10)
        core.metropolis_sweep()
    core.enforce_planck_cutoff()
    assert checks.energy_non_negative(core.ledger.balance)
    assert checks.degrees_consistent(core.graph.edges, core.graph.degree)
    assert core.scheduler.pending() >= core.graph.n
    assert core.topology.stats.attempts == 200


def test_core_queries():
    g = SpacetimeGraph.ring(10, 0.5)
    g.set_phase(0, 1, math.pi / 2)
    core = SimulationCore(g, ledger=EnergyLedger(vacuum_energy=1.0))
    assert core.is_causally_allowed(0, 3)
    assert not core.is_causally_allowed(0, 5)
    assert not core.can_remove_edge_gauge_invariant(0, 1)
    assert core.can_remove_edge_gauge_invariant(2, 3)
    assert not core.can_remove_edge_gauge_invariant(0, 0)
    assert not core.can_remove_edge_gauge_invariant(0, 99)


def test_ledger_shared_with_topology_engine():
    cost = Config.topology["rng_step_cost"]
    core = SimulationCore(SpacetimeGraph.ring(4), ledger=EnergyLedger(vacuum_energy=cost))
    assert core.ledger.try_spend_vacuum_energy(cost)
    assert not core.ledger.try_spend_vacuum_energy(cost)
    assert not core.propose_topology_step()
    assert core.topology.stats.rejected["budget"] == 1


def test_parallel_engine_is_shared():
    core = SimulationCore(SpacetimeGraph.ring(6), seed=2)
    engine = core.parallel_engine(worker_count=2)
    assert core.parallel_engine() is engine
    assert engine.process_parallel_sweep(0.01) == 6
    core.close()


def test_run_event_based_respects_duration():
    Config.scheduler["base_step"] = 0.1
    core = SimulationCore(SpacetimeGraph.ring(4), seed=3)
    core.schedule_initial()
    core.run_event_based(0.15)
    assert core.scheduler.current_time <= 0.15

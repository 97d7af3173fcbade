import json
import math
import random

import numpy as np
import pytest

from Relational_Web.config import Config
from Relational_Web.engine.graph import SpacetimeGraph
from Relational_Web.engine.ledger import EnergyLedger
from Relational_Web.engine.topology import EdgeProposal, TopologyMutationEngine
from invariants import checks


class _Scripted:
    """Random source replaying fixed draws."""

    def __init__(self, ints, floats):
        self.ints = list(ints)
        self.floats = list(floats)

    def randrange(self, n):
        return self.ints.pop(0)

    def random(self):
        return self.floats.pop(0)


def _engine(graph, balance=1000.0, ints=(), floats=()):
    ledger = EnergyLedger(vacuum_energy=balance)
    return TopologyMutationEngine(graph, ledger, rng=_Scripted(ints, floats))


def test_ring_stays_near_target_without_gauge_rejections():
    Config.topology["temperature"] = 0.05
    Config.topology["edge_count_lambda"] = 1.0
    Config.topology["target_edge_count"] = 10
    g = SpacetimeGraph.ring(10, 0.5)
    engine = TopologyMutationEngine(g, EnergyLedger.from_config(), rng=random.Random(7))
    for _ in range(1000):
        engine.propose_topology_step()
        assert checks.energy_non_negative(engine.ledger.balance)
    assert engine.stats.attempts == 1000
    assert engine.stats.rejected["gauge"] == 0
    assert 8 <= g.edge_count <= 12
    assert checks.degrees_consistent(g.edges, g.degree)


def test_empty_ledger_leaves_graph_unchanged():
    g = SpacetimeGraph.ring(10, 0.5)
    before = g.weights.copy()
    engine = TopologyMutationEngine(g, EnergyLedger(vacuum_energy=0.0), rng=random.Random(1))
    for _ in range(20):
        assert not engine.propose_topology_step()
    assert np.array_equal(before, g.weights)
    assert engine.stats.rejected["budget"] == 20


def test_single_rng_unit_pays_for_one_draw_only():
    cost = Config.topology["rng_step_cost"]
    g = SpacetimeGraph.ring(10, 0.5)
    before = g.weights.copy()
    engine = _engine(g, balance=cost, ints=[0, 1], floats=[0.5, 0.5])
    assert not engine.propose_topology_step()
    assert engine.ledger.balance == 0.0
    assert not engine.propose_topology_step()
    assert engine.stats.rejected["budget"] == 2
    assert np.array_equal(before, g.weights)


def test_refused_pair_debit_draws_nothing():
    g = SpacetimeGraph.ring(10, 0.5)
    ledger = EnergyLedger(vacuum_energy=1000.0, strict_conservation=True)
    rng = _Scripted([0, 2], [0.1, 0.0])
    engine = TopologyMutationEngine(g, ledger, rng=rng)
    assert not engine.propose_topology_step()
    assert engine.stats.rejected["budget"] == 1
    assert rng.ints == [0, 2]
    assert rng.floats == [0.1, 0.0]
    assert ledger.balance == 1000.0
    assert ledger.violation_statistics()[0] == 1


def test_accepted_creation_spends_creation_cost():
    g = SpacetimeGraph.ring(10, 0.5)
    engine = _engine(g, ints=[0, 2], floats=[0.1, 0.0])
    version = g.topology_version
    assert engine.propose_topology_step()
    assert g.has_edge(0, 2)
    assert g.weights[0, 2] == pytest.approx(0.1)
    assert g.phases[0, 2] == 0.0
    assert g.topology_version > version
    assert g.degree[0] == 3
    assert engine.stats.created == 1
    assert engine.ledger.balance == pytest.approx(1000.0 - 3 * 0.001 - 0.1)


def test_creation_is_logged(tmp_path):
    g = SpacetimeGraph.ring(10, 0.5)
    engine = _engine(g, ints=[0, 2], floats=[0.1, 0.0])
    engine.propose_topology_step()
    records = [
        json.loads(line) for line in (tmp_path / "event_log.jsonl").read_text().splitlines()
    ]
    changes = [r for r in records if r["label"] == "topology_change"]
    assert changes[-1]["payload"]["action"] == "create"
    assert changes[-1]["payload"]["i"] == 0


def test_creation_outside_causal_horizon_rejected():
    g = SpacetimeGraph.ring(10, 0.5)
    engine = _engine(g, ints=[0, 5], floats=[0.1])
    assert not engine.propose_topology_step()
    assert engine.stats.rejected["causality"] == 1
    assert not g.has_edge(0, 5)


def test_creation_needs_affordable_edge_cost():
    g = SpacetimeGraph.ring(10, 0.5)
    engine = _engine(g, balance=0.05, ints=[0, 2], floats=[0.1])
    assert not engine.propose_topology_step()
    assert engine.stats.rejected["budget"] == 1
    assert not g.has_edge(0, 2)


def test_self_pair_aborts():
    g = SpacetimeGraph.ring(4)
    engine = _engine(g, ints=[1, 1])
    assert not engine.propose_topology_step()
    assert engine.stats.rejected["invalid"] == 1


def test_accepted_removal_refunds_creation_cost():
    g = SpacetimeGraph.ring(10, 0.5)
    g.set_weight(0, 1, 0.1)
    engine = _engine(g, ints=[0, 1], floats=[0.3, 0.0])
    assert engine.propose_topology_step()
    assert not g.has_edge(0, 1)
    assert g.edge_count == 9
    assert engine.stats.removed == 1
    assert engine.ledger.balance == pytest.approx(1000.0 - 3 * 0.001 + 0.1)


def test_flux_bridge_removal_rejected_every_time():
    g = SpacetimeGraph.from_edges(4, [(1, 2, 0.5), (2, 3, 0.5)])
    g.add_edge(0, 1, 0.1, phase=math.pi / 2)
    engine = _engine(g, ints=[0, 1] * 100, floats=[0.3] * 100)
    results = [engine.propose_topology_step() for _ in range(100)]
    assert not any(results)
    assert engine.stats.rejected["gauge"] == 100
    assert g.has_edge(0, 1)


def test_reweight_is_clamped_and_quantized():
    g = SpacetimeGraph.ring(10, 0.5)
    engine = _engine(g, ints=[0, 1], floats=[0.5, 1.0, 0.0])
    assert engine.propose_topology_step()
    assert g.weights[0, 1] == pytest.approx(0.6)
    assert g.weights[1, 0] == g.weights[0, 1]
    assert engine.stats.reweighted == 1


def test_quantize():
    g = SpacetimeGraph(2)
    engine = _engine(g)
    assert engine.quantize(0.004) == pytest.approx(0.01)
    assert engine.quantize(0.004, removing=True) == 0.0
    assert engine.quantize(0.123) == pytest.approx(0.12)
    assert engine.quantize(-1.0) == 0.0


def test_is_causally_allowed():
    g = SpacetimeGraph.ring(10, 0.5)
    engine = _engine(g)
    assert engine.is_causally_allowed(0, 1)
    assert engine.is_causally_allowed(0, 3)
    assert not engine.is_causally_allowed(0, 4)
    assert not engine.is_causally_allowed(0, 0)
    assert not engine.is_causally_allowed(0, 42)
    assert engine.shortest_path_hop_count(0, 5, 3) == 4


def test_minimal_flux_phase_closes_triangle():
    g = SpacetimeGraph(3)
    g.add_edge(1, 2, 0.5, phase=0.2)
    g.add_edge(2, 0, 0.5, phase=0.1)
    engine = _engine(g)
    phase = engine.minimal_flux_phase(0, 1)
    assert phase == pytest.approx(-0.3)
    g.add_edge(0, 1, 0.5, phase=phase)
    assert engine.gauge_guard.triangle_phase(0, 1, 2) == pytest.approx(0.0)


def test_planck_cutoff_removes_only_safe_edges():
    Config.thread_count = 2
    g = SpacetimeGraph(7)
    for i in range(6):
        g.add_edge(i, (i + 1) % 6, 0.5)
    g.add_edge(0, 3, 0.01)
    g.add_edge(5, 6, 0.01, phase=math.pi / 2)
    engine = _engine(g, balance=1.0)
    assert engine.enforce_planck_cutoff() == 1
    assert not g.has_edge(0, 3)
    assert g.has_edge(5, 6)
    assert engine.ledger.balance == pytest.approx(1.0 + 0.1 * 0.01)


def test_metropolis_sweep_default_attempts():
    g = SpacetimeGraph.ring(10, 0.5)
    engine = TopologyMutationEngine(g, EnergyLedger(vacuum_energy=10.0), rng=random.Random(3))
    engine.metropolis_sweep()
    assert engine.stats.attempts == 10


def test_edge_proposal_delta():
    p = EdgeProposal(0, 1, 0.5, 0.3)
    assert p.delta_weight == pytest.approx(-0.2)
    assert not p.is_create and not p.is_remove

import math

import pytest

from Relational_Web.engine.fields import GraphFields
from Relational_Web.engine.graph import SpacetimeGraph
from Relational_Web.geometry.curvature import average_curvature, forman_ricci, node_curvature


def test_isolated_edge_curvature_is_two():
    g = SpacetimeGraph.from_edges(2, [(0, 1, 0.7)])
    assert forman_ricci(g, 0, 1) == pytest.approx(2.0)


def test_star_edge_curvature():
    g = SpacetimeGraph.from_edges(4, [(0, 1, 1.0), (0, 2, 1.0), (0, 3, 1.0)])
    # two other edges at node 0, none at the leaf
    assert forman_ricci(g, 0, 1) == pytest.approx(0.0)
    assert node_curvature(g, 0) == pytest.approx(0.0)
    assert node_curvature(g, 1) == pytest.approx(0.0)


def test_evaluates_hypothetical_weight():
    g = SpacetimeGraph.ring(10, 0.5)
    assert forman_ricci(g, 0, 2, weight=0.2) == pytest.approx(2.0 - 4.0 * math.sqrt(0.4))


def test_average_curvature_empty_graph():
    assert average_curvature(SpacetimeGraph(3)) == 0.0
    assert node_curvature(SpacetimeGraph(3), 0) == 0.0


def test_capture_edge_energy_from_gauge_phase():
    g = SpacetimeGraph(2)
    g.add_edge(0, 1, 0.5, phase=math.pi)
    fields = GraphFields(g)
    assert fields.capture_edge_energy(0, 1) == pytest.approx(0.5 * 2.0)
    assert fields.capture_edge_energy(1, 0) == pytest.approx(0.5 * 2.0)
    g.remove_edge(0, 1)
    assert fields.capture_edge_energy(0, 1) == 0.0


def test_relax_decays_potential():
    g = SpacetimeGraph.ring(4, 0.5)
    g.local_potential[:] = 1.0
    GraphFields(g).relax(0.5)
    assert g.local_potential.tolist() == pytest.approx([0.5] * 4)


def test_measure_resets_degenerate_amplitude():
    g = SpacetimeGraph(1)
    fields = GraphFields(g)
    fields.amplitude[0] = 0.0
    assert fields.measure(0) == 0.0
    assert fields.amplitude[0] == 1.0

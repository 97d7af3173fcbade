import math

import numpy as np
import pytest

from Relational_Web.config import Config
from Relational_Web.engine.action import LocalAction
from Relational_Web.engine.fields import GraphFields
from Relational_Web.engine.graph import SpacetimeGraph
from Relational_Web.geometry.curvature import forman_ricci


def test_unchanged_weight_has_zero_delta():
    g = SpacetimeGraph.ring(10, 0.5)
    assert LocalAction(g).delta(0, 1, 0.5) == 0.0


def test_invalid_pair_is_infinite():
    g = SpacetimeGraph.ring(4)
    action = LocalAction(g)
    assert action.delta(0, 0, 0.5) == math.inf
    assert action.delta(0, 9, 0.5) == math.inf


def test_flat_ring_edge_has_zero_curvature():
    g = SpacetimeGraph.ring(10, 0.5)
    assert forman_ricci(g, 0, 1) == pytest.approx(0.0)
    assert forman_ricci(g, 0, 1, weight=0.0) == 0.0


def test_creation_delta_matches_components():
    g = SpacetimeGraph.ring(10, 0.5)
    action = LocalAction(g)
    w = 0.2
    r_new = 2.0 - 4.0 * math.sqrt(w / 0.5)
    geometry = -(1.0 / 0.1) * (w * r_new)
    volume = Config.topology["cosmological_constant"] * w
    chirality = (1.0 / 137.0) * w
    assert action.delta(0, 2, w) == pytest.approx(geometry + volume + chirality)


def test_opposite_parity_has_no_chirality_penalty():
    g = SpacetimeGraph.ring(10, 0.5)
    action = LocalAction(g)
    assert action.delta_chirality(0, 3, 0.2) == 0.0
    assert action.delta_chirality(0, 2, -0.2) == pytest.approx(0.2 / 137.0)


def test_edge_count_penalty_restores_target():
    Config.topology["edge_count_lambda"] = 1.0
    Config.topology["target_edge_count"] = 10
    g = SpacetimeGraph.ring(10, 0.5)
    action = LocalAction(g)
    cosmo = Config.topology["cosmological_constant"]
    assert action.delta_volume(1, 0.2) == pytest.approx(1.0 + cosmo * 0.2 * 0.1)
    assert action.delta_volume(-1, -0.5) == pytest.approx(1.0 - cosmo * 0.5 * 0.1)
    assert action.delta_volume(0, 0.1) == pytest.approx(cosmo * 0.1 * 0.1)


def test_total_weight_penalty_is_quadratic():
    Config.topology["volume_lambda"] = 2.0
    Config.topology["target_volume"] = 4.0
    g = SpacetimeGraph.ring(10, 0.5)  # total weight 5.0
    action = LocalAction(g)
    cosmo = Config.topology["cosmological_constant"]
    expected = 2.0 * ((1.0 + 0.1) ** 2 - 1.0) + cosmo * 0.1 * 0.1
    assert action.delta_volume(0, 0.1) == pytest.approx(expected)
    # moving toward the target lowers the action
    assert action.delta_volume(0, -0.1) < 0


def test_field_gradient_term():
    g = SpacetimeGraph.ring(4, 0.5)
    fields = GraphFields(g, scalar=np.array([1.0, 0.0, 0.0, 0.0]))
    action = LocalAction(g, fields)
    assert action.delta_field(0, 1, 0.2) == pytest.approx(0.1)
    assert action.delta_field(1, 2, 0.2) == 0.0


def test_stress_energy_is_smoothed():
    Config.topology["stress_ema_alpha"] = 0.05
    g = SpacetimeGraph.ring(4, 0.5)
    fields = GraphFields(g, masses=np.array([2.0, 2.0, 0.0, 0.0]))
    action = LocalAction(g, fields)
    first = action.averaged_stress_energy(0, 1)
    assert first == pytest.approx(2.0)
    fields.masses[:] = 0.0
    second = action.averaged_stress_energy(1, 0)
    assert second == pytest.approx(0.95 * 2.0)
    action.forget(0, 1)
    assert action.averaged_stress_energy(0, 1) == pytest.approx(0.0)


def test_matter_term_scales_with_curvature_term_scale():
    g = SpacetimeGraph.ring(4, 0.5)
    fields = GraphFields(g, masses=np.array([2.0, 2.0, 0.0, 0.0]))
    action = LocalAction(g, fields)
    scale = Config.topology["curvature_term_scale"]
    assert action.delta_matter(0, 1, 0.1) == pytest.approx(2.0 * 0.1 * scale)

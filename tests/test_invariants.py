import math

import numpy as np

from invariants import checks


def test_energy_non_negative():
    assert checks.energy_non_negative(0.0)
    assert not checks.energy_non_negative(-1e-9)


def test_causal_monotonic():
    assert checks.causal_monotonic([0.0, 0.0, 0.1, 0.3])
    assert not checks.causal_monotonic([0.0, 0.2, 0.1])


def test_light_cone():
    ok = [{"t_sent": 0.0, "t_arr": 1.0, "distance": 1.0}]
    early = [{"t_sent": 0.0, "t_arr": 0.4, "distance": 1.0}]
    assert checks.light_cone(ok)
    assert not checks.light_cone(early)
    assert checks.light_cone(early, speed_of_light=4.0)


def test_flux_conserved_modulo_two_pi():
    assert checks.flux_conserved(0.3, 0.3 + 2 * math.pi)
    assert not checks.flux_conserved(0.3, 0.4)


def test_no_flux_bridges():
    phases = np.zeros((3, 3))
    phases[0, 1] = 1.0
    assert not checks.no_flux_bridges([(0, 1)], phases, [(1, 0)], 0.1)
    assert not checks.no_flux_bridges([(0, 1)], phases, [(0, 1)], 0.1)
    assert checks.no_flux_bridges([(1, 2)], phases, [(1, 2)], 0.1)


def test_degrees_consistent():
    edges = np.array([[False, True], [True, False]])
    assert checks.degrees_consistent(edges, np.array([1, 1]))
    assert not checks.degrees_consistent(edges, np.array([1, 0]))


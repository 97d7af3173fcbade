"""Invariant checks for relational graph runs."""

from __future__ import annotations

import math
from typing import Iterable, Mapping, Sequence, Tuple

import numpy as np


def energy_non_negative(balance: float) -> bool:
    """The vacuum pool never goes below zero."""

    return balance >= 0.0


def causal_monotonic(times: Sequence[float]) -> bool:
    """Dispatched event times never decrease."""

    return all(b >= a for a, b in zip(times, times[1:]))


def light_cone(
    deliveries: Iterable[Mapping[str, float]], speed_of_light: float = 1.0
) -> bool:
    """No signal arrives before ``sent + distance / c``.

    Each delivery maps ``t_sent``, ``t_arr`` and ``distance``.
    """

    c = speed_of_light if speed_of_light > 0 else 1.0
    return all(
        d["t_arr"] + 1e-12 >= d["t_sent"] + d["distance"] / c for d in deliveries
    )


def flux_conserved(before: float, after: float, tolerance: float = 1e-9) -> bool:
    """A loop holonomy is unchanged up to ``tolerance`` modulo ``2π``."""

    diff = math.remainder(after - before, 2.0 * math.pi)
    return abs(diff) <= tolerance


def no_flux_bridges(
    edges: Iterable[Tuple[int, int]], phases: np.ndarray, bridges: Iterable[Tuple[int, int]], tolerance: float
) -> bool:
    """No bridge edge carries a phase above ``tolerance``.

    Either orientation of ``phases`` is inspected, so bridges may be given
    as ``(i, j)`` or ``(j, i)``.
    """

    present = {tuple(sorted(e)) for e in edges}
    for i, j in bridges:
        if tuple(sorted((i, j))) not in present:
            continue
        if max(abs(phases[i, j]), abs(phases[j, i])) > tolerance:
            return False
    return True


def degrees_consistent(edges: np.ndarray, degree: np.ndarray) -> bool:
    """Cached degrees match the adjacency matrix."""

    return bool(np.array_equal(edges.sum(axis=1), degree))


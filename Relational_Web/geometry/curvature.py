from __future__ import annotations

"""Weighted Forman-Ricci curvature on the relational graph."""

import logging
import math
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..engine.graph import SpacetimeGraph

logger = logging.getLogger(__name__)


def forman_ricci(
    graph: "SpacetimeGraph", i: int, j: int, weight: float | None = None
) -> float:
    """Compute the Jost weighted Forman-Ricci curvature of edge ``(i, j)``.

    Parameters
    ----------
    graph:
        Graph providing adjacency and weights.
    i, j:
        Edge endpoints.
    weight:
        Weight to evaluate the edge at. Defaults to the stored weight, which
        lets callers evaluate a proposed weight without mutating the graph.

    Returns
    -------
    float
        ``2 - sum_k sqrt(w / w_ik) - sum_k sqrt(w / w_jk)`` over the other
        neighbours of each endpoint, or ``0.0`` for non-positive ``weight``.
    """

    w = float(graph.weights[i, j]) if weight is None else float(weight)
    if w <= 0.0:
        return 0.0
    total = 0.0
    for a, b in ((i, j), (j, i)):
        for k in graph.neighbors(a):
            if k == b:
                continue
            w_k = graph.weights[a, k]
            if w_k > 0.0:
                total += math.sqrt(1.0 / (w * w_k))
    return 2.0 - w * total


def node_curvature(graph: "SpacetimeGraph", i: int) -> float:
    """Mean Forman-Ricci curvature over the edges incident to ``i``."""

    nbrs = graph.neighbors(i)
    if len(nbrs) == 0:
        return 0.0
    return float(np.mean([forman_ricci(graph, i, int(k)) for k in nbrs]))


def average_curvature(graph: "SpacetimeGraph") -> float:
    """Mean edge curvature across the whole graph."""

    values = [forman_ricci(graph, i, j) for i, j in graph.iter_edges()]
    if not values:
        return 0.0
    mean = float(np.mean(values))
    logger.debug("average curvature %.4f over %d edges", mean, len(values))
    return mean


__all__ = ["forman_ricci", "node_curvature", "average_curvature"]

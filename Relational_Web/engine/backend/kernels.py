"""Bulk kernels for per-node quantities.

Node fields such as the local signal potential are evolved here as dense
array operations. When ``Config.backend`` is ``"cupy"`` and `cupy` can be
imported the arithmetic runs on the GPU; otherwise NumPy is used. Every
result passes through :func:`sanitize_array` so NaN or infinite values never
leak back into the graph arena.
"""

from __future__ import annotations

import logging
import math

import numpy as np

from ...config import Config

try:  # pragma: no cover - optional dependency
    import cupy as cp
except Exception:  # pragma: no cover - gracefully handle missing CUDA
    cp = None

logger = logging.getLogger(__name__)


def get_backend() -> str:
    """Return the name of the active array backend."""

    return "cupy" if is_available() else "cpu"


def is_available() -> bool:
    """Return ``True`` when CuPy is selected and available."""

    return cp is not None and Config.backend == "cupy"


def sanitize(value: float) -> float:
    """Return ``value`` or ``0.0`` when it is NaN or infinite."""

    value = float(value)
    if math.isfinite(value):
        return value
    logger.debug("non-finite value %r replaced by 0.0", value)
    return 0.0


def sanitize_array(values: np.ndarray) -> np.ndarray:
    """Return a float copy of ``values`` with non-finite entries zeroed."""

    arr = np.array(values, dtype=float)
    bad = ~np.isfinite(arr)
    if bad.any():
        logger.debug("%d non-finite entries zeroed", int(bad.sum()))
        arr[bad] = 0.0
    return arr


def evolve_potential(
    potential: np.ndarray,
    weights: np.ndarray,
    *,
    decay: float = 0.1,
    diffusion: float = 0.1,
) -> np.ndarray:
    """Relax and diffuse a node potential over the weighted graph.

    Parameters
    ----------
    potential:
        Current per-node potential of shape ``(N,)``.
    weights:
        Symmetric weight matrix of shape ``(N, N)``.
    decay:
        Fraction of the potential lost each call.
    diffusion:
        Rate at which each node relaxes toward the weighted mean of its
        neighbours.

    Returns
    -------
    np.ndarray
        The updated potential as a NumPy array regardless of backend.
    """

    if weights.shape != (potential.shape[0], potential.shape[0]):
        raise ValueError("weight matrix must be square and match potential")

    xp = cp if is_available() else np
    p = xp.asarray(potential, dtype=float)
    w = xp.asarray(weights, dtype=float)
    strength = w.sum(axis=1)
    flow = w @ p
    mean = xp.where(strength > 0, flow / xp.where(strength > 0, strength, 1.0), p)
    result = (1.0 - decay) * (p + diffusion * (mean - p))
    if xp is not np:
        result = cp.asnumpy(result)
    return sanitize_array(result)


__all__ = [
    "evolve_potential",
    "get_backend",
    "is_available",
    "sanitize",
    "sanitize_array",
]

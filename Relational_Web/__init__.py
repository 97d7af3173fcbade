"""Relational_Web package initialization."""

from __future__ import annotations

from typing import Any

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from .engine.core import SimulationCore

__all__ = ["SimulationCore"]


def __getattr__(name: str) -> Any:  # pragma: no cover - attribute access
    """Lazily expose SimulationCore."""

    if name == "SimulationCore":
        from .engine.core import SimulationCore as _SimulationCore

        return _SimulationCore
    raise AttributeError(name)

"""Compute backends for bulk node quantity updates."""

from .kernels import evolve_potential, get_backend, sanitize, sanitize_array

__all__ = ["evolve_potential", "get_backend", "sanitize", "sanitize_array"]

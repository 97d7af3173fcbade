"""Vacuum energy accounting for stochastic operations."""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..config import Config
from .logging import log_model
from .logging_models import LedgerRefusalLog, LedgerRefusalPayload

logger = logging.getLogger(__name__)


class EnergyConservationError(RuntimeError):
    """Raised when tracked energy drifts beyond the ledger tolerance."""


@dataclass
class ConstraintViolation:
    amount: float
    context: str


def _check_amount(value: float, what: str) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"{what} must be finite")
    if value < 0:
        raise ValueError(f"{what} must be non-negative")
    return value


@dataclass
class EnergyLedger:
    """Thread-safe vacuum energy pool.

    Every stochastic step pays for its random draws from the pool and every
    created edge borrows ``edge_creation_cost``. Debits never drive the
    balance negative: an unaffordable request returns ``False`` and leaves
    the pool untouched. Removed structure is returned through
    :meth:`register_radiation`. Negative or non-finite amounts raise
    ``ValueError`` so the pool can never become corrupt.

    In ``strict_conservation`` mode the pool is frozen: spends, deficit
    absorption and external injections are refused and recorded as
    constraint violations.
    """

    vacuum_energy: float = 0.0
    matter_energy: float = 0.0
    field_energy: float = 0.0
    strict_conservation: bool = False
    max_violations: int = 1000
    tolerance: float = 1e-6
    #: Reference total for :meth:`validate_conservation`
    tracked_energy: Optional[float] = None
    external_injection: float = 0.0
    vacuum_debt: float = 0.0
    violations: List[ConstraintViolation] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        self.vacuum_energy = _check_amount(self.vacuum_energy, "vacuum energy")
        if self.tracked_energy is None:
            self.tracked_energy = (
                self.vacuum_energy + self.matter_energy + self.field_energy
            )

    @classmethod
    def from_config(cls) -> "EnergyLedger":
        cfg = Config.ledger
        return cls(
            vacuum_energy=float(cfg.get("initial_vacuum_energy", 0.0)),
            strict_conservation=bool(cfg.get("strict_conservation", False)),
            max_violations=int(cfg.get("max_violations", 1000)),
        )

    # ------------------------------------------------------------------
    @property
    def balance(self) -> float:
        return self.vacuum_energy

    def initialize(
        self, vacuum: float, matter: float = 0.0, field_energy: float = 0.0
    ) -> None:
        """Reset all accounts and clear the violation history."""

        vacuum = _check_amount(vacuum, "vacuum energy")
        with self._lock:
            self.vacuum_energy = vacuum
            self.matter_energy = float(matter)
            self.field_energy = float(field_energy)
            self.tracked_energy = vacuum + self.matter_energy + self.field_energy
            self.external_injection = 0.0
            self.vacuum_debt = 0.0
            self.violations.clear()

    def can_afford(self, cost: float) -> bool:
        """Return ``True`` if ``cost`` could be debited right now."""

        if cost <= 0:
            return True
        with self._lock:
            return self.vacuum_energy >= cost

    def try_spend_vacuum_energy(self, cost: float, context: str = "") -> bool:
        """Atomically debit ``cost`` if the pool covers it.

        Raises
        ------
        ValueError
            If ``cost`` is negative or not finite.
        """

        cost = _check_amount(cost, "cost")
        with self._lock:
            if self.strict_conservation:
                self._record_violation(cost, context or "strict_conservation")
                available = self.vacuum_energy
            elif self.vacuum_energy >= cost:
                self.vacuum_energy -= cost
                return True
            else:
                available = self.vacuum_energy
        self._log_refusal(cost, available, context)
        return False

    def register_radiation(self, amount: float) -> None:
        """Return ``amount`` to the vacuum pool.

        Raises
        ------
        ValueError
            If ``amount`` is negative or not finite.
        """

        amount = _check_amount(amount, "radiation amount")
        with self._lock:
            self.vacuum_energy += amount

    def try_transact(self, amount: float, context: str = "") -> bool:
        """Borrow (positive) or return (negative) ``amount``."""

        if amount >= 0:
            return self.try_spend_vacuum_energy(amount, context)
        self.register_radiation(-amount)
        return True

    def try_absorb_deficit(self, delta: float, context: str = "deficit") -> bool:
        """Balance an energy change ``delta`` (after minus before) against the pool.

        A surplus is always returned to the vacuum. A deficit is debited
        when the pool covers it; strict mode refuses it and records a
        violation.
        """

        if not math.isfinite(delta):
            raise ValueError("energy delta must be finite")
        if delta >= 0:
            self.register_radiation(delta)
            return True
        return self.try_spend_vacuum_energy(-delta, context)

    def record_external_injection(self, energy: float, source: str = "") -> bool:
        """Add externally supplied ``energy`` to the pool.

        Returns ``False`` without touching the pool in strict mode.
        """

        energy = _check_amount(energy, "injected energy")
        with self._lock:
            if self.strict_conservation:
                self._record_violation(energy, f"external_injection:{source}")
                return False
            self.external_injection += energy
            self.vacuum_energy += energy
        return True

    def reset_external_injection(self) -> None:
        with self._lock:
            self.external_injection = 0.0

    def borrow_from_vacuum(self, energy: float) -> None:
        energy = _check_amount(energy, "borrowed energy")
        with self._lock:
            self.vacuum_debt += energy

    def repay_to_vacuum(self, energy: float) -> None:
        """Reduce the outstanding vacuum debt.

        Raises
        ------
        ValueError
            If more is repaid than was borrowed.
        """

        energy = _check_amount(energy, "repaid energy")
        with self._lock:
            if self.vacuum_debt - energy < -1e-10:
                raise ValueError(
                    f"repaying {energy:.6g} exceeds vacuum debt {self.vacuum_debt:.6g}"
                )
            self.vacuum_debt = max(0.0, self.vacuum_debt - energy)

    def validate_conservation(self, current_energy: float) -> None:
        """Check ``current_energy`` against the tracked total plus injections.

        The tracked total is moved to ``current_energy`` after a passing
        check.

        Raises
        ------
        EnergyConservationError
            If both the absolute and relative error exceed ``tolerance``.
        """

        with self._lock:
            expected = self.tracked_energy + self.external_injection
            error = abs(current_energy - expected)
            relative = error / abs(expected) if abs(expected) > 1e-10 else error
            if not math.isfinite(error) or (
                error > self.tolerance and relative > self.tolerance
            ):
                self._record_violation(error, "conservation")
                raise EnergyConservationError(
                    f"expected {expected:.8f}, got {current_energy:.8f} "
                    f"(error {error:.8f}, injected {self.external_injection:.8f}, "
                    f"debt {self.vacuum_debt:.8f})"
                )
            self.tracked_energy = float(current_energy)
            self.external_injection = 0.0

    def max_available_entropy(self) -> float:
        """Random bits the current pool could still pay for."""

        cfg = Config.ledger
        unit = cfg.get("landauer_limit", 0.693) * cfg.get("temperature", 1.0)
        if unit <= 0:
            return float("inf")
        return self.vacuum_energy / unit

    def try_tax_random_event(
        self, entropy_bits: float, context: str = "random_event"
    ) -> bool:
        """Charge the Landauer cost of ``entropy_bits`` random bits."""

        if entropy_bits <= 0:
            return True
        cfg = Config.ledger
        cost = entropy_bits * cfg.get("landauer_limit", 0.693) * cfg.get("temperature", 1.0)
        return self.try_spend_vacuum_energy(cost, context)

    # ------------------------------------------------------------------
    def update_matter_energy(self, value: float) -> None:
        with self._lock:
            self.matter_energy = float(value)

    def update_field_energy(self, value: float) -> None:
        with self._lock:
            self.field_energy = float(value)

    def total_tracked_energy(self) -> float:
        with self._lock:
            return self.vacuum_energy + self.matter_energy + self.field_energy

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "vacuum_energy": self.vacuum_energy,
                "matter_energy": self.matter_energy,
                "field_energy": self.field_energy,
                "external_injection": self.external_injection,
                "vacuum_debt": self.vacuum_debt,
                "violations": len(self.violations),
            }

    # ------------------------------------------------------------------
    def log_constraint_violation(self, amount: float, context: str) -> None:
        with self._lock:
            self._record_violation(amount, context)

    def _record_violation(self, amount: float, context: str) -> None:
        self.violations.append(ConstraintViolation(abs(amount), context))
        if len(self.violations) > self.max_violations:
            del self.violations[: len(self.violations) - self.max_violations]
        logger.debug("constraint violation %.6g in %s", amount, context)

    def violation_statistics(self) -> Tuple[int, float, float, float]:
        """Return ``(count, total, max, mean)`` of recorded violations."""

        with self._lock:
            amounts = [v.amount for v in self.violations]
        if not amounts:
            return 0, 0.0, 0.0, 0.0
        total = sum(amounts)
        return len(amounts), total, max(amounts), total / len(amounts)

    def _log_refusal(self, cost: float, available: float, context: str) -> None:
        logger.debug("ledger refused %.6g (available %.6g) %s", cost, available, context)
        log_model(
            "event",
            LedgerRefusalLog(
                payload=LedgerRefusalPayload(
                    requested=cost, available=available, context=context
                )
            ),
        )


__all__ = ["EnergyLedger", "ConstraintViolation", "EnergyConservationError"]

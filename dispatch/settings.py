"""
Purpose: Central configuration for the agency (single source of truth).
What it does:

Stores the global, manager-editable parameters:

TARIFF_PER_KM = 60 (CUP)

REPUTATION_THRESHOLD = 50

COMMISSION_PERCENT = 10 (product rule)

SETTLEMENT_PERIOD_DAYS = 15 (product rule)

plus the payment details drivers use when transferring their commission.

Rule: No logic here, just parameters. Changes produce a new instance via replace().
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class PaymentSettings:
    """
    Where drivers send the agency's commission.
    """
    beneficiary_name: str = "Pal Taxi Agencia"
    card_number: str = "0000 0000 0000 0000"
    phone: str = "+53 50000000"
    bank_name: Optional[str] = "Banco Ejemplo"
    instructions: Optional[str] = "Incluya su usuario como referencia en la transferencia."

    def merged(self, changes: Dict[str, Any]) -> PaymentSettings:
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown payment settings: {sorted(unknown)}")
        return replace(self, **changes)


@dataclass(frozen=True)
class AppSettings:
    """
    Global agency configuration.

    Notes:
    - tariff_per_km prices a ride once, at request time. Later changes never reprice.
    - reputation_threshold gates expulsion on complaint and during the sweep.
    - commission_percent and settlement_period_days are fixed by product rule
      (10 and 15) but stay editable fields.
    """

    # --- Pricing ---
    tariff_per_km: float = 60.0

    # --- Reputation gate (0-100) ---
    reputation_threshold: int = 50

    # --- Commission / settlement cycle ---
    commission_percent: float = 10.0
    settlement_period_days: int = 15

    payment: PaymentSettings = field(default_factory=PaymentSettings)

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.tariff_per_km < 0:
            raise ValueError("tariff_per_km must be >= 0")

        if not 0 <= self.reputation_threshold <= 100:
            raise ValueError("reputation_threshold must be within 0-100")

        if not 0 <= self.commission_percent <= 100:
            raise ValueError("commission_percent must be within 0-100")

        if self.settlement_period_days <= 0:
            raise ValueError("settlement_period_days must be > 0")

    def updated(self, changes: Dict[str, Any]) -> AppSettings:
        """
        Shallow merge of `changes`; a `payment` dict is merged into the current payment settings.
        """
        changes = dict(changes)
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown settings: {sorted(unknown)}")

        payment = changes.pop("payment", None)
        if isinstance(payment, dict):
            changes["payment"] = self.payment.merged(payment)
        elif payment is not None:
            changes["payment"] = payment

        new_settings = replace(self, **changes)
        new_settings.validate()
        return new_settings


def default_settings() -> AppSettings:
    """
    Convenience factory for the default configuration.
    """
    s = AppSettings()
    s.validate()
    return s

"""
Purpose: The Settlement Engine.
What it does:

- request(): a driver asks to clear the commission owed, with proof of payment.
- approve(): a manager confirms the transfer; the driver's balance goes to 0,
  the aging clock restarts and the sweep runs.
- reject(): a manager refuses; the balance and the aging clock are left untouched.

Approval never reinstates an expelled driver and never restores reputation.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from accounts.models import Role
from accounts.users import is_driver
from dispatch.automation import sweep_drivers
from dispatch.errors import Conflict, InvalidInput, MissingEvidence, NoBalance, NotFound
from dispatch.guards import require_role, require_staff
from dispatch.settings import AppSettings
from dispatch.state_machines.driver_state import settle_balance
from dispatch.store import EntityStore
from rides.pricing import round_money
from .models import Settlement, SettlementStatus, new_settlement_id

logger = logging.getLogger(__name__)


def payment_reference(settings: AppSettings, amount: float, currency: str = "CUP") -> str:
    """
    Payload the driver puts on the transfer (and the UI renders as a QR code).
    """
    payment = settings.payment
    return "|".join([
        "PalTaxi",
        payment.beneficiary_name,
        payment.card_number,
        payment.phone,
        f"{round_money(amount):.2f}",
        currency,
    ])


class SettlementDesk:
    def __init__(self, store: EntityStore, clock: Callable[[], datetime]):
        self.store = store
        self.clock = clock

    def request(self, actor_id: Optional[str], evidence_url: Optional[str], amount: Optional[float] = None) -> Settlement:
        """
        Creates a pending settlement for the current balance, or for `amount` if given.
        """
        with self.store.lock():
            snapshot = self.store.snapshot
            driver = require_role(snapshot, actor_id, Role.DRIVER, message="You must be logged in as a driver.")

            if amount is not None and (
                isinstance(amount, bool) or not isinstance(amount, (int, float)) or not math.isfinite(amount)
            ):
                raise InvalidInput("Settlement amount must be a finite number.")

            due = driver.earnings_since_last_settlement if amount is None else amount
            if due <= 0:
                raise NoBalance("You have no outstanding balance to settle.")
            if not evidence_url:
                raise MissingEvidence("Upload proof of payment first.")

            settlement = Settlement(
                id=new_settlement_id(),
                driver_id=driver.id,
                amount=round_money(due),
                status=SettlementStatus.PENDING,
                evidence_url=evidence_url,
                created_at=self.clock(),
            )
            self.store.commit(snapshot.with_settlement(settlement))

        logger.info("Settlement %s requested by driver %s for %.2f", settlement.id, driver.id, settlement.amount)
        return settlement

    def approve(self, actor_id: Optional[str], settlement_id: str) -> Settlement:
        with self.store.lock():
            snapshot = self.store.snapshot
            reviewer = require_staff(snapshot, actor_id)
            settlement = snapshot.require_settlement(settlement_id)
            if settlement.is_resolved:
                raise Conflict(f"Settlement already {settlement.status.value}.")

            driver = snapshot.find_user(settlement.driver_id)
            if not is_driver(driver):
                raise NotFound("Driver not found.")

            now = self.clock()
            approved = replace(
                settlement,
                status=SettlementStatus.APPROVED,
                reviewed_at=now,
                reviewer_id=reviewer.id,
            )
            next_snapshot = snapshot.with_user(settle_balance(driver, now)).with_settlement(approved)
            next_snapshot, _ = sweep_drivers(next_snapshot, now)
            self.store.commit(next_snapshot)

        logger.info("Settlement %s approved by %s; driver %s balance reset", settlement_id, reviewer.id, driver.id)
        return approved

    def reject(self, actor_id: Optional[str], settlement_id: str, reason: Optional[str] = None) -> Settlement:
        with self.store.lock():
            snapshot = self.store.snapshot
            reviewer = require_staff(snapshot, actor_id)
            settlement = snapshot.require_settlement(settlement_id)
            if settlement.is_resolved:
                raise Conflict(f"Settlement already {settlement.status.value}.")

            rejected = replace(
                settlement,
                status=SettlementStatus.REJECTED,
                reviewed_at=self.clock(),
                reviewer_id=reviewer.id,
                rejection_reason=reason,
            )
            self.store.commit(snapshot.with_settlement(rejected))

        logger.info("Settlement %s rejected by %s: %s", settlement_id, reviewer.id, reason or "no reason given")
        return rejected

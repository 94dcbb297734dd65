"""
Purpose: The post-mutation consistency pass (Automation Sweep).
What it does:
Looks at every driver and expels the ones who
- owe commission and have not settled within `settlement_period_days`, or
- already sit under the reputation threshold.

Runs after every commission credit, settlement approval and settings change.
Never reinstates anyone and never fails. Running it twice changes nothing the second time.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from accounts.models import UserStatus
from accounts.users import is_driver
from drivers.models import DriverUser
from .settings import AppSettings
from .state_machines.driver_state import expel
from .store import StoreSnapshot

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def days_since_settlement(driver: DriverUser, now: datetime) -> float:
    if driver.last_settlement_at is None:
        return 0.0
    return (now - driver.last_settlement_at).total_seconds() / SECONDS_PER_DAY


def settlement_overdue(driver: DriverUser, settings: AppSettings, now: datetime) -> bool:
    return (
        driver.earnings_since_last_settlement > 0
        and days_since_settlement(driver, now) >= settings.settlement_period_days
    )


def days_until_settlement_due(driver: DriverUser, settings: AppSettings, now: datetime) -> Optional[float]:
    """
    Days left before an unpaid balance gets the driver expelled; None when nothing is owed.
    """
    if driver.earnings_since_last_settlement <= 0:
        return None
    return max(0.0, settings.settlement_period_days - days_since_settlement(driver, now))


def _sweep_driver(driver: DriverUser, settings: AppSettings, now: datetime) -> Optional[str]:
    """
    Returns the expulsion reason for this driver, or None if they are left alone.
    """
    if settlement_overdue(driver, settings, now):
        if driver.status == UserStatus.EXPELLED and not driver.available:
            return None
        return "unpaid balance past the settlement period"

    if driver.reputation < settings.reputation_threshold and driver.status != UserStatus.EXPELLED:
        return "reputation below threshold"

    return None


def sweep_drivers(snapshot: StoreSnapshot, now: datetime) -> Tuple[StoreSnapshot, List[str]]:
    """
    Returns the next snapshot and the ids of drivers expelled by this pass.
    The input snapshot is returned unchanged when nobody is expelled.
    """
    settings = snapshot.settings
    expelled: List[str] = []
    users = []

    for user in snapshot.users:
        if not is_driver(user):
            users.append(user)
            continue

        reason = _sweep_driver(user, settings, now)
        if reason is None:
            users.append(user)
            continue

        logger.info("Expelling driver %s (%s): %s", user.id, user.username, reason)
        users.append(expel(user))
        expelled.append(user.id)

    if not expelled:
        logger.debug("Automation sweep: no changes")
        return snapshot, expelled

    return snapshot.with_users(users), expelled

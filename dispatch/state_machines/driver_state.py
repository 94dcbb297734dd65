from dataclasses import replace
from datetime import datetime
from typing import Optional

from accounts.models import UserStatus
from dispatch.errors import Conflict
from drivers.models import MAX_REPUTATION, MIN_REPUTATION, DriverUser
from rides.pricing import round_money
from routing.geo import GeoPoint

COMPLAINT_PENALTY = 8


class DriverStateException(Conflict):
    """Raised when an invalid driver transition is attempted."""
    pass


def clamp_reputation(value: int) -> int:
    return max(MIN_REPUTATION, min(MAX_REPUTATION, value))


def handle_driver_acceptance(driver: DriverUser, location: Optional[GeoPoint] = None) -> DriverUser:
    """
    Called when a driver officially accepts a ride.
    A driver handles one ride at a time, so they leave the available pool.
    """
    if not driver.can_take_rides:
        raise DriverStateException(f"Driver {driver.id} is not active and available.")

    # Because DriverUser is a frozen dataclass, we must return a new instance via replace
    return replace(driver, available=False, location=location or driver.location)


def set_availability(driver: DriverUser, available: bool, location: Optional[GeoPoint] = None) -> DriverUser:
    if available and driver.status != UserStatus.ACTIVE:
        raise DriverStateException(f"Driver {driver.id} must be active to take rides.")

    return replace(driver, available=available, location=location or driver.location)


def credit_earnings(driver: DriverUser, amount: float) -> DriverUser:
    """
    Adds a completed ride's net earning to the balance owed since the last settlement.
    """
    balance = round_money(driver.earnings_since_last_settlement + amount)
    return replace(driver, earnings_since_last_settlement=max(0.0, balance))


def settle_balance(driver: DriverUser, now: datetime) -> DriverUser:
    """
    The agency received the commission: balance back to zero and the aging clock restarts.
    """
    return replace(driver, earnings_since_last_settlement=0.0, last_settlement_at=now)


def apply_complaint_penalty(driver: DriverUser, reputation_threshold: int) -> DriverUser:
    """
    Each complaint takes a flat penalty off the current reputation.
    Falling under the threshold expels the driver on the spot.
    """
    reputation = clamp_reputation(driver.reputation - COMPLAINT_PENALTY)
    driver = replace(
        driver,
        reputation=reputation,
        complaints_count=driver.complaints_count + 1,
    )
    if reputation < reputation_threshold:
        driver = expel(driver)
    return driver


def expel(driver: DriverUser) -> DriverUser:
    """
    Take the driver off the platform. Reinstatement is an explicit manager action.
    """
    driver = driver.with_status(UserStatus.EXPELLED)
    return replace(driver, available=False)

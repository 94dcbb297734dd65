"""
Purpose: Domain models for the Rides capability.
What it does:
- Defines the Ride record (client, optional driver, addresses, coordinates,
  derived distance/price/ETA, timestamps, status)

Defines enums/constants:
- RideStatus = PENDING | ACCEPTED | REJECTED | COMPLETED | CANCELLED

Rule: No pricing, no transitions. Models only. Rides are never deleted.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from routing.geo import GeoPoint


class RideStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"  # reserved for an external cancellation flow


TERMINAL_RIDE_STATUSES = frozenset({RideStatus.REJECTED, RideStatus.COMPLETED, RideStatus.CANCELLED})
DRIVER_BOUND_STATUSES = frozenset({RideStatus.ACCEPTED, RideStatus.COMPLETED})


@dataclass(frozen=True)
class Ride:
    """
    A ride request and its outcome.
    driver_id is set if and only if status is ACCEPTED or COMPLETED.
    """
    id: str
    client_id: str
    status: RideStatus
    pickup_address: str
    pickup_point: GeoPoint
    destination_address: str
    destination_point: GeoPoint

    # Derived once at request time
    distance_km: float
    price: float
    eta_min: int

    has_route_changes: bool
    created_at: datetime

    driver_id: Optional[str] = None
    # Advisory: the named driver still has to accept
    preferred_driver_id: Optional[str] = None
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RIDE_STATUSES

    def visible_to(self, driver_id: str) -> bool:
        """
        Whether a pending ride may be offered to this driver.
        """
        return self.status == RideStatus.PENDING and (
            self.preferred_driver_id is None or self.preferred_driver_id == driver_id
        )


def new_ride_id() -> str:
    return f"ride_{uuid.uuid4().hex[:10]}"

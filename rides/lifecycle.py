"""
Purpose: The Ride Lifecycle Engine.
What it does:

PENDING -> ACCEPTED -> COMPLETED, or PENDING -> REJECTED

- request(): a client asks for a ride; distance, price and ETA are fixed here.
- accept(): an active, available driver takes a pending ride (atomic check-and-set).
- reject(): a driver declines a pending ride.
- complete(): the assigned driver finishes; the net earning is credited and the sweep runs.

Every command validates against the latest snapshot and commits once.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from accounts.models import Role
from accounts.users import is_driver
from dispatch.automation import sweep_drivers
from dispatch.errors import InvalidInput, NotFound, Unauthorized
from dispatch.guards import require_role
from dispatch.state_machines.driver_state import credit_earnings, handle_driver_acceptance
from dispatch.state_machines.ride_state import (
    transition_ride_to_accepted,
    transition_ride_to_completed,
    transition_ride_to_rejected,
)
from dispatch.store import EntityStore
from routing.eta_service import DEFAULT_SPEED_KMH
from routing.geo import GeoPoint
from .models import Ride, RideStatus, new_ride_id
from .pricing import net_earning, quote_ride

logger = logging.getLogger(__name__)


class RideLifecycle:
    """
    Coordinates ride state transitions and the driver side effects that go with them.
    """
    def __init__(self, store: EntityStore, clock: Callable[[], datetime], speed_kmh: float = DEFAULT_SPEED_KMH):
        self.store = store
        self.clock = clock
        self.speed_kmh = speed_kmh

    def request(
        self,
        actor_id: Optional[str],
        *,
        pickup_address: str,
        pickup_point: GeoPoint,
        destination_address: str,
        destination_point: GeoPoint,
        has_route_changes: bool = False,
        preferred_driver_id: Optional[str] = None,
    ) -> Ride:
        with self.store.lock():
            snapshot = self.store.snapshot
            client = require_role(snapshot, actor_id, Role.CLIENT, message="You must be logged in as a client.")

            for point in (pickup_point, destination_point):
                if not isinstance(point, GeoPoint) or not point.is_finite():
                    raise InvalidInput("Pickup and destination need valid coordinates.")

            if preferred_driver_id is not None and not is_driver(snapshot.find_user(preferred_driver_id)):
                raise NotFound("Preferred driver not found.")

            now = self.clock()
            # Priced once: later tariff changes never touch this ride
            quote = quote_ride(pickup_point, destination_point, snapshot.settings.tariff_per_km, self.speed_kmh)
            ride = Ride(
                id=new_ride_id(),
                client_id=client.id,
                status=RideStatus.PENDING,
                pickup_address=pickup_address,
                pickup_point=pickup_point,
                destination_address=destination_address,
                destination_point=destination_point,
                distance_km=quote.distance_km,
                price=quote.price,
                eta_min=quote.eta_min,
                has_route_changes=has_route_changes,
                created_at=now,
                preferred_driver_id=preferred_driver_id,
            )
            self.store.commit(snapshot.with_ride(ride))

        logger.info("Ride %s requested by %s: %.2f km, price %.2f", ride.id, client.id, ride.distance_km, ride.price)
        return ride

    def accept(self, actor_id: Optional[str], ride_id: str, location: Optional[GeoPoint] = None) -> Ride:
        """
        Race Condition Resolver: the status check and the write happen under the store lock,
        so two drivers can never both accept the same ride. The loser gets a Conflict.
        """
        with self.store.lock():
            snapshot = self.store.snapshot
            driver = require_role(snapshot, actor_id, Role.DRIVER, message="You must be logged in as a driver.")
            ride = snapshot.require_ride(ride_id)

            if ride.preferred_driver_id is not None and ride.preferred_driver_id != driver.id:
                raise Unauthorized("This ride was offered to another driver.")

            now = self.clock()
            accepted = transition_ride_to_accepted(ride, driver.id, now)
            busy_driver = handle_driver_acceptance(driver, location)

            self.store.commit(snapshot.with_ride(accepted).with_user(busy_driver))

        logger.info("Ride %s accepted by driver %s", ride_id, driver.id)
        return accepted

    def reject(self, actor_id: Optional[str], ride_id: str) -> Ride:
        with self.store.lock():
            snapshot = self.store.snapshot
            driver = require_role(snapshot, actor_id, Role.DRIVER, message="You must be logged in as a driver.")
            ride = snapshot.require_ride(ride_id)

            rejected = transition_ride_to_rejected(ride)
            self.store.commit(snapshot.with_ride(rejected))

        logger.info("Ride %s rejected by driver %s", ride_id, driver.id)
        return rejected

    def complete(self, actor_id: Optional[str], ride_id: str) -> Ride:
        """
        Marks the ride completed, credits price minus commission to the driver's balance,
        then runs the automation sweep in the same commit.
        """
        with self.store.lock():
            snapshot = self.store.snapshot
            driver = require_role(snapshot, actor_id, Role.DRIVER, message="You must be logged in as a driver.")
            ride = snapshot.require_ride(ride_id)

            if ride.driver_id != driver.id:
                raise Unauthorized("Only the assigned driver can complete this ride.")

            now = self.clock()
            completed = transition_ride_to_completed(ride, now)
            earning = net_earning(completed.price, snapshot.settings.commission_percent)
            credited = credit_earnings(driver, earning)

            next_snapshot = snapshot.with_ride(completed).with_user(credited)
            next_snapshot, _ = sweep_drivers(next_snapshot, now)
            self.store.commit(next_snapshot)

        logger.info(
            "Ride %s completed by driver %s; balance now %.2f",
            ride_id, driver.id, credited.earnings_since_last_settlement,
        )
        return completed

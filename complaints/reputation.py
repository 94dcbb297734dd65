"""
Purpose: The Reputation & Complaint Engine.
What it does:
A client files a complaint against the driver of a ride they took and that was completed.
The complaint is appended to the log and the driver loses a flat 8 points of their
*current* reputation (never recomputed from history). Dropping under the threshold
expels the driver in the same commit, without waiting for the next sweep.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from accounts.models import Role
from accounts.users import is_driver
from dispatch.errors import Conflict, InvalidInput, Unauthorized
from dispatch.guards import require_role
from dispatch.state_machines.driver_state import apply_complaint_penalty
from dispatch.store import EntityStore
from rides.models import RideStatus
from .models import Complaint, new_complaint_id

logger = logging.getLogger(__name__)


class ComplaintDesk:
    def __init__(self, store: EntityStore, clock: Callable[[], datetime]):
        self.store = store
        self.clock = clock

    def file(self, actor_id: Optional[str], ride_id: str, message: str) -> Complaint:
        with self.store.lock():
            snapshot = self.store.snapshot
            client = require_role(snapshot, actor_id, Role.CLIENT, message="You must be logged in as a client.")
            ride = snapshot.require_ride(ride_id)

            if ride.client_id != client.id:
                raise Unauthorized("You can only complain about your own rides.")
            if ride.status != RideStatus.COMPLETED:
                raise Conflict("Complaints can only be filed for completed rides.")
            if not ride.driver_id:
                raise InvalidInput("This ride has no driver.")

            complaint = Complaint(
                id=new_complaint_id(),
                ride_id=ride.id,
                client_id=client.id,
                driver_id=ride.driver_id,
                message=message,
                created_at=self.clock(),
            )
            next_snapshot = snapshot.with_complaint(complaint)

            driver = snapshot.find_user(ride.driver_id)
            if is_driver(driver):
                penalised = apply_complaint_penalty(driver, snapshot.settings.reputation_threshold)
                next_snapshot = next_snapshot.with_user(penalised)
                logger.info(
                    "Complaint %s against driver %s: reputation %d -> %d, status %s",
                    complaint.id, driver.id, driver.reputation, penalised.reputation, penalised.status.value,
                )
            else:
                logger.warning("Complaint %s filed against missing driver %s", complaint.id, ride.driver_id)

            self.store.commit(next_snapshot)

        return complaint

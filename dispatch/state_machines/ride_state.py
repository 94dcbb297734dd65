from dataclasses import replace
from datetime import datetime

from dispatch.errors import Conflict
from rides.models import Ride, RideStatus


class RideStateException(Conflict):
    """Raised when an invalid ride transition is attempted."""
    pass


def transition_ride_to_accepted(ride: Ride, driver_id: str, now: datetime) -> Ride:
    """
    Called when a driver takes a pending ride.
    The driver is bound to the ride here and nowhere else.
    """
    if ride.status != RideStatus.PENDING:
        raise RideStateException(f"Ride {ride.id} is no longer pending (status: {ride.status.value}).")

    return replace(ride, status=RideStatus.ACCEPTED, driver_id=driver_id, accepted_at=now)


def transition_ride_to_rejected(ride: Ride) -> Ride:
    """
    A driver declined the request. Only pending rides can be rejected.
    """
    if ride.status != RideStatus.PENDING:
        raise RideStateException(f"Ride {ride.id} is no longer pending (status: {ride.status.value}).")

    return replace(ride, status=RideStatus.REJECTED)


def transition_ride_to_completed(ride: Ride, now: datetime) -> Ride:
    """
    The assigned driver finished the trip. The driver stays bound for the audit trail.
    """
    if ride.status != RideStatus.ACCEPTED:
        raise RideStateException(f"Ride {ride.id} is not in progress (status: {ride.status.value}).")

    return replace(ride, status=RideStatus.COMPLETED, completed_at=now)

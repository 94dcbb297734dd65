"""
Purpose: Which drivers a client can pick, and how far away they are.
What it does:
Filters the user list down to drivers who are active and available,
and ranks them by straight-line distance to a pickup point with an ETA per driver.
Clients use this to name a preferred driver; acceptance stays opt-in for that driver.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from rides.pricing import round_money
from routing.eta_service import DEFAULT_SPEED_KMH, estimate_eta_min
from routing.geo import GeoPoint, haversine_km
from .models import DriverUser


@dataclass(frozen=True)
class DriverCandidate:
    driver_id: str
    full_name: str
    distance_km: Optional[float]
    eta_min: Optional[int]
    reputation: int
    ac: bool
    capacity: int


def available_drivers(users: Iterable) -> List[DriverUser]:
    """
    Returns only drivers who are active and currently available.
    """
    eligible = []

    for user in users:
        if not isinstance(user, DriverUser):
            continue

        if not user.can_take_rides:
            continue

        eligible.append(user)

    return eligible


def rank_drivers_by_pickup(
    pickup: GeoPoint,
    drivers: List[DriverUser],
    speed_kmh: float = DEFAULT_SPEED_KMH,
    min_capacity: int = 0,
    require_ac: bool = False,
) -> List[DriverCandidate]:
    """
    Closest drivers first. Drivers who have not shared a location go last, without distance.
    """
    located: List[DriverCandidate] = []
    unlocated: List[DriverCandidate] = []

    for driver in drivers:
        if driver.vehicle.capacity < min_capacity:
            continue
        if require_ac and not driver.vehicle.ac:
            continue

        if driver.location is None:
            unlocated.append(
                DriverCandidate(
                    driver_id=driver.id,
                    full_name=driver.full_name,
                    distance_km=None,
                    eta_min=None,
                    reputation=driver.reputation,
                    ac=driver.vehicle.ac,
                    capacity=driver.vehicle.capacity,
                )
            )
            continue

        distance = haversine_km(driver.location, pickup)
        located.append(
            DriverCandidate(
                driver_id=driver.id,
                full_name=driver.full_name,
                distance_km=round_money(distance),
                eta_min=estimate_eta_min(distance, speed_kmh),
                reputation=driver.reputation,
                ac=driver.vehicle.ac,
                capacity=driver.vehicle.capacity,
            )
        )

    # Ties on distance go to the better reputation
    located.sort(key=lambda candidate: (candidate.distance_km, -candidate.reputation))
    return located + unlocated

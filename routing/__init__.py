#Marks routing as a package.
#Re-exports the straight-line geometry and ETA helpers so other modules
#import from routing without knowing internal file names.
#No business logic.

from .geo import GeoPoint, LatLon, haversine_km
from .eta_service import DEFAULT_SPEED_KMH, estimate_eta_min

__all__ = [
    "GeoPoint",
    "LatLon",
    "haversine_km",
    "estimate_eta_min",
    "DEFAULT_SPEED_KMH",
]

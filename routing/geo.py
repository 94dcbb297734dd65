#Purpose: Straight-line geometry for ride pricing and driver ranking.
#Great-circle distance between two (lat, lon) points in kilometers (haversine).
#No range validation: garbage in gives a number out, never an error.
#No road network here. Routing is out of scope for the agency.

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

#internal coordinate type :(lat,lon)
LatLon = Tuple[float, float]

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class GeoPoint:
    """
    A decimal-degree coordinate as supplied by the presentation layer.
    """
    lat: float
    lng: float

    def as_latlon(self) -> LatLon:
        return (self.lat, self.lng)

    def is_finite(self) -> bool:
        return math.isfinite(self.lat) and math.isfinite(self.lng)


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """
    Great-circle distance in kilometers between two points (Earth radius 6371 km).
    """
    d_lat = math.radians(b.lat - a.lat)
    d_lon = math.radians(b.lng - a.lng)
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)

    sin_d_lat = math.sin(d_lat / 2)
    sin_d_lon = math.sin(d_lon / 2)
    h = sin_d_lat * sin_d_lat + math.cos(lat1) * math.cos(lat2) * sin_d_lon * sin_d_lon

    # h can drift a hair outside [0, 1] from float error
    if h > 1.0:
        h = 1.0
    elif h < 0.0:
        h = 0.0
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c

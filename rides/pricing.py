"""
Purpose: Price and ETA for a ride request.
What it does:
Turns pickup/destination coordinates and the per-km tariff into a RideQuote.
Prices are fixed at request time and stored rounded to 2 decimals.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from routing.eta_service import DEFAULT_SPEED_KMH, estimate_eta_min
from routing.geo import GeoPoint, haversine_km

_CENT = Decimal("0.01")


def round_money(value: float) -> float:
    """
    Round a currency amount to cents, halves away from zero.
    """
    return float(Decimal(repr(float(value))).quantize(_CENT, rounding=ROUND_HALF_UP))


def ride_price(distance_km: float, tariff_per_km: float) -> float:
    return round_money(max(0.0, distance_km * tariff_per_km))


def commission_for(price: float, commission_percent: float) -> float:
    return price * commission_percent / 100


def net_earning(price: float, commission_percent: float) -> float:
    """
    What the driver keeps from a ride after the agency's cut.
    """
    return price - commission_for(price, commission_percent)


@dataclass(frozen=True)
class RideQuote:
    distance_km: float
    price: float
    eta_min: int


def quote_ride(
    pickup: GeoPoint,
    destination: GeoPoint,
    tariff_per_km: float,
    speed_kmh: float = DEFAULT_SPEED_KMH,
) -> RideQuote:
    distance = haversine_km(pickup, destination)
    return RideQuote(
        distance_km=round_money(distance),
        price=ride_price(distance, tariff_per_km),
        eta_min=estimate_eta_min(distance, speed_kmh),
    )


def format_currency(value: float, currency: str = "CUP") -> str:
    return f"{round_money(value):,.2f} {currency}"

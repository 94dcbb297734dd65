"""
Purpose: Tabular views of the state for the admin and manager panels.
What it does:
Builds pandas DataFrames out of a StoreSnapshot: the ride audit trail,
per-driver balances and aging, per-driver earnings from completed rides,
and the headline counters of the admin panel.

Rule: Read-only. Nothing here touches the store.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

import pandas as pd

from accounts.models import Role
from accounts.users import is_driver
from rides.models import RideStatus
from rides.pricing import round_money
from settlements.models import SettlementStatus
from .automation import days_since_settlement
from .store import StoreSnapshot

RIDE_COLUMNS = [
    "ride_id", "client_id", "driver_id", "status", "pickup_address", "destination_address",
    "distance_km", "price", "eta_min", "created_at", "accepted_at", "completed_at",
]
BALANCE_COLUMNS = [
    "driver_id", "username", "status", "available", "reputation", "complaints_count",
    "balance", "days_since_settlement",
]
EARNINGS_COLUMNS = ["driver_id", "rides", "gross", "commission", "net"]


def rides_frame(snapshot: StoreSnapshot) -> pd.DataFrame:
    rows = [
        {
            "ride_id": ride.id,
            "client_id": ride.client_id,
            "driver_id": ride.driver_id,
            "status": ride.status.value,
            "pickup_address": ride.pickup_address,
            "destination_address": ride.destination_address,
            "distance_km": ride.distance_km,
            "price": ride.price,
            "eta_min": ride.eta_min,
            "created_at": ride.created_at,
            "accepted_at": ride.accepted_at,
            "completed_at": ride.completed_at,
        }
        for ride in snapshot.rides
    ]
    return pd.DataFrame(rows, columns=RIDE_COLUMNS)


def driver_balances_frame(snapshot: StoreSnapshot, now: datetime) -> pd.DataFrame:
    """
    One row per driver, most overdue first.
    """
    rows = [
        {
            "driver_id": user.id,
            "username": user.username,
            "status": user.status.value,
            "available": user.available,
            "reputation": user.reputation,
            "complaints_count": user.complaints_count,
            "balance": user.earnings_since_last_settlement,
            "days_since_settlement": round(days_since_settlement(user, now), 2),
        }
        for user in snapshot.users
        if is_driver(user)
    ]
    df = pd.DataFrame(rows, columns=BALANCE_COLUMNS)
    if df.empty:
        return df
    return df.sort_values(["days_since_settlement", "balance"], ascending=False).reset_index(drop=True)


def driver_earnings_frame(snapshot: StoreSnapshot, commission_percent: Optional[float] = None) -> pd.DataFrame:
    """
    Completed rides grouped per driver: ride count, gross fares, agency commission, driver net.
    """
    if commission_percent is None:
        commission_percent = snapshot.settings.commission_percent

    rides = rides_frame(snapshot)
    completed = rides[rides["status"] == RideStatus.COMPLETED.value]
    if completed.empty:
        return pd.DataFrame(columns=EARNINGS_COLUMNS)

    grouped = (
        completed.groupby("driver_id")
        .agg(rides=("ride_id", "count"), gross=("price", "sum"))
        .reset_index()
    )
    grouped["commission"] = (grouped["gross"] * commission_percent / 100).map(round_money)
    grouped["gross"] = grouped["gross"].map(round_money)
    grouped["net"] = (grouped["gross"] - grouped["commission"]).map(round_money)
    return grouped[EARNINGS_COLUMNS].sort_values("gross", ascending=False).reset_index(drop=True)


def platform_summary(snapshot: StoreSnapshot) -> Dict[str, int]:
    """
    Headline counters for the admin panel.
    """
    users = pd.Series([user.role.value for user in snapshot.users], dtype="object")
    role_counts = users.value_counts()
    statuses = pd.Series([ride.status.value for ride in snapshot.rides], dtype="object").value_counts()

    return {
        "clients": int(role_counts.get(Role.CLIENT.value, 0)),
        "drivers": int(role_counts.get(Role.DRIVER.value, 0)),
        "rides": len(snapshot.rides),
        "completed_rides": int(statuses.get(RideStatus.COMPLETED.value, 0)),
        "active_rides": int(statuses.get(RideStatus.PENDING.value, 0) + statuses.get(RideStatus.ACCEPTED.value, 0)),
        "complaints": len(snapshot.complaints),
        "pending_settlements": sum(1 for s in snapshot.settlements if s.status == SettlementStatus.PENDING),
    }

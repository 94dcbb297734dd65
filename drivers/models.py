"""
Purpose: Core data models for the drivers domain.
What it does:
Defines the Driver variant of a user: vehicle, availability, location,
reputation and the commission balance owed since the last settlement.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from accounts.models import Account, AccountFields, Role, UserStatus
from routing.geo import GeoPoint

MAX_REPUTATION = 100
MIN_REPUTATION = 0


@dataclass(frozen=True)
class VehicleInfo:
    ac: bool = True
    capacity: int = 4  # seats, driver included
    vehicle_photo_url: Optional[str] = None
    driver_license_url: Optional[str] = None
    circulation_card_url: Optional[str] = None


@dataclass(frozen=True)
class DriverUser(AccountFields):
    """
    A driver at a specific point in time. Every change produces a new instance via replace().
    """
    account: Account
    vehicle: VehicleInfo = field(default_factory=VehicleInfo)
    available: bool = False
    location: Optional[GeoPoint] = None

    # 0-100, only ever lowered by complaints
    reputation: int = MAX_REPUTATION
    earnings_since_last_settlement: float = 0.0
    last_settlement_at: Optional[datetime] = None
    complaints_count: int = 0

    id_card_front_url: Optional[str] = None
    id_card_back_url: Optional[str] = None
    role: Role = field(default=Role.DRIVER, init=False)

    @property
    def can_take_rides(self) -> bool:
        return self.status == UserStatus.ACTIVE and self.available

    @classmethod
    def new(
        cls,
        username: str,
        password: str,
        *,
        now: datetime,
        full_name: str = "",
        phone: str = "",
        ci: str = "",
        status: UserStatus = UserStatus.PENDING,
        vehicle: Optional[VehicleInfo] = None,
        reputation: int = MAX_REPUTATION,
        driver_id: Optional[str] = None,
        id_card_front_url: Optional[str] = None,
        id_card_back_url: Optional[str] = None,
    ) -> DriverUser:
        return cls(
            account=Account(
                id=driver_id or f"drv_{uuid.uuid4().hex[:10]}",
                username=username,
                password=password,
                full_name=full_name,
                phone=phone,
                ci=ci,
                status=status,
                created_at=now,
            ),
            vehicle=vehicle or VehicleInfo(),
            available=False,
            reputation=reputation,
            earnings_since_last_settlement=0.0,
            last_settlement_at=now,
            complaints_count=0,
            id_card_front_url=id_card_front_url,
            id_card_back_url=id_card_back_url,
        )

"""
Purpose: The versioned state document the host stores for us.
What it does:
- Document models (pydantic): one schema per entity, camelCase on the wire,
  epoch-millisecond timestamps, bounds on the values the engines rely on.
- dump_state(): StoreSnapshot -> plain dict.
- load_state(): plain dict -> StoreSnapshot, after migrate_state() normalised it
  and the document models validated it. A document that fails validation raises InvalidInput.
- save_state_file()/load_state_file(): JSON file convenience for scripts and local runs.

Document layout:
{"version": 1, "state": {"users": [...], "rides": [...], "complaints": [...],
                         "settlements": [...], "settings": {...}, "currentUser": {...} | null}}

Rule: No business rules here. Migration only guarantees the shape, validation only the ranges.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from accounts.models import LEGACY_ROLE_NAMES, Role, UserStatus
from accounts.users import AnyUser, default_users, new_user
from complaints.models import Complaint
from drivers.models import MAX_REPUTATION, MIN_REPUTATION, DriverUser, VehicleInfo
from rides.models import Ride, RideStatus
from routing.geo import GeoPoint
from settlements.models import Settlement, SettlementStatus
from .errors import InvalidInput
from .settings import AppSettings, PaymentSettings, default_settings
from .store import STATE_VERSION, StoreSnapshot

logger = logging.getLogger(__name__)

_DRIVER_ONLY_FIELDS = {
    "vehicle",
    "available",
    "location",
    "reputation",
    "earnings_since_last_settlement",
    "last_settlement_at",
    "complaints_count",
}
_ID_CARD_FIELDS = {"id_card_front_url", "id_card_back_url"}
_ASSIGNED_RIDE_STATUSES = frozenset({RideStatus.ACCEPTED, RideStatus.COMPLETED})


# ---------------- timestamps ----------------

def _to_millis(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    return int(round(value.timestamp() * 1000))


def _from_millis(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def parse_role(value: str) -> Role:
    if value in LEGACY_ROLE_NAMES:
        return LEGACY_ROLE_NAMES[value]
    return Role(value)


# ---------------- document models ----------------

class DocumentModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class PointDoc(DocumentModel):
    lat: float
    lng: float

    @classmethod
    def from_domain(cls, point: Optional[GeoPoint]) -> Optional[PointDoc]:
        if point is None:
            return None
        return cls(lat=point.lat, lng=point.lng)

    def to_domain(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lng=self.lng)


class PaymentDoc(DocumentModel):
    beneficiary_name: str
    card_number: str
    phone: str
    bank_name: Optional[str] = None
    instructions: Optional[str] = None


class SettingsDoc(DocumentModel):
    tariff_per_km: float = Field(ge=0, allow_inf_nan=False)
    reputation_threshold: int = Field(ge=MIN_REPUTATION, le=MAX_REPUTATION)
    commission_percent: float = Field(ge=0, le=100, allow_inf_nan=False)
    settlement_period_days: int = Field(gt=0)
    payment: PaymentDoc

    @classmethod
    def from_domain(cls, settings: AppSettings) -> SettingsDoc:
        return cls(
            tariff_per_km=settings.tariff_per_km,
            reputation_threshold=settings.reputation_threshold,
            commission_percent=settings.commission_percent,
            settlement_period_days=settings.settlement_period_days,
            payment=PaymentDoc(
                beneficiary_name=settings.payment.beneficiary_name,
                card_number=settings.payment.card_number,
                phone=settings.payment.phone,
                bank_name=settings.payment.bank_name,
                instructions=settings.payment.instructions,
            ),
        )

    def to_domain(self) -> AppSettings:
        return AppSettings(
            payment=PaymentSettings(**self.payment.model_dump()),
            **self.model_dump(exclude={"payment"}),
        )


class VehicleDoc(DocumentModel):
    ac: bool = True
    capacity: int = 4
    vehicle_photo_url: Optional[str] = None
    driver_license_url: Optional[str] = None
    circulation_card_url: Optional[str] = None


class UserDoc(DocumentModel):
    """
    One user of any role. Driver fields are only written for drivers,
    ID-card fields only for drivers and clients.
    """
    id: str
    username: str
    password: str = ""
    role: Role
    full_name: str = ""
    phone: str = ""
    ci: str = ""
    status: UserStatus = UserStatus.PENDING
    created_at: Optional[int] = None
    id_card_front_url: Optional[str] = None
    id_card_back_url: Optional[str] = None

    vehicle: VehicleDoc = Field(default_factory=VehicleDoc)
    available: bool = False
    location: Optional[PointDoc] = None
    reputation: int = Field(default=MAX_REPUTATION, ge=MIN_REPUTATION, le=MAX_REPUTATION)
    earnings_since_last_settlement: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    last_settlement_at: Optional[int] = None
    complaints_count: int = Field(default=0, ge=0)

    @field_validator("role", mode="before")
    @classmethod
    def _legacy_role(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_role(value)
        return value

    @field_validator("vehicle", mode="before")
    @classmethod
    def _missing_vehicle(cls, value: Any) -> Any:
        return value or {}

    @field_validator("location", mode="before")
    @classmethod
    def _missing_location(cls, value: Any) -> Any:
        return value or None

    @classmethod
    def from_domain(cls, user: AnyUser) -> UserDoc:
        values: Dict[str, Any] = dict(
            id=user.id,
            username=user.username,
            password=user.password,
            role=user.role,
            full_name=user.full_name,
            phone=user.phone,
            ci=user.account.ci,
            status=user.status,
            created_at=_to_millis(user.created_at),
        )
        if user.role in (Role.CLIENT, Role.DRIVER):
            values.update(id_card_front_url=user.id_card_front_url, id_card_back_url=user.id_card_back_url)
        if isinstance(user, DriverUser):
            values.update(
                vehicle=VehicleDoc(
                    ac=user.vehicle.ac,
                    capacity=user.vehicle.capacity,
                    vehicle_photo_url=user.vehicle.vehicle_photo_url,
                    driver_license_url=user.vehicle.driver_license_url,
                    circulation_card_url=user.vehicle.circulation_card_url,
                ),
                available=user.available,
                location=PointDoc.from_domain(user.location),
                reputation=user.reputation,
                earnings_since_last_settlement=user.earnings_since_last_settlement,
                last_settlement_at=_to_millis(user.last_settlement_at),
                complaints_count=user.complaints_count,
            )
        return cls(**values)

    def to_document(self) -> Dict[str, Any]:
        exclude = set()
        if self.role != Role.DRIVER:
            exclude |= _DRIVER_ONLY_FIELDS
        if self.role not in (Role.CLIENT, Role.DRIVER):
            exclude |= _ID_CARD_FIELDS
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)

    def to_domain(self, now: datetime) -> AnyUser:
        created_at = _from_millis(self.created_at) or now
        user = new_user(
            self.role,
            user_id=self.id,
            username=self.username,
            password=self.password,
            full_name=self.full_name,
            phone=self.phone,
            ci=self.ci,
            status=self.status,
            now=created_at,
            id_card_front_url=self.id_card_front_url,
            id_card_back_url=self.id_card_back_url,
        )
        if self.role != Role.DRIVER:
            return user

        return replace(
            user,
            vehicle=VehicleInfo(**self.vehicle.model_dump()),
            available=self.available,
            location=self.location.to_domain() if self.location else None,
            reputation=self.reputation,
            earnings_since_last_settlement=self.earnings_since_last_settlement,
            last_settlement_at=_from_millis(self.last_settlement_at) or created_at,
            complaints_count=self.complaints_count,
        )


class RideDoc(DocumentModel):
    id: str
    client_id: str
    driver_id: Optional[str] = None
    preferred_driver_id: Optional[str] = None
    status: RideStatus
    pickup_address: str = ""
    pickup_point: PointDoc
    destination_address: str = ""
    destination_point: PointDoc
    distance_km: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    price: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    eta_min: int = Field(default=0, ge=0)
    has_route_changes: bool = False
    created_at: Optional[int] = None
    accepted_at: Optional[int] = None
    completed_at: Optional[int] = None

    @model_validator(mode="after")
    def _driver_bound_when_assigned(self) -> RideDoc:
        if (self.status in _ASSIGNED_RIDE_STATUSES) != (self.driver_id is not None):
            raise ValueError("driverId must be set exactly when the ride is accepted or completed")
        return self

    @classmethod
    def from_domain(cls, ride: Ride) -> RideDoc:
        return cls(
            id=ride.id,
            client_id=ride.client_id,
            driver_id=ride.driver_id,
            preferred_driver_id=ride.preferred_driver_id,
            status=ride.status,
            pickup_address=ride.pickup_address,
            pickup_point=PointDoc.from_domain(ride.pickup_point),
            destination_address=ride.destination_address,
            destination_point=PointDoc.from_domain(ride.destination_point),
            distance_km=ride.distance_km,
            price=ride.price,
            eta_min=ride.eta_min,
            has_route_changes=ride.has_route_changes,
            created_at=_to_millis(ride.created_at),
            accepted_at=_to_millis(ride.accepted_at),
            completed_at=_to_millis(ride.completed_at),
        )

    def to_domain(self, now: datetime) -> Ride:
        return Ride(
            id=self.id,
            client_id=self.client_id,
            driver_id=self.driver_id,
            preferred_driver_id=self.preferred_driver_id,
            status=self.status,
            pickup_address=self.pickup_address,
            pickup_point=self.pickup_point.to_domain(),
            destination_address=self.destination_address,
            destination_point=self.destination_point.to_domain(),
            distance_km=self.distance_km,
            price=self.price,
            eta_min=self.eta_min,
            has_route_changes=self.has_route_changes,
            created_at=_from_millis(self.created_at) or now,
            accepted_at=_from_millis(self.accepted_at),
            completed_at=_from_millis(self.completed_at),
        )


class ComplaintDoc(DocumentModel):
    id: str
    ride_id: str
    client_id: str
    driver_id: str
    message: str = ""
    created_at: Optional[int] = None

    @classmethod
    def from_domain(cls, complaint: Complaint) -> ComplaintDoc:
        return cls(
            id=complaint.id,
            ride_id=complaint.ride_id,
            client_id=complaint.client_id,
            driver_id=complaint.driver_id,
            message=complaint.message,
            created_at=_to_millis(complaint.created_at),
        )

    def to_domain(self, now: datetime) -> Complaint:
        return Complaint(
            id=self.id,
            ride_id=self.ride_id,
            client_id=self.client_id,
            driver_id=self.driver_id,
            message=self.message,
            created_at=_from_millis(self.created_at) or now,
        )


class SettlementDoc(DocumentModel):
    id: str
    driver_id: str
    amount: float = Field(ge=0, allow_inf_nan=False)
    status: SettlementStatus
    evidence_url: Optional[str] = None
    created_at: Optional[int] = None
    reviewed_at: Optional[int] = None
    reviewer_id: Optional[str] = None
    rejection_reason: Optional[str] = None

    @classmethod
    def from_domain(cls, settlement: Settlement) -> SettlementDoc:
        return cls(
            id=settlement.id,
            driver_id=settlement.driver_id,
            amount=settlement.amount,
            status=settlement.status,
            evidence_url=settlement.evidence_url,
            created_at=_to_millis(settlement.created_at),
            reviewed_at=_to_millis(settlement.reviewed_at),
            reviewer_id=settlement.reviewer_id,
            rejection_reason=settlement.rejection_reason,
        )

    def to_domain(self, now: datetime) -> Settlement:
        return Settlement(
            id=self.id,
            driver_id=self.driver_id,
            amount=self.amount,
            status=self.status,
            evidence_url=self.evidence_url,
            created_at=_from_millis(self.created_at) or now,
            reviewed_at=_from_millis(self.reviewed_at),
            reviewer_id=self.reviewer_id,
            rejection_reason=self.rejection_reason,
        )


class StateDoc(DocumentModel):
    users: List[UserDoc]
    rides: List[RideDoc]
    complaints: List[ComplaintDoc]
    settlements: List[SettlementDoc]
    settings: SettingsDoc
    # Only the id is read back; the session is dropped if that user is gone.
    current_user: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def _unique_usernames(self) -> StateDoc:
        usernames = [user.username for user in self.users]
        if len(usernames) != len(set(usernames)):
            raise ValueError("usernames must be unique")
        return self


# ---------------- document ----------------

def user_to_dict(user: AnyUser) -> Dict[str, Any]:
    return UserDoc.from_domain(user).to_document()


def settings_to_dict(settings: AppSettings) -> Dict[str, Any]:
    return SettingsDoc.from_domain(settings).to_document()


def migrate_state(raw: Optional[Dict[str, Any]], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Guarantees the four arrays and settings.payment exist.
    Missing users fall back to the two seed accounts.
    """
    now = now or datetime.now(timezone.utc)
    state = dict(raw) if isinstance(raw, dict) else {}

    if not isinstance(state.get("users"), list):
        state["users"] = [user_to_dict(user) for user in default_users(now)]
    for key in ("rides", "complaints", "settlements"):
        if not isinstance(state.get(key), list):
            state[key] = []

    defaults = settings_to_dict(default_settings())
    old = state.get("settings")
    if not isinstance(old, dict):
        state["settings"] = defaults
    else:
        old_payment = old.get("payment")
        merged = {**defaults, **old}
        merged["payment"] = {**defaults["payment"], **(old_payment if isinstance(old_payment, dict) else {})}
        state["settings"] = merged

    return state


def dump_state(snapshot: StoreSnapshot) -> Dict[str, Any]:
    current = snapshot.current_user
    return {
        "version": snapshot.version,
        "state": {
            "users": [user_to_dict(user) for user in snapshot.users],
            "rides": [RideDoc.from_domain(ride).to_document() for ride in snapshot.rides],
            "complaints": [ComplaintDoc.from_domain(c).to_document() for c in snapshot.complaints],
            "settlements": [SettlementDoc.from_domain(s).to_document() for s in snapshot.settlements],
            "settings": settings_to_dict(snapshot.settings),
            "currentUser": user_to_dict(current) if current is not None else None,
        },
    }


def load_state(document: Optional[Dict[str, Any]], now: Optional[datetime] = None) -> StoreSnapshot:
    """
    Accepts either the versioned document or a bare state dict.
    Raises InvalidInput when the document breaks a bound or misses a required field.
    """
    now = now or datetime.now(timezone.utc)
    document = document if isinstance(document, dict) else {}
    raw_state = document["state"] if isinstance(document.get("state"), dict) else document
    version = document.get("version", STATE_VERSION)
    if version != STATE_VERSION:
        logger.warning("Loading state version %s with migrator for version %s", version, STATE_VERSION)

    try:
        state = StateDoc.model_validate(migrate_state(raw_state, now))
    except ValidationError as exc:
        logger.error("Rejected state document: %d validation error(s)", exc.error_count())
        raise InvalidInput(f"Invalid state document: {exc}") from exc

    users = tuple(user.to_domain(now) for user in state.users)

    current_user_id = None
    current_id = (state.current_user or {}).get("id")
    if any(user.id == current_id for user in users):
        current_user_id = current_id

    return StoreSnapshot(
        users=users,
        rides=tuple(ride.to_domain(now) for ride in state.rides),
        complaints=tuple(c.to_domain(now) for c in state.complaints),
        settlements=tuple(s.to_domain(now) for s in state.settlements),
        settings=state.settings.to_domain(),
        current_user_id=current_user_id,
        version=STATE_VERSION,
    )


def save_state_file(path: str, snapshot: StoreSnapshot) -> None:
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as file:
        json.dump(dump_state(snapshot), file, ensure_ascii=False, indent=2)
    os.replace(tmp_path, path)


def load_state_file(path: str, now: Optional[datetime] = None) -> StoreSnapshot:
    if not os.path.exists(path):
        logger.info("No state file at %s, starting from the seed accounts", path)
        return load_state(None, now)

    with open(path, "r", encoding="utf-8") as file:
        return load_state(json.load(file), now)

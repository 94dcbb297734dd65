"""
Purpose: Orchestrator / command surface (the "glue").
What it does:
Owns the EntityStore and the authenticated session, wires the engines together
and exposes the whole command and query set to the presentation layer.

Every command re-reads the caller from the latest snapshot, runs one engine call,
and turns an expected failure into a CommandResult instead of raising.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from accounts.models import Role, UserStatus
from accounts.service import AccountService
from accounts.users import AnyUser, is_driver
from complaints.models import Complaint
from complaints.reputation import ComplaintDesk
from drivers.selection import DriverCandidate, available_drivers, rank_drivers_by_pickup
from rides.lifecycle import RideLifecycle
from rides.models import Ride, RideStatus
from rides.pricing import RideQuote, quote_ride
from routing.eta_service import DEFAULT_SPEED_KMH
from routing.geo import GeoPoint
from settlements.engine import SettlementDesk, payment_reference
from settlements.models import Settlement, SettlementStatus
from .automation import days_until_settlement_due, sweep_drivers
from .errors import CommandResult, DispatchError, InvalidInput
from .guards import require_staff
from .persistence import dump_state, load_state
from .settings import AppSettings
from .store import EntityStore, StoreSnapshot, initial_snapshot

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Dispatcher:
    """
    Coordinates every command against a single shared store.
    Construct once and pass it to callers; no global instance is needed.
    """
    def __init__(
        self,
        store: Optional[EntityStore] = None,
        clock: Callable[[], datetime] = utc_now,
        speed_kmh: float = DEFAULT_SPEED_KMH,
        phone_region: str = "CU",
        currency: str = "CUP",
        settings: Optional[AppSettings] = None,
    ):
        self.clock = clock
        self.speed_kmh = speed_kmh
        self.currency = currency
        self.store = store or EntityStore(initial_snapshot(clock(), settings))

        self.accounts = AccountService(self.store, clock, phone_region=phone_region)
        self.rides = RideLifecycle(self.store, clock, speed_kmh=speed_kmh)
        self.complaints = ComplaintDesk(self.store, clock)
        self.settlements = SettlementDesk(self.store, clock)

    @classmethod
    def from_state(cls, document: Optional[Dict[str, Any]], **kwargs) -> Dispatcher:
        clock = kwargs.get("clock", utc_now)
        return cls(store=EntityStore(load_state(document, clock())), **kwargs)

    def export_state(self) -> Dict[str, Any]:
        return dump_state(self.store.snapshot)

    # ---------------- plumbing ----------------

    @property
    def snapshot(self) -> StoreSnapshot:
        return self.store.snapshot

    @property
    def settings(self) -> AppSettings:
        return self.store.snapshot.settings

    @property
    def current_user(self) -> Optional[AnyUser]:
        return self.store.snapshot.current_user

    def _actor_id(self) -> Optional[str]:
        return self.store.snapshot.current_user_id

    def _run(self, command: str, action: Callable[[], Any], message: Optional[str] = None) -> CommandResult:
        try:
            outcome = action()
        except DispatchError as exc:
            logger.warning("%s refused: %s", command, exc.message)
            return CommandResult.failure(exc)
        entity_id = getattr(outcome, "id", None)
        return CommandResult.success(id=entity_id, message=message)

    def subscribe(self, callback: Callable[[StoreSnapshot], None]) -> Callable[[], None]:
        return self.store.subscribe(callback)

    # ---------------- session / registration ----------------

    def login(self, username: str, password: str, role: Optional[Role] = None) -> CommandResult:
        return self._run("login", lambda: self.accounts.login(username, password, role))

    def logout(self) -> None:
        self.accounts.logout()

    def register_client(self, username: str, password: str, **details) -> CommandResult:
        return self._run("register_client", lambda: self.accounts.register_client(username, password, **details))

    def register_driver(self, username: str, password: str, **details) -> CommandResult:
        return self._run("register_driver", lambda: self.accounts.register_driver(username, password, **details))

    # ---------------- administration ----------------

    def create_user(self, role, username: str, password: str, **details) -> CommandResult:
        return self._run(
            "create_user",
            lambda: self.accounts.create_user(self._actor_id(), role, username, password, **details),
        )

    def update_user(self, user_id: str, **changes) -> CommandResult:
        return self._run("update_user", lambda: self.accounts.update_user(self._actor_id(), user_id, changes))

    def delete_user(self, user_id: str) -> CommandResult:
        return self._run("delete_user", lambda: self.accounts.delete_user(self._actor_id(), user_id))

    def set_user_status(self, user_id: str, status: UserStatus) -> CommandResult:
        return self._run("set_user_status", lambda: self.accounts.set_user_status(self._actor_id(), user_id, status))

    def update_settings(self, **changes) -> CommandResult:
        """
        Manager/admin only. A new settings snapshot replaces the old one, then the sweep runs.
        """
        def action():
            with self.store.lock():
                snapshot = self.store.snapshot
                actor = require_staff(snapshot, self._actor_id())
                try:
                    new_settings = snapshot.settings.updated(changes)
                except (TypeError, ValueError) as exc:
                    raise InvalidInput(str(exc))

                next_snapshot, _ = sweep_drivers(snapshot.with_settings(new_settings), self.clock())
                self.store.commit(next_snapshot)
            logger.info("%s updated settings: %s", actor.username, sorted(changes))

        return self._run("update_settings", action)

    # ---------------- drivers ----------------

    def set_driver_availability(self, available: bool, location: Optional[GeoPoint] = None) -> CommandResult:
        return self._run(
            "set_driver_availability",
            lambda: self.accounts.set_driver_availability(self._actor_id(), available, location),
        )

    def accept_ride(self, ride_id: str, location: Optional[GeoPoint] = None) -> CommandResult:
        return self._run("accept_ride", lambda: self.rides.accept(self._actor_id(), ride_id, location))

    def reject_ride(self, ride_id: str) -> CommandResult:
        return self._run("reject_ride", lambda: self.rides.reject(self._actor_id(), ride_id))

    def complete_ride(self, ride_id: str) -> CommandResult:
        return self._run("complete_ride", lambda: self.rides.complete(self._actor_id(), ride_id))

    def request_settlement(self, evidence_url: Optional[str], amount: Optional[float] = None) -> CommandResult:
        return self._run(
            "request_settlement",
            lambda: self.settlements.request(self._actor_id(), evidence_url, amount),
        )

    # ---------------- clients ----------------

    def request_ride(
        self,
        *,
        pickup_address: str,
        pickup_point: GeoPoint,
        destination_address: str,
        destination_point: GeoPoint,
        has_route_changes: bool = False,
        preferred_driver_id: Optional[str] = None,
    ) -> CommandResult:
        return self._run(
            "request_ride",
            lambda: self.rides.request(
                self._actor_id(),
                pickup_address=pickup_address,
                pickup_point=pickup_point,
                destination_address=destination_address,
                destination_point=destination_point,
                has_route_changes=has_route_changes,
                preferred_driver_id=preferred_driver_id,
            ),
        )

    def file_complaint(self, ride_id: str, message: str) -> CommandResult:
        return self._run("file_complaint", lambda: self.complaints.file(self._actor_id(), ride_id, message))

    # ---------------- managers ----------------

    def approve_settlement(self, settlement_id: str) -> CommandResult:
        return self._run(
            "approve_settlement",
            lambda: self.settlements.approve(self._actor_id(), settlement_id),
        )

    def reject_settlement(self, settlement_id: str, reason: Optional[str] = None) -> CommandResult:
        return self._run(
            "reject_settlement",
            lambda: self.settlements.reject(self._actor_id(), settlement_id, reason),
        )

    # ---------------- automation ----------------

    def run_automations(self) -> None:
        with self.store.lock():
            next_snapshot, _ = sweep_drivers(self.store.snapshot, self.clock())
            self.store.commit(next_snapshot)

    # ---------------- queries ----------------

    def get_user(self, user_id: str) -> Optional[AnyUser]:
        return self.snapshot.find_user(user_id)

    def get_ride(self, ride_id: str) -> Optional[Ride]:
        return self.snapshot.find_ride(ride_id)

    def get_settlement(self, settlement_id: str) -> Optional[Settlement]:
        return self.snapshot.find_settlement(settlement_id)

    def users_by_role(self, role: Role) -> List[AnyUser]:
        return [u for u in self.snapshot.users if u.role == Role(role)]

    def pending_users(self) -> List[AnyUser]:
        return [u for u in self.snapshot.users if u.status == UserStatus.PENDING]

    def rides_for_client(self, client_id: str) -> List[Ride]:
        return [r for r in self.snapshot.rides if r.client_id == client_id]

    def rides_for_driver(self, driver_id: str) -> List[Ride]:
        return [r for r in self.snapshot.rides if r.driver_id == driver_id]

    def visible_pending_rides(self, driver_id: str) -> List[Ride]:
        return [r for r in self.snapshot.rides if r.visible_to(driver_id)]

    def active_rides(self) -> List[Ride]:
        return [r for r in self.snapshot.rides if r.status in (RideStatus.PENDING, RideStatus.ACCEPTED)]

    def pending_settlements(self) -> List[Settlement]:
        return [s for s in self.snapshot.settlements if s.status == SettlementStatus.PENDING]

    def settlements_for_driver(self, driver_id: str) -> List[Settlement]:
        return [s for s in self.snapshot.settlements if s.driver_id == driver_id]

    def complaints_against(self, driver_id: str) -> List[Complaint]:
        return [c for c in self.snapshot.complaints if c.driver_id == driver_id]

    def quote(self, pickup: GeoPoint, destination: GeoPoint) -> RideQuote:
        """
        Price/ETA preview for the request form, at the current tariff.
        """
        return quote_ride(pickup, destination, self.settings.tariff_per_km, self.speed_kmh)

    def nearby_drivers(self, pickup: GeoPoint, **filters) -> List[DriverCandidate]:
        drivers = available_drivers(self.snapshot.users)
        return rank_drivers_by_pickup(pickup, drivers, speed_kmh=self.speed_kmh, **filters)

    def days_until_settlement_due(self, driver_id: str) -> Optional[float]:
        driver = self.snapshot.find_user(driver_id)
        if not is_driver(driver):
            return None
        return days_until_settlement_due(driver, self.settings, self.clock())

    def payment_reference(self, driver_id: str) -> Optional[str]:
        driver = self.snapshot.find_user(driver_id)
        if not is_driver(driver):
            return None
        return payment_reference(self.settings, driver.earnings_since_last_settlement, self.currency)


def build_dispatcher_from_env() -> Dispatcher:
    """
    A Dispatcher configured from PALTAXI_* variables, restoring PALTAXI_STATE_FILE when set.
    """
    from .config import initial_settings_from_env, load_runtime_config
    from .persistence import load_state_file

    config = load_runtime_config()
    kwargs = dict(speed_kmh=config.average_speed_kmh, phone_region=config.phone_region, currency=config.currency)
    if config.state_file:
        store = EntityStore(load_state_file(config.state_file))
        return Dispatcher(store=store, **kwargs)
    return Dispatcher(settings=initial_settings_from_env(), **kwargs)

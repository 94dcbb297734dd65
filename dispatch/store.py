"""
Purpose: Owns the agency's state (users, rides, complaints, settlements, settings).
What it does:

- Holds one immutable StoreSnapshot at a time.
- Commands run under `with store.lock():`, read `store.snapshot`, build the next
  snapshot and `commit()` it once. Nobody sees a half-applied command.
- Subscribers (the presentation layer) are called with each committed snapshot.

Rule: The store owns state replacement. Engines own the rules.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from accounts.users import AnyUser, default_users
from complaints.models import Complaint
from rides.models import Ride
from settlements.models import Settlement
from .errors import NotFound
from .settings import AppSettings, default_settings

logger = logging.getLogger(__name__)

STATE_VERSION = 1

Subscriber = Callable[["StoreSnapshot"], None]


@dataclass(frozen=True)
class StoreSnapshot:
    """
    The whole state at one instant. Never mutated: every change returns a new snapshot.
    """
    users: Tuple[AnyUser, ...] = ()
    rides: Tuple[Ride, ...] = ()
    complaints: Tuple[Complaint, ...] = ()
    settlements: Tuple[Settlement, ...] = ()
    settings: AppSettings = field(default_factory=default_settings)
    current_user_id: Optional[str] = None
    version: int = STATE_VERSION

    # --- lookups ---

    def find_user(self, user_id: Optional[str]) -> Optional[AnyUser]:
        if user_id is None:
            return None
        for user in self.users:
            if user.id == user_id:
                return user
        return None

    def find_user_by_username(self, username: str) -> Optional[AnyUser]:
        for user in self.users:
            if user.username == username:
                return user
        return None

    def find_ride(self, ride_id: str) -> Optional[Ride]:
        for ride in self.rides:
            if ride.id == ride_id:
                return ride
        return None

    def find_settlement(self, settlement_id: str) -> Optional[Settlement]:
        for settlement in self.settlements:
            if settlement.id == settlement_id:
                return settlement
        return None

    def require_ride(self, ride_id: str) -> Ride:
        ride = self.find_ride(ride_id)
        if ride is None:
            raise NotFound("Ride not found.")
        return ride

    def require_user(self, user_id: str) -> AnyUser:
        user = self.find_user(user_id)
        if user is None:
            raise NotFound("User not found.")
        return user

    def require_settlement(self, settlement_id: str) -> Settlement:
        settlement = self.find_settlement(settlement_id)
        if settlement is None:
            raise NotFound("Settlement not found.")
        return settlement

    @property
    def current_user(self) -> Optional[AnyUser]:
        return self.find_user(self.current_user_id)

    # --- next-snapshot builders ---

    def with_user(self, user: AnyUser) -> StoreSnapshot:
        """
        Replace the user with the same id, or append it if new.
        """
        users = list(self.users)
        for index, existing in enumerate(users):
            if existing.id == user.id:
                users[index] = user
                return replace(self, users=tuple(users))
        users.append(user)
        return replace(self, users=tuple(users))

    def with_users(self, users) -> StoreSnapshot:
        return replace(self, users=tuple(users))

    def without_user(self, user_id: str) -> StoreSnapshot:
        return replace(self, users=tuple(u for u in self.users if u.id != user_id))

    def with_ride(self, ride: Ride) -> StoreSnapshot:
        rides = list(self.rides)
        for index, existing in enumerate(rides):
            if existing.id == ride.id:
                rides[index] = ride
                return replace(self, rides=tuple(rides))
        rides.append(ride)
        return replace(self, rides=tuple(rides))

    def with_complaint(self, complaint: Complaint) -> StoreSnapshot:
        return replace(self, complaints=self.complaints + (complaint,))

    def with_settlement(self, settlement: Settlement) -> StoreSnapshot:
        settlements = list(self.settlements)
        for index, existing in enumerate(settlements):
            if existing.id == settlement.id:
                settlements[index] = settlement
                return replace(self, settlements=tuple(settlements))
        settlements.append(settlement)
        return replace(self, settlements=tuple(settlements))

    def with_settings(self, settings: AppSettings) -> StoreSnapshot:
        return replace(self, settings=settings)

    def with_current_user(self, user_id: Optional[str]) -> StoreSnapshot:
        return replace(self, current_user_id=user_id)


def initial_snapshot(now: datetime, settings: Optional[AppSettings] = None) -> StoreSnapshot:
    return StoreSnapshot(
        users=tuple(default_users(now)),
        settings=settings or default_settings(),
    )


class EntityStore:
    """
    Single shared mutable holder of the current snapshot.
    """
    def __init__(self, snapshot: StoreSnapshot):
        self._snapshot = snapshot
        self._lock = threading.RLock()
        self._subscribers: List[Subscriber] = []
        self._commits = 0

    @property
    def snapshot(self) -> StoreSnapshot:
        return self._snapshot

    @property
    def commits(self) -> int:
        return self._commits

    def lock(self) -> threading.RLock:
        return self._lock

    def commit(self, snapshot: StoreSnapshot) -> None:
        """
        Atomically replace the current snapshot and notify subscribers.
        """
        with self._lock:
            if snapshot is self._snapshot:
                return
            self._snapshot = snapshot
            self._commits += 1
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Store subscriber %r failed", callback)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for committed snapshots. Returns an unsubscribe function.
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

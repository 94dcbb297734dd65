"""
Purpose: Session, self-registration and account administration.
What it does:
- login()/logout(): the authenticated session every role-gated command is checked against.
- register_client()/register_driver(): public sign-up, accounts start PENDING.
- create_user()/update_user()/delete_user()/set_user_status(): manager/admin only.
- set_driver_availability(): a driver going on or off duty.

Direct-manipulation CRUD: no derived logic beyond role defaults and the seed-account guard.
"""

from __future__ import annotations

import logging
import math
from dataclasses import fields, replace
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from accounts.models import Account, Role, STAFF_ROLES, UserStatus
from dispatch.errors import Conflict, InvalidInput, Unauthorized
from dispatch.guards import require_role, require_staff
from dispatch.state_machines.driver_state import set_availability
from dispatch.store import EntityStore, StoreSnapshot
from drivers.models import MAX_REPUTATION, MIN_REPUTATION, VehicleInfo
from routing.geo import GeoPoint
from .phones import normalize_phone
from .users import SEED_USER_IDS, AnyUser, is_driver, new_user

logger = logging.getLogger(__name__)

_ACCOUNT_FIELDS = {f.name for f in fields(Account)}
_IMMUTABLE_FIELDS = {"id", "role", "created_at"}


def _ensure_username_free(snapshot: StoreSnapshot, username: str, except_user_id: Optional[str] = None) -> None:
    if not username:
        raise InvalidInput("Username is required.")
    existing = snapshot.find_user_by_username(username)
    if existing is not None and existing.id != except_user_id:
        raise Conflict("Username already exists.")


def _as_role(role) -> Role:
    try:
        return Role(role)
    except ValueError:
        raise InvalidInput(f"Unknown role: {role}")


def _as_status(status) -> UserStatus:
    try:
        return UserStatus(status)
    except ValueError:
        raise InvalidInput(f"Unknown status: {status}")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _check_reputation(reputation) -> None:
    whole = isinstance(reputation, int) and not isinstance(reputation, bool)
    if not whole or not MIN_REPUTATION <= reputation <= MAX_REPUTATION:
        raise InvalidInput("Reputation must be a whole number within 0-100.")


def _with_status(user: AnyUser, status: UserStatus) -> AnyUser:
    """
    A driver moved off active is taken off duty as well.
    """
    updated = user.with_status(status)
    if is_driver(updated) and status != UserStatus.ACTIVE:
        updated = replace(updated, available=False)
    return updated


class AccountService:
    def __init__(self, store: EntityStore, clock: Callable[[], datetime], phone_region: str = "CU"):
        self.store = store
        self.clock = clock
        self.phone_region = phone_region

    # ---- session ----

    def login(self, username: str, password: str, role: Optional[Role] = None) -> AnyUser:
        with self.store.lock():
            snapshot = self.store.snapshot
            user = snapshot.find_user_by_username(username)
            if user is None or user.password != password or (role is not None and user.role != _as_role(role)):
                raise Unauthorized("Invalid credentials.")
            if user.status != UserStatus.ACTIVE and user.role not in STAFF_ROLES:
                raise Unauthorized("Account pending or expelled. Contact the manager.")

            self.store.commit(snapshot.with_current_user(user.id))

        logger.info("User %s logged in as %s", user.username, user.role.value)
        return user

    def logout(self) -> None:
        with self.store.lock():
            snapshot = self.store.snapshot
            self.store.commit(snapshot.with_current_user(None))

    # ---- registration ----

    def _register(self, role: Role, username: str, password: str, **details) -> AnyUser:
        with self.store.lock():
            snapshot = self.store.snapshot
            _ensure_username_free(snapshot, username)
            details["phone"] = normalize_phone(details.get("phone", ""), self.phone_region)

            user = new_user(
                role,
                username=username,
                password=password,
                now=self.clock(),
                status=UserStatus.PENDING,
                **details,
            )
            self.store.commit(snapshot.with_user(user))

        logger.info("Registered %s %s (%s), pending approval", role.value, user.username, user.id)
        return user

    def register_client(
        self,
        username: str,
        password: str,
        *,
        full_name: str = "",
        phone: str = "",
        ci: str = "",
        id_card_front_url: Optional[str] = None,
        id_card_back_url: Optional[str] = None,
    ) -> AnyUser:
        return self._register(
            Role.CLIENT, username, password,
            full_name=full_name, phone=phone, ci=ci,
            id_card_front_url=id_card_front_url, id_card_back_url=id_card_back_url,
        )

    def register_driver(
        self,
        username: str,
        password: str,
        *,
        full_name: str = "",
        phone: str = "",
        ci: str = "",
        vehicle: Optional[VehicleInfo] = None,
        id_card_front_url: Optional[str] = None,
        id_card_back_url: Optional[str] = None,
    ) -> AnyUser:
        return self._register(
            Role.DRIVER, username, password,
            full_name=full_name, phone=phone, ci=ci, vehicle=vehicle,
            id_card_front_url=id_card_front_url, id_card_back_url=id_card_back_url,
        )

    # ---- administration (manager/admin) ----

    def create_user(
        self,
        actor_id: Optional[str],
        role,
        username: str,
        password: str,
        *,
        full_name: str = "",
        phone: str = "",
        ci: str = "",
        status: UserStatus = UserStatus.ACTIVE,
        vehicle: Optional[VehicleInfo] = None,
        reputation: Optional[int] = None,
    ) -> AnyUser:
        with self.store.lock():
            snapshot = self.store.snapshot
            actor = require_staff(snapshot, actor_id)
            role = _as_role(role)
            _ensure_username_free(snapshot, username)
            if reputation is not None:
                _check_reputation(reputation)

            user = new_user(
                role,
                username=username,
                password=password,
                now=self.clock(),
                full_name=full_name,
                phone=normalize_phone(phone, self.phone_region),
                ci=ci,
                status=_as_status(status),
                vehicle=vehicle,
                reputation=reputation,
            )
            self.store.commit(snapshot.with_user(user))

        logger.info("%s created %s account %s", actor.username, role.value, user.username)
        return user

    def update_user(self, actor_id: Optional[str], user_id: str, changes: Dict[str, Any]) -> AnyUser:
        with self.store.lock():
            snapshot = self.store.snapshot
            require_staff(snapshot, actor_id)
            user = snapshot.require_user(user_id)

            forbidden = _IMMUTABLE_FIELDS & set(changes)
            if forbidden:
                raise InvalidInput(f"Cannot change {', '.join(sorted(forbidden))}.")

            account_changes = {k: v for k, v in changes.items() if k in _ACCOUNT_FIELDS}
            user_changes = {k: v for k, v in changes.items() if k not in _ACCOUNT_FIELDS}

            if "username" in account_changes:
                _ensure_username_free(snapshot, account_changes["username"], except_user_id=user.id)
            if "phone" in account_changes:
                account_changes["phone"] = normalize_phone(account_changes["phone"], self.phone_region)
            status = account_changes.pop("status", None)
            if status is not None:
                status = _as_status(status)

            if "reputation" in user_changes:
                _check_reputation(user_changes["reputation"])
            if "earnings_since_last_settlement" in user_changes:
                balance = user_changes["earnings_since_last_settlement"]
                if not _is_number(balance) or balance < 0:
                    raise InvalidInput("Balance must be a number, zero or more.")

            try:
                updated = replace(user, **user_changes)
            except TypeError:
                raise InvalidInput(f"Unknown fields for a {user.role.value}: {sorted(user_changes)}")
            if account_changes:
                updated = updated.with_account(**account_changes)
            if status is not None:
                updated = _with_status(updated, status)

            self.store.commit(snapshot.with_user(updated))

        logger.info("User %s updated: %s", user_id, sorted(changes))
        return updated

    def delete_user(self, actor_id: Optional[str], user_id: str) -> None:
        with self.store.lock():
            snapshot = self.store.snapshot
            actor = require_staff(snapshot, actor_id)
            if user_id in SEED_USER_IDS:
                raise Conflict("This account cannot be deleted.")
            if actor.id == user_id:
                raise Conflict("You cannot delete your own account.")
            snapshot.require_user(user_id)

            self.store.commit(snapshot.without_user(user_id))

        logger.info("%s deleted user %s", actor.username, user_id)

    def set_user_status(self, actor_id: Optional[str], user_id: str, status: UserStatus) -> AnyUser:
        """
        Manual override, the only way an expelled driver comes back.
        """
        with self.store.lock():
            snapshot = self.store.snapshot
            actor = require_staff(snapshot, actor_id)
            user = snapshot.require_user(user_id)
            status = _as_status(status)

            updated = _with_status(user, status)
            self.store.commit(snapshot.with_user(updated))

        logger.info("%s set %s status to %s", actor.username, user_id, status.value)
        return updated

    # ---- driver self-service ----

    def set_driver_availability(
        self, actor_id: Optional[str], available: bool, location: Optional[GeoPoint] = None
    ) -> AnyUser:
        with self.store.lock():
            snapshot = self.store.snapshot
            driver = require_role(snapshot, actor_id, Role.DRIVER, message="You must be logged in as a driver.")
            updated = set_availability(driver, available, location)
            self.store.commit(snapshot.with_user(updated))

        logger.info("Driver %s availability: %s", driver.id, available)
        return updated


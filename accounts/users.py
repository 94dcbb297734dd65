"""
Purpose: The unified user type and the account factories.
What it does:
- AnyUser: tagged union over the four role variants.
- new_user(): builds the right variant for a role, filling role-specific defaults.
- default_users(): the two seed accounts (admin/admin, gestor/gestor) that can never be deleted.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional, Union

from drivers.models import DriverUser, VehicleInfo
from .models import Account, AdminUser, ClientUser, ManagerUser, Role, UserStatus

AnyUser = Union[AdminUser, ManagerUser, DriverUser, ClientUser]

ADMIN_SEED_ID = "u_admin"
MANAGER_SEED_ID = "u_gestor"
SEED_USER_IDS = frozenset({ADMIN_SEED_ID, MANAGER_SEED_ID})

_ID_PREFIX = {
    Role.ADMIN: "adm",
    Role.MANAGER: "mgr",
    Role.DRIVER: "drv",
    Role.CLIENT: "cli",
}


def new_user_id(role: Role) -> str:
    return f"{_ID_PREFIX[role]}_{uuid.uuid4().hex[:10]}"


def new_user(
    role: Role,
    *,
    username: str,
    password: str,
    now: datetime,
    full_name: str = "",
    phone: str = "",
    ci: str = "",
    status: UserStatus = UserStatus.ACTIVE,
    vehicle: Optional[VehicleInfo] = None,
    reputation: Optional[int] = None,
    id_card_front_url: Optional[str] = None,
    id_card_back_url: Optional[str] = None,
    user_id: Optional[str] = None,
) -> AnyUser:
    """
    Build a user of the given role. Drivers start with reputation 100, zero balance,
    unavailable, and `now` as their last settlement.
    """
    user_id = user_id or new_user_id(role)

    if role == Role.DRIVER:
        return DriverUser.new(
            username,
            password,
            now=now,
            full_name=full_name,
            phone=phone,
            ci=ci,
            status=status,
            vehicle=vehicle,
            reputation=100 if reputation is None else reputation,
            driver_id=user_id,
            id_card_front_url=id_card_front_url,
            id_card_back_url=id_card_back_url,
        )

    account = Account(
        id=user_id,
        username=username,
        password=password,
        full_name=full_name,
        phone=phone,
        ci=ci,
        status=status,
        created_at=now,
    )
    if role == Role.CLIENT:
        return ClientUser(
            account=account,
            id_card_front_url=id_card_front_url,
            id_card_back_url=id_card_back_url,
        )
    if role == Role.MANAGER:
        return ManagerUser(account=account)
    return AdminUser(account=account)


def default_users(now: datetime) -> list:
    admin = new_user(
        Role.ADMIN,
        user_id=ADMIN_SEED_ID,
        username="admin",
        password="admin",
        full_name="Administrador Pal Taxi",
        phone="00000000",
        ci="N/A",
        now=now,
    )
    manager = new_user(
        Role.MANAGER,
        user_id=MANAGER_SEED_ID,
        username="gestor",
        password="gestor",
        full_name="Gestor General",
        phone="00000001",
        ci="N/A",
        now=now,
    )
    return [admin, manager]


def is_driver(user: Optional[AnyUser]) -> bool:
    return user is not None and user.role == Role.DRIVER

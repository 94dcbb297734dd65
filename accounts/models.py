"""
Purpose: Core data models for the accounts domain.
What it does:
Defines the role tag, the lifecycle status and the identity record every user carries,
plus the Admin, Manager and Client variants. The Driver variant lives in drivers.models.

Each variant embeds an Account instead of inheriting one; the `role` tag decides
how a user is handled.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    DRIVER = "driver"
    CLIENT = "client"


# Legacy role names found in documents written by the first version of the app.
LEGACY_ROLE_NAMES = {
    "gestor": Role.MANAGER,
    "chofer": Role.DRIVER,
    "cliente": Role.CLIENT,
}

STAFF_ROLES = frozenset({Role.ADMIN, Role.MANAGER})


class UserStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPELLED = "expelled"


@dataclass(frozen=True)
class Account:
    """
    Identity shared by every role. Passwords are stored and compared in plaintext.
    """
    id: str
    username: str
    password: str
    full_name: str
    phone: str
    ci: str
    status: UserStatus
    created_at: datetime


class AccountFields:
    """
    Read-through accessors so callers can write `user.username` on any variant.
    """
    account: Account

    @property
    def id(self) -> str:
        return self.account.id

    @property
    def username(self) -> str:
        return self.account.username

    @property
    def password(self) -> str:
        return self.account.password

    @property
    def full_name(self) -> str:
        return self.account.full_name

    @property
    def phone(self) -> str:
        return self.account.phone

    @property
    def status(self) -> UserStatus:
        return self.account.status

    @property
    def created_at(self) -> datetime:
        return self.account.created_at

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def with_account(self, **changes):
        return replace(self, account=replace(self.account, **changes))

    def with_status(self, status: UserStatus):
        return self.with_account(status=status)


@dataclass(frozen=True)
class AdminUser(AccountFields):
    account: Account
    role: Role = field(default=Role.ADMIN, init=False)


@dataclass(frozen=True)
class ManagerUser(AccountFields):
    account: Account
    role: Role = field(default=Role.MANAGER, init=False)


@dataclass(frozen=True)
class ClientUser(AccountFields):
    """
    A rider. Identity-document images are opaque references supplied by the UI.
    """
    account: Account
    id_card_front_url: Optional[str] = None
    id_card_back_url: Optional[str] = None
    role: Role = field(default=Role.CLIENT, init=False)

"""
Accounts domain package.

Public API:
- Domain models: Account, Role, UserStatus, AdminUser, ManagerUser, ClientUser
"""
from .models import Account, AdminUser, ClientUser, ManagerUser, Role, UserStatus

__all__ = ["Account", "AdminUser", "ClientUser", "ManagerUser", "Role", "UserStatus"]

#Expose the core pieces every engine shares:
#Failure taxonomy and the command result
#Agency settings
#The entity store (the Dispatcher itself lives in dispatch.dispatcher)

from .errors import (
    CommandResult,
    Conflict,
    DispatchError,
    InvalidInput,
    MissingEvidence,
    NoBalance,
    NotFound,
    Unauthorized,
)
from .settings import AppSettings, PaymentSettings, default_settings
from .store import EntityStore, StoreSnapshot, initial_snapshot

__all__ = [
    "CommandResult",
    "Conflict",
    "DispatchError",
    "InvalidInput",
    "MissingEvidence",
    "NoBalance",
    "NotFound",
    "Unauthorized",
    "AppSettings",
    "PaymentSettings",
    "default_settings",
    "EntityStore",
    "StoreSnapshot",
    "initial_snapshot",
]

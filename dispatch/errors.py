"""
Purpose: Failure taxonomy and the uniform command result.
What it does:
Engines raise a DispatchError subclass when a precondition fails.
The Dispatcher catches it at the boundary and hands the caller a CommandResult,
so nothing in the core is fatal to the host process.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class DispatchError(Exception):
    """Base class for every expected, caller-facing failure."""
    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthorized(DispatchError):
    """Wrong or absent role for the command."""
    code = "unauthorized"


class NotFound(DispatchError):
    """Referenced ride, user or settlement id is missing."""
    code = "not_found"


class Conflict(DispatchError):
    """Duplicate username, or the entity is no longer in the expected state."""
    code = "conflict"


class InvalidInput(DispatchError):
    code = "invalid_input"


class NoBalance(InvalidInput):
    code = "no_balance"


class MissingEvidence(InvalidInput):
    code = "missing_evidence"


@dataclass(frozen=True)
class CommandResult:
    """
    Shape returned by every mutating command: { ok, id?, message?, error? }.
    """
    ok: bool
    id: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, id: Optional[str] = None, message: Optional[str] = None) -> CommandResult:
        return cls(ok=True, id=id, message=message)

    @classmethod
    def failure(cls, exc: DispatchError) -> CommandResult:
        return cls(ok=False, message=exc.message, error=exc.code)

    def __bool__(self) -> bool:
        return self.ok

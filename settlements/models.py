"""
Purpose: Domain models for commission settlements.
What it does:
A Settlement is a driver's request to clear the commission owed since the last cut,
backed by an opaque proof-of-payment reference. A manager approves or rejects it;
after that only the resolution fields are ever written.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class SettlementStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Settlement:
    id: str
    driver_id: str
    amount: float
    status: SettlementStatus
    created_at: datetime
    evidence_url: Optional[str] = None

    # Resolution fields
    reviewed_at: Optional[datetime] = None
    reviewer_id: Optional[str] = None
    rejection_reason: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.status != SettlementStatus.PENDING


def new_settlement_id() -> str:
    return f"stl_{uuid.uuid4().hex[:10]}"

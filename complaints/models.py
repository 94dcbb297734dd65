from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Complaint:
    """
    A client's report against the driver of a completed ride. Append-only.
    """
    id: str
    ride_id: str
    client_id: str
    driver_id: str
    message: str
    created_at: datetime


def new_complaint_id() -> str:
    return f"cmp_{uuid.uuid4().hex[:10]}"

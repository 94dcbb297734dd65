#Purpose: Environment configuration for a deployment of the dispatch core.
#Reads overrides from the process environment (and a local .env file).
#Example in .env:
#PALTAXI_TARIFF_PER_KM=75
#PALTAXI_REPUTATION_THRESHOLD=60
#PALTAXI_STATE_FILE=paltaxi_state.json
#PALTAXI_PHONE_REGION=CU

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from routing.eta_service import DEFAULT_SPEED_KMH
from .settings import AppSettings, default_settings

load_dotenv()


@dataclass(frozen=True)
class RuntimeConfig:
    """
    Process-level knobs that are not part of the manager-editable settings.
    """
    state_file: Optional[str] = None
    phone_region: str = "CU"
    average_speed_kmh: float = DEFAULT_SPEED_KMH
    currency: str = "CUP"


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


def load_runtime_config() -> RuntimeConfig:
    speed = _env_float("PALTAXI_AVERAGE_SPEED_KMH")
    return RuntimeConfig(
        state_file=os.getenv("PALTAXI_STATE_FILE") or None,
        phone_region=os.getenv("PALTAXI_PHONE_REGION") or "CU",
        average_speed_kmh=speed if speed is not None else DEFAULT_SPEED_KMH,
        currency=os.getenv("PALTAXI_CURRENCY") or "CUP",
    )


def initial_settings_from_env() -> AppSettings:
    """
    Default settings with any PALTAXI_* overrides applied on top.
    """
    changes = {}

    tariff = _env_float("PALTAXI_TARIFF_PER_KM")
    if tariff is not None:
        changes["tariff_per_km"] = tariff

    threshold = _env_float("PALTAXI_REPUTATION_THRESHOLD")
    if threshold is not None:
        changes["reputation_threshold"] = int(threshold)

    settings = default_settings()
    if changes:
        settings = settings.updated(changes)
    return settings

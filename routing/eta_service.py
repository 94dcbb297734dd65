#Purpose: ETA estimation policy.
#Converts a straight-line distance into a customer-facing "arrives in X minutes".
#Used for the ride quote (pickup -> destination) and for ranking
#available drivers by how soon they can reach a pickup.

import math

DEFAULT_SPEED_KMH = 35.0  # average urban speed


def estimate_eta_min(distance_km: float, speed_kmh: float = DEFAULT_SPEED_KMH) -> int:
    """
    Minutes to cover `distance_km` at `speed_kmh`, halves rounded up.
    A non-positive speed yields 0.
    """
    if speed_kmh <= 0:
        return 0
    minutes = distance_km / speed_kmh * 60
    if not math.isfinite(minutes):
        return 0
    return int(math.floor(minutes + 0.5))

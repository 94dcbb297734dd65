"""
Rides domain package.

Public API:
- Domain models: Ride, RideStatus
- Pricing: quote_ride, RideQuote, format_currency
"""
from .models import Ride, RideStatus
from .pricing import RideQuote, format_currency, quote_ride

__all__ = ["Ride", "RideStatus", "RideQuote", "format_currency", "quote_ride"]

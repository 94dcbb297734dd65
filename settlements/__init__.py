from .models import Settlement, SettlementStatus

__all__ = ["Settlement", "SettlementStatus"]

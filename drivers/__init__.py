from .models import DriverUser, VehicleInfo

__all__ = ["DriverUser", "VehicleInfo"]

from .models import Complaint

__all__ = ["Complaint"]

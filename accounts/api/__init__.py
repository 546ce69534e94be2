"""API package exports."""

from accounts.api.middleware import CorrelationIdMiddleware
from accounts.api.users import router

__all__ = ["router", "CorrelationIdMiddleware"]

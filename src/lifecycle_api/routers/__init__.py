"""API routers package."""

from lifecycle_api.routers import accounts, offboarding

__all__ = [
    "accounts",
    "offboarding",
]

"""API routers for all endpoints."""

from covnet.routers import network, system

__all__ = [
    "network",
    "system",
]

"""API Routes Package."""

from api.routes import health, reservations

__all__ = [
    "health",
    "reservations",
]

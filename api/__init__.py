"""API Package.

FastAPI server for the Unit Reservation Gateway.
"""

from api.server import create_app, app

__all__ = [
    "create_app",
    "app",
]

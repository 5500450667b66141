"""HTTP surface: health routes and app factory."""

from .health_routes import health_router, render_health
from .server import create_app

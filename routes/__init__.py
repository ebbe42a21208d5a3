"""
Flask route blueprints for the import tracker.

This module contains all route handlers organized by functionality:
- imports: Import upload, job lists, event feed, cancellation
- orders: Fulfillment allocation per order
- api: Health check

Each blueprint is registered with the Flask app in create_app().
"""

from .imports import imports_bp
from .orders import orders_bp
from .api import api_bp

__all__ = [
    "imports_bp",
    "orders_bp",
    "api_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(imports_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(api_bp)

"""
Web module for Markup Printer.

Exposes blueprints for:
- Print API and service info: api_bp
- Health endpoints: health_bp
"""

from .api import api_bp
from .health import health_bp

__all__ = ["api_bp", "health_bp"]

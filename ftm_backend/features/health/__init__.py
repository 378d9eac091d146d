"""
Health feature.
"""

from .service import HealthService

__all__ = ["HealthService"]

"""
API endpoints module
"""

from . import health, waitlist

__all__ = ["health", "waitlist"]

"""
Main API Router
Aggregates all API endpoints for v1
"""

from fastapi import APIRouter
from salon_waitlist.api.v1.endpoints import health, waitlist

api_router = APIRouter()

api_router.include_router(waitlist.router, prefix="/waitlist", tags=["waitlist"])
api_router.include_router(health.router, prefix="/health", tags=["health"])

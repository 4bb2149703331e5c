"""API v1 router aggregation."""

from fastapi import APIRouter

from taskauth.api.v1 import auth

api_router = APIRouter()

# Include routers
api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])

"""API v1 router aggregation."""

from fastapi import APIRouter

from ruleflow.api.v1 import automation

api_router = APIRouter()

# Include module routers
api_router.include_router(automation.router, prefix="/automation", tags=["automation"])

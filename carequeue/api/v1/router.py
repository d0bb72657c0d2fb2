"""API v1 router configuration."""

from fastapi import APIRouter

from carequeue.api.v1.endpoints import (
    appointments,
    health,
    ipd,
    opd,
    schedules,
    sequences,
)

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(schedules.router, prefix="/schedules", tags=["Schedules"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(opd.router, prefix="/opd", tags=["OPD"])
api_router.include_router(ipd.router, prefix="/ipd", tags=["IPD"])
api_router.include_router(sequences.router, prefix="/sequences", tags=["Sequences"])

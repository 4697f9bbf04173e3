"""API routers for the admin backend."""
from fastapi import APIRouter

from . import alerts, auth, conversations, health, jobs, realtime, schools, system, users


def get_api_router() -> APIRouter:
    """Return the root API router."""

    api_router = APIRouter()
    api_router.include_router(health.router)
    api_router.include_router(auth.router)
    api_router.include_router(users.router)
    api_router.include_router(jobs.router)
    api_router.include_router(conversations.router)
    api_router.include_router(conversations.chatbot_router)
    api_router.include_router(schools.router)
    api_router.include_router(system.router)
    api_router.include_router(alerts.router)
    api_router.include_router(realtime.router)
    return api_router

from fastapi import APIRouter
from kpi_backend.routers import (
    evaluations, scores, invitations, shares, performance_rules,
    templates, settings, notifications
)

# Centralized API router hub
# Routers are aggregated here and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(evaluations.router, tags=["Evaluations"])
api_router.include_router(scores.router, tags=["Scores"])
api_router.include_router(invitations.router, tags=["Invitations"])
api_router.include_router(shares.router, tags=["Shares"])
api_router.include_router(performance_rules.router, tags=["Performance Rules"])
api_router.include_router(templates.router, tags=["Templates"])
api_router.include_router(settings.router, tags=["Settings"])
api_router.include_router(notifications.router, tags=["Notifications"])

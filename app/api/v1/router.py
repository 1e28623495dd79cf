# app/api/v1/router.py
# Master router -- registers all endpoint routers under /api/v1
# Each endpoint module registers its own router with its own prefix and tags

from fastapi import APIRouter

from app.api.v1.endpoints import (
    admin,
    chat,
    cron,
    notifications,
    sessions,
    subjects,
    tutor,
    tutor_sessions,
)

api_router = APIRouter()

# Subjects
api_router.include_router(subjects.router, prefix="/subjects", tags=["Subjects"])

# Sessions
api_router.include_router(sessions.router, prefix="/sessions", tags=["Sessions"])
api_router.include_router(tutor_sessions.router, prefix="/tutor", tags=["Tutor - Sessions"])

# Tutor Onboarding
api_router.include_router(tutor.router, prefix="/tutor", tags=["Tutor - Onboarding"])

# Chat
api_router.include_router(chat.router, prefix="/chat", tags=["Chat"])

# Notifications
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])

# Admin
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])

# Cron
api_router.include_router(cron.router, prefix="/cron", tags=["Cron"])

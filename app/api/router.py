from fastapi import APIRouter

from app.api.routes import decisions, sessions, stages

api_router = APIRouter()
api_router.include_router(sessions.router)
api_router.include_router(stages.router)
api_router.include_router(decisions.router)

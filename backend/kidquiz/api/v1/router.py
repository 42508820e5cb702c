"""API v1 router - includes all v1 endpoints."""

from fastapi import APIRouter

from kidquiz.api.v1.endpoints import analytics, assistant, attempts, health, me, question_bank, quiz_tests

api_router = APIRouter()

api_router.include_router(health.router, prefix="", tags=["Health"])
api_router.include_router(quiz_tests.router, prefix="/tests", tags=["Tests"])
api_router.include_router(attempts.router, prefix="/attempts", tags=["Attempts"])
api_router.include_router(me.router, prefix="/me", tags=["Me"])
api_router.include_router(analytics.router, prefix="/admin/analytics", tags=["Analytics"])
api_router.include_router(assistant.router, prefix="/ai", tags=["AI Assistant"])
api_router.include_router(question_bank.router, prefix="/question-bank", tags=["Question Bank"])

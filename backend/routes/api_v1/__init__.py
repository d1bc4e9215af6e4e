"""API v1: matches, ratings, history and referee endpoints."""

from fastapi import APIRouter

from .history import router as history_router
from .matches import router as matches_router
from .ratings import router as ratings_router
from .referees import router as referees_router

router = APIRouter(prefix="/api/v1", tags=["api_v1"])
router.include_router(matches_router)
router.include_router(ratings_router)
router.include_router(history_router)
router.include_router(referees_router)

api_v1_router = router

"""FastAPI API endpoints under /api.

Endpoint groups: health + settings, brew catalog (local copy, synced from
the hosted backend), and per-brew conversation + chat turns nested under
/api/brews/{brew_id}/.
"""

from fastapi import APIRouter

from .brews import router as brews_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(brews_router)

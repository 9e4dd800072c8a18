"""
Main API router. Mounts all sub-routers.
"""

from fastapi import APIRouter, Depends, Request

from ..core.dependencies import get_user

router = APIRouter()


# ── Health (no auth) ─────────────────────────────────────────────────

@router.get("/health")
async def health(request: Request):
    ctx = request.app.state.context
    return {
        "status": "ok",
        "service": "encore",
        "remote_store": ctx.session_factory is not None,
        "provider": ctx.gateway.provider_id,
    }


# ── Auth config (no auth) ───────────────────────────────────────────

@router.get("/auth/config")
async def auth_config(request: Request):
    flags = request.app.state.context.flags
    if not flags.use_auth:
        return {"auth_enabled": False, "message": "Dev mode, no auth required"}
    return {"auth_enabled": True, "scheme": "Bearer"}


# ── V1 routes (auth required) ───────────────────────────────────────

from .artists import artists_router
from .chat import chat_router
from .content import content_router
from .knowledge import knowledge_router
from .memory import memory_router
from .profile import profile_router
from .provider import provider_router
from .proxy import proxy_router

router.include_router(chat_router, prefix="/v1", dependencies=[Depends(get_user)])
router.include_router(memory_router, prefix="/v1", dependencies=[Depends(get_user)])
router.include_router(knowledge_router, prefix="/v1", dependencies=[Depends(get_user)])
router.include_router(profile_router, prefix="/v1", dependencies=[Depends(get_user)])
router.include_router(artists_router, prefix="/v1", dependencies=[Depends(get_user)])
router.include_router(provider_router, prefix="/v1")
router.include_router(content_router, prefix="/v1", dependencies=[Depends(get_user)])
# Proxy: the browser-facing dispatch endpoint, keys stay server-side
router.include_router(proxy_router, dependencies=[Depends(get_user)])

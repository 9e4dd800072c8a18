"""
Provider API: which LLM backend answers, manual mode, connectivity test.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..core.context import AppContext
from ..core.dependencies import get_context, get_user
from ..services.providers import ConnectionResult

logger = logging.getLogger(__name__)

provider_router = APIRouter(tags=["provider"], dependencies=[Depends(get_user)])


class ProviderUpdate(BaseModel):
    provider: Optional[str] = None
    manual_mode: Optional[bool] = None
    client_key: Optional[str] = None


def _describe(ctx: AppContext) -> dict:
    prefs = ctx.gateway.preferences.load()
    s = ctx.settings
    return {
        "provider": prefs.provider,
        "manual_mode": prefs.manual_mode,
        "server_keys": {"primary": bool(s.groq_api_key), "secondary": bool(s.gemini_api_key)},
        "client_keys": {k: bool(v) for k, v in prefs.client_keys.items()},
    }


@provider_router.get("/provider")
async def get_provider(ctx: AppContext = Depends(get_context)):
    return _describe(ctx)


@provider_router.put("/provider")
async def update_provider(request: ProviderUpdate, ctx: AppContext = Depends(get_context)):
    prefs = ctx.gateway.preferences
    if request.provider is not None:
        prefs.set_provider(request.provider)
    if request.manual_mode is not None:
        prefs.set_manual_mode(request.manual_mode)
    if request.client_key is not None:
        prefs.set_client_key(prefs.load().provider, request.client_key)
    return _describe(ctx)


@provider_router.post("/provider/test", response_model=ConnectionResult)
async def test_provider(ctx: AppContext = Depends(get_context)):
    return await ctx.gateway.test_connection()

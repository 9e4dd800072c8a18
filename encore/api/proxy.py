"""
Chat proxy: POST /api/chat.

Keeps provider keys on the server. Request:
    {messages: [{role, content}], provider: "primary"|"secondary", temperature, max_tokens}
Success is always OpenAI-shaped ({choices: [{message: {role, content}}]}),
whichever backend answered. Upstream errors keep their status code.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..core.context import AppContext
from ..core.dependencies import get_context
from ..core.errors import ProviderError
from ..services.providers import SendOptions, to_openai_format

logger = logging.getLogger(__name__)

proxy_router = APIRouter(tags=["proxy"])


class ProxyMessage(BaseModel):
    role: str
    content: str


class ProxyRequest(BaseModel):
    messages: list[ProxyMessage]
    provider: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 2000


@proxy_router.post("/api/chat")
async def proxy_chat(request: ProxyRequest, ctx: AppContext = Depends(get_context)):
    try:
        response = await ctx.gateway.send(
            [m.model_dump() for m in request.messages],
            SendOptions(temperature=request.temperature, max_tokens=request.max_tokens),
            provider=request.provider,
        )
    except ProviderError as e:
        return JSONResponse(
            status_code=e.status,
            content={"error": {"kind": e.kind, "message": e.message}, "details": e.body},
        )
    return to_openai_format(response)

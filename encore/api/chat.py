"""
Chat API: the consultative assistant.

POST   /v1/chat                          Send a message, get the reply
GET    /v1/chat/{session_id}             Turn history
DELETE /v1/chat/{session_id}             Clear the history (memory is kept)
GET    /v1/chat/{session_id}/welcome     Welcome text + quick prompts
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..core.context import Workspace
from ..core.dependencies import get_workspace

logger = logging.getLogger(__name__)

chat_router = APIRouter(tags=["chat"])


class ChatRequest(BaseModel):
    message: str
    session_id: str
    platform: Optional[str] = None


class ChatResponse(BaseModel):
    content: str
    session_id: str
    message_count: int
    memory: dict


class MessageOut(BaseModel):
    role: str
    content: str
    timestamp: datetime


class WelcomeResponse(BaseModel):
    content: str
    quick_prompts: list[dict]


@chat_router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, workspace: Workspace = Depends(get_workspace)):
    """Send one message to the assistant. Errors keep their kind (see api.errors)."""
    session = workspace.session(request.session_id)
    reply = await session.send_message(request.message, platform=request.platform)
    return ChatResponse(
        content=reply,
        session_id=request.session_id,
        message_count=len(session.messages),
        memory=workspace.memory.stats(),
    )


@chat_router.get("/chat/{session_id}", response_model=list[MessageOut])
async def history(session_id: str, workspace: Workspace = Depends(get_workspace)):
    session = workspace.session(session_id)
    return [MessageOut(**m.model_dump()) for m in session.messages]


@chat_router.delete("/chat/{session_id}")
async def clear_history(session_id: str, workspace: Workspace = Depends(get_workspace)):
    workspace.session(session_id).clear_messages()
    return {"cleared": True, "session_id": session_id}


@chat_router.get("/chat/{session_id}/welcome", response_model=WelcomeResponse)
async def welcome(session_id: str, platform: Optional[str] = None,
                  workspace: Workspace = Depends(get_workspace)):
    session = workspace.session(session_id)
    return WelcomeResponse(
        content=session.welcome_message(platform),
        quick_prompts=session.quick_prompts(),
    )

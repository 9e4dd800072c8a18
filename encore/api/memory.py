"""
Memory API: what the assistant has learned about the artist.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..core.context import Workspace
from ..core.dependencies import get_workspace
from ..core.errors import ValidationError

logger = logging.getLogger(__name__)

memory_router = APIRouter(tags=["memory"])


class FactRequest(BaseModel):
    fact: str


class PreferenceRequest(BaseModel):
    value: Any


@memory_router.get("/memory")
async def get_memory(workspace: Workspace = Depends(get_workspace)):
    return {
        "memory": workspace.memory.state.to_record(),
        "stats": workspace.memory.stats(),
    }


@memory_router.delete("/memory")
async def clear_memory(workspace: Workspace = Depends(get_workspace)):
    await workspace.memory.clear()
    return {"cleared": True}


@memory_router.post("/memory/facts")
async def add_fact(request: FactRequest, workspace: Workspace = Depends(get_workspace)):
    fact = request.fact.strip()
    if not fact:
        raise ValidationError("Fact is empty.")
    workspace.memory.add_fact(fact)
    return workspace.memory.stats()


@memory_router.put("/memory/preferences/{key}")
async def set_preference(key: str, request: PreferenceRequest,
                         workspace: Workspace = Depends(get_workspace)):
    workspace.memory.set_preference(key, request.value)
    return workspace.memory.stats()

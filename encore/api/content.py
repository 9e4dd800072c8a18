"""
Content API: one-shot post generation for a platform, plus the library of
posts the operator kept.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..core.context import Workspace
from ..core.dependencies import get_workspace
from ..core.errors import NotFoundError
from ..services.content import content_metadata, platform_config
from ..services.library import SavedContent

logger = logging.getLogger(__name__)

content_router = APIRouter(tags=["content"])


class GenerateRequest(BaseModel):
    content_type: str = "instagram"
    topic: str
    details: str = ""
    tone: str = "casual"
    save: bool = False


class SaveRequest(BaseModel):
    content: str
    content_type: str = "instagram"
    topic: str = ""
    metadata: dict[str, Any] = {}


class UpdateRequest(BaseModel):
    content: str


class ImportRequest(BaseModel):
    payload: str


@content_router.post("/content/generate")
async def generate(request: GenerateRequest, workspace: Workspace = Depends(get_workspace)):
    content = await workspace.content_generator().generate(
        request.content_type, request.topic, request.details, request.tone,
    )
    metadata = content_metadata(content, request.content_type)

    saved_id: Optional[str] = None
    if request.save:
        saved_id = workspace.library.save(content, request.content_type, request.topic, metadata).id

    return {
        "content": content,
        "metadata": metadata,
        "tips": list(platform_config(request.content_type).tips),
        "saved_id": saved_id,
    }


# ── Library ──────────────────────────────────────────────────────────

@content_router.get("/content/library", response_model=list[SavedContent])
async def list_saved(q: str = "", content_type: str = "all", limit: Optional[int] = None,
                     workspace: Workspace = Depends(get_workspace)):
    if limit is not None and not q and content_type == "all":
        return workspace.library.recent(limit)
    results = workspace.library.search(q, content_type)
    return results[:limit] if limit is not None else results


@content_router.post("/content/library", response_model=SavedContent)
async def save_content(request: SaveRequest, workspace: Workspace = Depends(get_workspace)):
    metadata = request.metadata or content_metadata(request.content, request.content_type)
    return workspace.library.save(request.content, request.content_type, request.topic, metadata)


@content_router.delete("/content/library")
async def clear_library(workspace: Workspace = Depends(get_workspace)):
    return {"deleted": workspace.library.clear_all()}


@content_router.get("/content/library/stats")
async def library_stats(workspace: Workspace = Depends(get_workspace)):
    return workspace.library.stats()


@content_router.get("/content/library/export")
async def export_library(workspace: Workspace = Depends(get_workspace)):
    return {"payload": workspace.library.export_json()}


@content_router.post("/content/library/import")
async def import_library(request: ImportRequest, workspace: Workspace = Depends(get_workspace)):
    return {"imported": workspace.library.import_json(request.payload)}


@content_router.get("/content/library/{item_id}", response_model=SavedContent)
async def get_saved(item_id: str, workspace: Workspace = Depends(get_workspace)):
    item = workspace.library.get(item_id)
    if item is None:
        raise NotFoundError(f"Saved content {item_id} not found")
    return item


@content_router.put("/content/library/{item_id}", response_model=SavedContent)
async def update_saved(item_id: str, request: UpdateRequest, workspace: Workspace = Depends(get_workspace)):
    item = workspace.library.update(item_id, request.content)
    if item is None:
        raise NotFoundError(f"Saved content {item_id} not found")
    return item


@content_router.delete("/content/library/{item_id}")
async def delete_saved(item_id: str, workspace: Workspace = Depends(get_workspace)):
    if not workspace.library.delete(item_id):
        raise NotFoundError(f"Saved content {item_id} not found")
    return {"deleted": True, "id": item_id}

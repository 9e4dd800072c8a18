"""
Knowledge API: briefings and strategies for the active artist.

Global documents are created/edited by admins with `is_global: true`.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..core.context import Workspace
from ..core.dependencies import get_workspace
from ..core.errors import NotFoundError
from ..services.knowledge import KnowledgeDocument

logger = logging.getLogger(__name__)

knowledge_router = APIRouter(tags=["knowledge"])


class DocumentRequest(BaseModel):
    title: str
    category: str = "other"
    content: str
    is_global: bool = False


class ImportRequest(BaseModel):
    payload: str


@knowledge_router.get("/knowledge", response_model=list[KnowledgeDocument])
async def list_documents(q: str = "", category: str = "all", include_global: bool = False,
                         workspace: Workspace = Depends(get_workspace)):
    return workspace.knowledge.search(q, category, include_global=include_global)


@knowledge_router.post("/knowledge", response_model=KnowledgeDocument)
async def create_document(request: DocumentRequest, workspace: Workspace = Depends(get_workspace)):
    store = workspace.knowledge
    if request.is_global:
        return await store.add_global(request.title, request.category, request.content)
    return await store.add(request.title, request.category, request.content)


@knowledge_router.get("/knowledge/stats")
async def stats(workspace: Workspace = Depends(get_workspace)):
    return workspace.knowledge.stats()


@knowledge_router.get("/knowledge/categories")
async def categories(workspace: Workspace = Depends(get_workspace)):
    return [{"id": c.id, "name": c.name, "priority": c.priority} for c in workspace.knowledge.categories()]


@knowledge_router.get("/knowledge/export")
async def export_documents(workspace: Workspace = Depends(get_workspace)):
    return {"payload": workspace.knowledge.export_json()}


@knowledge_router.post("/knowledge/import")
async def import_documents(request: ImportRequest, workspace: Workspace = Depends(get_workspace)):
    return {"imported": await workspace.knowledge.import_json(request.payload)}


@knowledge_router.get("/knowledge/{doc_id}", response_model=KnowledgeDocument)
async def get_document(doc_id: str, workspace: Workspace = Depends(get_workspace)):
    doc = workspace.knowledge.get(doc_id)
    if doc is None:
        raise NotFoundError(f"Document {doc_id} not found")
    return doc


@knowledge_router.put("/knowledge/{doc_id}", response_model=KnowledgeDocument)
async def update_document(doc_id: str, request: DocumentRequest,
                          workspace: Workspace = Depends(get_workspace)):
    store = workspace.knowledge
    if request.is_global:
        doc = await store.update_global(doc_id, request.title, request.category, request.content)
    else:
        doc = await store.update(doc_id, request.title, request.category, request.content)
    if doc is None:
        raise NotFoundError(f"Document {doc_id} not found")
    return doc


@knowledge_router.delete("/knowledge/{doc_id}")
async def delete_document(doc_id: str, workspace: Workspace = Depends(get_workspace)):
    store = workspace.knowledge
    existing = store.get(doc_id)
    if existing is not None and existing.is_global:
        deleted = await store.delete_global(doc_id)
    else:
        deleted = await store.delete(doc_id)
    if not deleted:
        raise NotFoundError(f"Document {doc_id} not found")
    return {"deleted": True, "id": doc_id}

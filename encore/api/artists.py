"""
Artists API: the user's roster. Exactly one artist is active.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..core.context import Workspace
from ..core.dependencies import get_workspace
from ..services.artists import ArtistSummary

logger = logging.getLogger(__name__)

artists_router = APIRouter(tags=["artists"])


class CreateArtistRequest(BaseModel):
    name: str
    genre: str = ""


@artists_router.get("/artists", response_model=list[ArtistSummary])
async def list_artists(workspace: Workspace = Depends(get_workspace)):
    return await workspace.roster.list()


@artists_router.post("/artists", response_model=ArtistSummary)
async def create_artist(request: CreateArtistRequest, workspace: Workspace = Depends(get_workspace)):
    artist = await workspace.roster.create(request.name, request.genre)
    if artist.is_active:
        await workspace.sync_active_artist()
    return artist


@artists_router.post("/artists/{artist_id}/activate", response_model=ArtistSummary)
async def activate_artist(artist_id: str, workspace: Workspace = Depends(get_workspace)):
    artist = await workspace.roster.set_active(artist_id)
    await workspace.sync_active_artist()
    return artist


@artists_router.delete("/artists/{artist_id}")
async def delete_artist(artist_id: str, workspace: Workspace = Depends(get_workspace)):
    await workspace.roster.delete(artist_id)
    active_id = await workspace.sync_active_artist()
    return {"deleted": True, "id": artist_id, "active_artist_id": active_id}

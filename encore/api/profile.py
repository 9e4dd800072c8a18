"""
Profile API: the active artist's structured profile.
"""

import logging

from fastapi import APIRouter, Depends

from ..core.context import Workspace
from ..core.dependencies import get_workspace
from ..core.errors import EncoreError
from ..services.profile import ArtistProfile

logger = logging.getLogger(__name__)

profile_router = APIRouter(tags=["profile"])


@profile_router.get("/profile", response_model=ArtistProfile)
async def get_profile(workspace: Workspace = Depends(get_workspace)):
    return workspace.profile.profile


@profile_router.get("/profile/context")
async def profile_context(workspace: Workspace = Depends(get_workspace)):
    return {"content": workspace.profile.formatted_context()}


@profile_router.put("/profile", response_model=ArtistProfile)
async def save_profile(profile: ArtistProfile, workspace: Workspace = Depends(get_workspace)):
    if not await workspace.profile.save(profile):
        raise EncoreError("Could not save the profile.")
    return workspace.profile.profile


@profile_router.post("/profile/reset", response_model=ArtistProfile)
async def reset_profile(workspace: Workspace = Depends(get_workspace)):
    return await workspace.profile.reset_to_default()

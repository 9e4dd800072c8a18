"""
FastAPI dependencies. Injected into route handlers.
"""

from fastapi import Depends, Header, HTTPException, Request, status

from .auth import AuthenticatedUser, get_current_user
from .context import AppContext, Workspace


def get_context(request: Request) -> AppContext:
    """The AppContext built at startup (app.state.context)."""
    return request.app.state.context


async def get_user(
    authorization: str = Header(default=""),
    ctx: AppContext = Depends(get_context),
) -> AuthenticatedUser:
    """
    Resolve authenticated user from Authorization header.
    Returns dev user if FF_USE_AUTH=false.
    """
    try:
        return get_current_user(authorization, ctx.settings, ctx.flags)
    except PermissionError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_workspace(
    user: AuthenticatedUser = Depends(get_user),
    ctx: AppContext = Depends(get_context),
) -> Workspace:
    """Per-user stores, bound to the user's active artist."""
    return await ctx.workspace_for(user)

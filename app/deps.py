"""Shared FastAPI dependencies."""

from typing import Any

from fastapi import Request

from app.core.exceptions import AuthDenied


async def get_session_claims(request: Request) -> dict[str, Any]:
    """Dependency: claims verified by the route guard for this request."""
    claims = getattr(request.state, "auth", None)
    if not claims:
        raise AuthDenied("Not authenticated")
    return claims


async def get_current_clerk_id(request: Request) -> str:
    """Dependency: Clerk user id (``sub``) of the signed-in user."""
    claims = await get_session_claims(request)
    clerk_id = claims.get("sub")
    if not clerk_id:
        raise AuthDenied("Invalid session")
    return clerk_id

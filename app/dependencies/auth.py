"""
Authentication dependencies for FastAPI routes.

Callers authenticate with ``Authorization: Bearer <Firebase ID token>``.
The verified UID is mapped to a local ``users`` row, created on first use
from the token claims.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.services import get_identity_provider
from app.models.database_models import User, Workspace
from app.services.exceptions import IdentityError, InvalidTokenError
from app.services.identity import FirebaseIdentityProvider
from app.services.users import get_or_create_user
from app.services.workspaces import get_membership

logger = logging.getLogger(__name__)


async def get_token_claims(
    request: Request,
    authorization: Optional[str] = Header(None),
    identity: FirebaseIdentityProvider = Depends(get_identity_provider),
) -> dict:
    """Verify the bearer token and return its claims. Raises 401 on any problem."""
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
        )

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    try:
        claims = await identity.verify_id_token(token.strip())
    except InvalidTokenError as exc:
        logger.info("Rejected token on %s: %s", request.url.path, exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )
    except IdentityError as exc:
        logger.error("Token verification unavailable: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    return claims


async def get_current_user_uid(claims: dict = Depends(get_token_claims)) -> str:
    """UID of the authenticated caller."""
    return claims["uid"]


async def get_current_user(
    claims: dict = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Ensure the caller exists in the local users table. Creates if needed."""
    return await get_or_create_user(
        db,
        claims["uid"],
        email=claims.get("email"),
        display_name=claims.get("name"),
    )


async def _load_workspace(db: AsyncSession, workspace_id: int) -> Workspace:
    workspace = await db.get(Workspace, workspace_id)
    if workspace is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Workspace {workspace_id} not found.",
        )
    return workspace


async def get_member_workspace(
    workspace_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Workspace:
    """
    Verify that the current user belongs to the workspace.
    Returns the Workspace ORM object or raises 404 / 403.
    """
    workspace = await _load_workspace(db, workspace_id)
    if await get_membership(db, workspace.id, user.id) is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not a member of this workspace.",
        )
    return workspace


async def get_owned_workspace(
    workspace_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Workspace:
    """Verify that the current user owns the workspace. Raises 404 / 403."""
    workspace = await _load_workspace(db, workspace_id)
    if workspace.owner_uid != user.firebase_uid:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the workspace owner can do this.",
        )
    return workspace

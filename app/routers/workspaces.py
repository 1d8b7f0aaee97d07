"""
Workspace management endpoints.

Route summary
-------------
POST   /api/workspaces                              create workspace
GET    /api/workspaces                              workspaces of the current user
POST   /api/workspaces/join                         join via invite code
GET    /api/workspaces/{workspace_id}               workspace detail
PUT    /api/workspaces/{workspace_id}               update (owner)
DELETE /api/workspaces/{workspace_id}               delete from both stores (owner)

GET    /api/workspaces/{workspace_id}/members       list members
POST   /api/workspaces/{workspace_id}/members       add member by email (owner/admin)
DELETE /api/workspaces/{workspace_id}/members/{uid} remove member or leave

POST   /api/workspaces/{workspace_id}/invites       create invite code (owner/admin)
GET    /api/workspaces/{workspace_id}/ai-history    recent AI interactions
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.dependencies.auth import (
    get_current_user,
    get_member_workspace,
    get_owned_workspace,
)
from app.dependencies.services import get_document_store
from app.models.database_models import User, Workspace
from app.models.schemas import (
    AddMemberRequest,
    AIHistoryEntryResponse,
    InviteCreateRequest,
    InviteResponse,
    JoinWorkspaceRequest,
    UserWorkspaceInfo,
    WorkspaceCreateRequest,
    WorkspaceMemberResponse,
    WorkspaceResponse,
    WorkspaceUpdateRequest,
)
from app.services import workspaces as workspace_service
from app.services.document_store import DocumentStore
from app.services.exceptions import (
    AlreadyMember,
    DocumentStoreError,
    DualWriteError,
    InviteExpired,
    InviteNotFound,
    MembershipError,
    PermissionDenied,
    UserNotFound,
    WorkspaceNotFound,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ─── Helpers ──────────────────────────────────────────────────────────────────

async def _to_response(db: AsyncSession, workspace: Workspace) -> WorkspaceResponse:
    return WorkspaceResponse(
        id=workspace.id,
        name=workspace.name,
        description=workspace.description,
        is_public=workspace.is_public,
        owner_uid=workspace.owner_uid,
        created_at=workspace.created_at,
        members=await workspace_service.count_members(db, workspace.id),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# WORKSPACE CRUD
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("", response_model=WorkspaceResponse, status_code=status.HTTP_201_CREATED)
async def create_workspace(
    body: WorkspaceCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> WorkspaceResponse:
    """Create a workspace; the creator becomes its owner and first admin."""
    workspace = await workspace_service.create_workspace(
        db, user, body.name, body.description, body.is_public
    )
    return WorkspaceResponse(
        id=workspace.id,
        name=workspace.name,
        description=workspace.description,
        is_public=workspace.is_public,
        owner_uid=workspace.owner_uid,
        created_at=workspace.created_at,
        members=1,
    )


@router.get("", response_model=List[UserWorkspaceInfo])
async def list_workspaces(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[UserWorkspaceInfo]:
    return await workspace_service.list_user_workspaces(db, user)


@router.post("/join", response_model=WorkspaceResponse)
async def join_workspace(
    body: JoinWorkspaceRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> WorkspaceResponse:
    try:
        workspace = await workspace_service.join_with_invite(db, user, body.invite_code)
    except InviteNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invite not found.")
    except InviteExpired:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail="Invite has expired.")
    except WorkspaceNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Workspace not found.")
    except AlreadyMember as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    return await _to_response(db, workspace)


@router.get("/{workspace_id}", response_model=WorkspaceResponse)
async def get_workspace(
    workspace_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> WorkspaceResponse:
    """Workspace detail; private workspaces are visible to members only."""
    try:
        workspace = await workspace_service.get_workspace(db, workspace_id)
    except WorkspaceNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Workspace {workspace_id} not found.",
        )

    if not workspace.is_public:
        if await workspace_service.get_membership(db, workspace.id, user.id) is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You are not a member of this workspace.",
            )

    return await _to_response(db, workspace)


@router.put("/{workspace_id}", response_model=WorkspaceResponse)
async def update_workspace(
    body: WorkspaceUpdateRequest,
    workspace: Workspace = Depends(get_owned_workspace),
    db: AsyncSession = Depends(get_db),
) -> WorkspaceResponse:
    workspace = await workspace_service.update_workspace(
        db, workspace, body.name, body.description, body.is_public
    )
    return await _to_response(db, workspace)


@router.delete("/{workspace_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workspace(
    workspace: Workspace = Depends(get_owned_workspace),
    db: AsyncSession = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
) -> None:
    """
    Delete a workspace. Task details and AI history are removed from the
    document store first; the relational rows only go once that succeeded.
    """
    workspace_id = workspace.id
    try:
        await workspace_service.delete_workspace(db, store, workspace)
    except DocumentStoreError as exc:
        logger.error("Workspace %d delete aborted: %s", workspace_id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete workspace data from the document store.",
        )
    except DualWriteError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# MEMBERS
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/{workspace_id}/members", response_model=List[WorkspaceMemberResponse])
async def list_members(
    workspace: Workspace = Depends(get_member_workspace),
    db: AsyncSession = Depends(get_db),
) -> List[WorkspaceMemberResponse]:
    return await workspace_service.list_members(db, workspace.id)


@router.post(
    "/{workspace_id}/members",
    response_model=WorkspaceMemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    body: AddMemberRequest,
    workspace: Workspace = Depends(get_member_workspace),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> WorkspaceMemberResponse:
    try:
        membership = await workspace_service.add_member(db, workspace, user, body.email, body.role)
    except PermissionDenied as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    except UserNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No user registered with email {body.email}.",
        )
    except AlreadyMember as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    return membership


@router.delete("/{workspace_id}/members/{uid}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    uid: str,
    workspace: Workspace = Depends(get_member_workspace),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> None:
    """The owner removes members; any member can remove themself."""
    try:
        await workspace_service.remove_member(db, workspace, user, uid)
    except PermissionDenied as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    except UserNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {uid} is not a member of this workspace.",
        )
    except MembershipError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


# ═══════════════════════════════════════════════════════════════════════════════
# INVITES
# ═══════════════════════════════════════════════════════════════════════════════

@router.post(
    "/{workspace_id}/invites",
    response_model=InviteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_invite(
    body: InviteCreateRequest,
    workspace: Workspace = Depends(get_member_workspace),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> InviteResponse:
    try:
        invite = await workspace_service.create_invite(
            db, workspace, user, body.role.value, body.expires_in_hours
        )
    except PermissionDenied as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    return InviteResponse.model_validate(invite)


# ═══════════════════════════════════════════════════════════════════════════════
# AI HISTORY
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/{workspace_id}/ai-history", response_model=List[AIHistoryEntryResponse])
async def list_ai_history(
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    workspace: Workspace = Depends(get_member_workspace),
    store: DocumentStore = Depends(get_document_store),
) -> List[AIHistoryEntryResponse]:
    try:
        entries = await store.list_ai_history(workspace.id, limit or settings.AI_HISTORY_PAGE_SIZE)
    except DocumentStoreError as exc:
        logger.error("AI history read failed for workspace %d: %s", workspace.id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load AI history.",
        )
    return [AIHistoryEntryResponse(**entry) for entry in entries]

"""
Workspace service: creation, membership, invites and the cross-store delete.

Public API
----------
create_workspace(db, owner, name, description, is_public)  -> Workspace
create_private_workspace(db, owner)                         -> Workspace
list_user_workspaces(db, user)                              -> List[UserWorkspaceInfo]
update_workspace(db, workspace, name, description, is_public) -> Workspace
delete_workspace(db, store, workspace)                      -> None
delete_workspace_rows(db, workspace_id)                     -> None (no commit)
list_members / add_member / remove_member
create_invite / join_with_invite
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.database_models import (
    MemberRole,
    TaskStub,
    User,
    Workspace,
    WorkspaceInvite,
    WorkspaceMember,
)
from app.models.schemas import UserWorkspaceInfo, WorkspaceMemberResponse
from app.services.document_store import DocumentStore
from app.services.exceptions import (
    AlreadyMember,
    DualWriteError,
    InviteExpired,
    InviteNotFound,
    MembershipError,
    PermissionDenied,
    UserNotFound,
    WorkspaceAlreadyExists,
    WorkspaceNotFound,
)

logger = logging.getLogger(__name__)

PRIVATE_WORKSPACE_DESCRIPTION = "Personal workspace"


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def get_workspace(db: AsyncSession, workspace_id: int) -> Workspace:
    workspace = await db.get(Workspace, workspace_id)
    if workspace is None:
        raise WorkspaceNotFound(workspace_id)
    return workspace


async def get_membership(
    db: AsyncSession, workspace_id: int, user_id: int
) -> Optional[WorkspaceMember]:
    result = await db.execute(
        select(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def count_members(db: AsyncSession, workspace_id: int) -> int:
    result = await db.execute(
        select(func.count()).select_from(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace_id
        )
    )
    return result.scalar_one()


async def can_manage(db: AsyncSession, workspace: Workspace, user: User) -> bool:
    """Owner or admin of the workspace."""
    if workspace.owner_uid == user.firebase_uid:
        return True
    membership = await get_membership(db, workspace.id, user.id)
    return membership is not None and membership.role == MemberRole.ADMIN.value


def normalize_role(role: Optional[str]) -> str:
    if role in (MemberRole.ADMIN.value, MemberRole.MEMBER.value):
        return role
    return MemberRole.MEMBER.value


# ---------------------------------------------------------------------------
# Workspace CRUD
# ---------------------------------------------------------------------------

async def create_workspace(
    db: AsyncSession,
    owner: User,
    name: str,
    description: Optional[str] = None,
    is_public: bool = True,
) -> Workspace:
    """Insert the workspace and its owner's admin membership in one transaction."""
    workspace = Workspace(
        name=name,
        description=description,
        is_public=is_public,
        owner_uid=owner.firebase_uid,
    )
    try:
        db.add(workspace)
        await db.flush()
        db.add(
            WorkspaceMember(
                workspace_id=workspace.id,
                user_id=owner.id,
                role=MemberRole.ADMIN.value,
            )
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Created workspace id=%d name=%r owner=%s", workspace.id, workspace.name, owner.firebase_uid)
    return workspace


async def create_private_workspace(db: AsyncSession, owner: User) -> Workspace:
    """Create the personal workspace every account gets on registration."""
    result = await db.execute(
        select(Workspace.id).where(
            Workspace.owner_uid == owner.firebase_uid,
            Workspace.name == owner.firebase_uid,
            Workspace.is_public.is_(False),
        )
    )
    if result.first() is not None:
        raise WorkspaceAlreadyExists("private workspace already exists")

    return await create_workspace(
        db,
        owner,
        name=owner.firebase_uid,
        description=PRIVATE_WORKSPACE_DESCRIPTION,
        is_public=False,
    )


async def list_user_workspaces(db: AsyncSession, user: User) -> List[UserWorkspaceInfo]:
    result = await db.execute(
        select(Workspace.id, Workspace.name, Workspace.owner_uid, WorkspaceMember.role)
        .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
        .where(WorkspaceMember.user_id == user.id)
        .order_by(Workspace.name, Workspace.id)
    )
    return [
        UserWorkspaceInfo(
            id=ws_id,
            name=name,
            user_role=role,
            is_owner=owner_uid == user.firebase_uid,
        )
        for ws_id, name, owner_uid, role in result.all()
    ]


async def update_workspace(
    db: AsyncSession,
    workspace: Workspace,
    name: str,
    description: Optional[str],
    is_public: Optional[bool] = None,
) -> Workspace:
    workspace.name = name
    workspace.description = description
    if is_public is not None:
        workspace.is_public = is_public
    await db.commit()
    logger.info("Updated workspace id=%d", workspace.id)
    return workspace


async def delete_workspace_rows(db: AsyncSession, workspace_id: int) -> None:
    """Delete the relational rows of a workspace without committing.

    Children go first; SQLite does not enforce the FK cascades.
    """
    await db.execute(delete(TaskStub).where(TaskStub.workspace_id == workspace_id))
    await db.execute(delete(WorkspaceInvite).where(WorkspaceInvite.workspace_id == workspace_id))
    await db.execute(delete(WorkspaceMember).where(WorkspaceMember.workspace_id == workspace_id))
    await db.execute(delete(Workspace).where(Workspace.id == workspace_id))


async def delete_workspace(
    db: AsyncSession,
    store: DocumentStore,
    workspace: Workspace,
    batch_size: Optional[int] = None,
) -> None:
    """
    Remove a workspace from both stores.

    The document-store tree goes first; if that fails nothing relational is
    touched and ``DocumentStoreError`` propagates. The relational rows (task
    stubs, invites, memberships, workspace) are then removed in a single
    transaction.
    """
    workspace_id = workspace.id
    deleted_docs = await store.delete_workspace_tree(
        workspace_id, batch_size or settings.FIRESTORE_BATCH_SIZE
    )

    try:
        await delete_workspace_rows(db, workspace_id)
        await db.commit()
    except Exception as exc:
        await db.rollback()
        logger.error(
            "Workspace %d removed from document store but relational delete failed: %s",
            workspace_id,
            exc,
        )
        raise DualWriteError(
            f"Workspace {workspace_id} documents deleted, but failed to delete records"
        ) from exc

    if workspace in db:
        db.expunge(workspace)
    logger.info("Deleted workspace id=%d (%d documents)", workspace_id, deleted_docs)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

async def list_members(db: AsyncSession, workspace_id: int) -> List[WorkspaceMemberResponse]:
    result = await db.execute(
        select(User.firebase_uid, User.display_name, User.email, WorkspaceMember.role, WorkspaceMember.joined_at)
        .join(WorkspaceMember, WorkspaceMember.user_id == User.id)
        .where(WorkspaceMember.workspace_id == workspace_id)
        .order_by(WorkspaceMember.joined_at, User.id)
    )
    return [
        WorkspaceMemberResponse(
            user_id=uid,
            display_name=display_name,
            email=email,
            role=role,
            joined_at=joined_at,
        )
        for uid, display_name, email, role, joined_at in result.all()
    ]


async def add_member(
    db: AsyncSession,
    workspace: Workspace,
    actor: User,
    email: str,
    role: Optional[str] = None,
) -> WorkspaceMemberResponse:
    if not await can_manage(db, workspace, actor):
        raise PermissionDenied("only the owner or an admin can add members")

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        raise UserNotFound(email)

    if await get_membership(db, workspace.id, user.id) is not None:
        raise AlreadyMember(f"{email} is already a member of this workspace")

    membership = WorkspaceMember(
        workspace_id=workspace.id,
        user_id=user.id,
        role=normalize_role(role),
    )
    db.add(membership)
    await db.commit()
    logger.info("Added %s to workspace %d as %s", user.firebase_uid, workspace.id, membership.role)
    return WorkspaceMemberResponse(
        user_id=user.firebase_uid,
        display_name=user.display_name,
        email=user.email,
        role=membership.role,
        joined_at=membership.joined_at,
    )


async def remove_member(
    db: AsyncSession,
    workspace: Workspace,
    actor: User,
    target_uid: str,
) -> None:
    """Owner removes anyone but themself; any member may leave."""
    if target_uid == workspace.owner_uid:
        raise MembershipError("the workspace owner cannot be removed")

    is_owner = actor.firebase_uid == workspace.owner_uid
    if not is_owner and actor.firebase_uid != target_uid:
        raise PermissionDenied("only the owner can remove other members")

    result = await db.execute(select(User).where(User.firebase_uid == target_uid))
    target = result.scalar_one_or_none()
    if target is None:
        raise UserNotFound(target_uid)

    result = await db.execute(
        delete(WorkspaceMember).where(
            WorkspaceMember.workspace_id == workspace.id,
            WorkspaceMember.user_id == target.id,
        )
    )
    if result.rowcount == 0:
        await db.rollback()
        raise UserNotFound(target_uid)

    await db.commit()
    logger.info("Removed %s from workspace %d", target_uid, workspace.id)


# ---------------------------------------------------------------------------
# Invites
# ---------------------------------------------------------------------------

def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


async def create_invite(
    db: AsyncSession,
    workspace: Workspace,
    actor: User,
    role: str = MemberRole.MEMBER.value,
    expires_in_hours: Optional[int] = None,
) -> WorkspaceInvite:
    if not await can_manage(db, workspace, actor):
        raise PermissionDenied("only the owner or an admin can create invites")

    expires_at = None
    if expires_in_hours:
        expires_at = datetime.now(timezone.utc) + timedelta(hours=expires_in_hours)

    invite = WorkspaceInvite(
        workspace_id=workspace.id,
        invite_code=secrets.token_urlsafe(16),
        role=normalize_role(role),
        expires_at=expires_at,
    )
    db.add(invite)
    await db.commit()
    logger.info("Created invite for workspace %d (role=%s)", workspace.id, invite.role)
    return invite


async def join_with_invite(db: AsyncSession, user: User, invite_code: str) -> Workspace:
    result = await db.execute(
        select(WorkspaceInvite).where(WorkspaceInvite.invite_code == invite_code)
    )
    invite = result.scalar_one_or_none()
    if invite is None:
        raise InviteNotFound(invite_code)

    if invite.expires_at is not None and _as_utc(invite.expires_at) <= datetime.now(timezone.utc):
        raise InviteExpired(invite_code)

    workspace = await get_workspace(db, invite.workspace_id)
    if await get_membership(db, workspace.id, user.id) is not None:
        raise AlreadyMember("already a member of this workspace")

    db.add(WorkspaceMember(workspace_id=workspace.id, user_id=user.id, role=invite.role))
    await db.commit()
    logger.info("User %s joined workspace %d via invite", user.firebase_uid, workspace.id)
    return workspace

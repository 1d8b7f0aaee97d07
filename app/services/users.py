"""
User accounts across the identity provider and the relational store.

Registration creates the identity account first and removes it again when the
local records cannot be written. Account deletion runs the other way round:
local data first, identity account last.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.database_models import TaskStub, User, Workspace, WorkspaceMember
from app.services.document_store import DocumentStore
from app.services.exceptions import DualWriteError, UserAlreadyExists
from app.services.identity import FirebaseIdentityProvider
from app.services.workspaces import create_private_workspace, delete_workspace_rows

logger = logging.getLogger(__name__)


@dataclass
class RegistrationResult:
    uid: str
    custom_token: str


async def get_user_by_uid(db: AsyncSession, uid: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.firebase_uid == uid))
    return result.scalar_one_or_none()


async def get_or_create_user(
    db: AsyncSession,
    uid: str,
    email: Optional[str] = None,
    display_name: Optional[str] = None,
) -> User:
    """Return the local user for *uid*, inserting it from token claims on first sight."""
    user = await get_user_by_uid(db, uid)
    if user is not None:
        return user

    user = User(
        firebase_uid=uid,
        email=email or f"{uid}@users.invalid",
        display_name=display_name,
    )
    db.add(user)
    await db.commit()
    logger.info("Created local user uid=%s email=%s", uid, user.email)
    return user


async def register_user(
    db: AsyncSession,
    identity: FirebaseIdentityProvider,
    email: str,
    password: str,
    display_name: str,
) -> RegistrationResult:
    if await identity.get_user_by_email(email) is not None:
        raise UserAlreadyExists(email)

    account = await identity.create_user(email, password, display_name)

    try:
        user = User(firebase_uid=account.uid, email=email, display_name=display_name)
        db.add(user)
        await db.flush()
        await create_private_workspace(db, user)
    except Exception as exc:
        await db.rollback()
        logger.error("Local records for uid=%s failed, removing identity account: %s", account.uid, exc)
        compensated = True
        try:
            await identity.delete_user(account.uid)
        except Exception as comp_exc:
            compensated = False
            logger.critical("Orphan identity account uid=%s left behind: %s", account.uid, comp_exc)
        raise DualWriteError("failed to create user records", compensated=compensated) from exc

    custom_token = await identity.create_custom_token(account.uid)
    logger.info("Registered user uid=%s", account.uid)
    return RegistrationResult(uid=account.uid, custom_token=custom_token)


async def list_users(db: AsyncSession) -> List[User]:
    result = await db.execute(select(User).order_by(User.id))
    return list(result.scalars().all())


async def update_display_name(db: AsyncSession, user: User, display_name: str) -> User:
    user.display_name = display_name
    await db.commit()
    return user


async def delete_account(
    db: AsyncSession,
    store: DocumentStore,
    identity: FirebaseIdentityProvider,
    user: User,
) -> None:
    """
    Delete the account in three steps:

    1. document trees of every owned workspace (a failure stops here and no
       relational row has been touched)
    2. owned workspaces, memberships, task authorship and the user row, in one
       relational transaction
    3. the identity account
    """
    uid = user.firebase_uid
    user_id = user.id
    result = await db.execute(
        select(Workspace.id).where(Workspace.owner_uid == uid).order_by(Workspace.id)
    )
    owned_ids = list(result.scalars().all())

    for workspace_id in owned_ids:
        await store.delete_workspace_tree(workspace_id, settings.FIRESTORE_BATCH_SIZE)

    try:
        for workspace_id in owned_ids:
            await delete_workspace_rows(db, workspace_id)
        await db.execute(delete(WorkspaceMember).where(WorkspaceMember.user_id == user_id))
        await db.execute(
            update(TaskStub).where(TaskStub.created_by == user_id).values(created_by=None)
        )
        await db.execute(delete(User).where(User.id == user_id))
        await db.commit()
    except Exception as exc:
        await db.rollback()
        logger.error("Account records for uid=%s not deleted after document cascade: %s", uid, exc)
        if owned_ids:
            raise DualWriteError(
                "Workspace documents deleted, but failed to delete account records"
            ) from exc
        raise

    try:
        await identity.delete_user(uid)
    except Exception as exc:
        logger.error("Local data for uid=%s deleted but identity account remains: %s", uid, exc)
        raise DualWriteError("Account data deleted, but failed to delete identity account") from exc

    logger.info("Deleted account uid=%s", uid)


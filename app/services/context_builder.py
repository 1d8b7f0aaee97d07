"""
Workspace snapshot for the task assistant.

Combines the workspace row and its members (relational store) with the most
recently updated tasks (document store).
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.database_models import User, Workspace, WorkspaceMember
from app.models.schemas import ContextTask, ContextUser, WorkspaceContext
from app.services.document_store import DocumentStore
from app.services.exceptions import WorkspaceNotFound

logger = logging.getLogger(__name__)


async def build_workspace_context(
    db: AsyncSession,
    store: DocumentStore,
    workspace_id: int,
    user_message: str,
) -> WorkspaceContext:
    workspace = await db.get(Workspace, workspace_id)
    if workspace is None:
        raise WorkspaceNotFound(workspace_id)

    result = await db.execute(
        select(User.display_name, WorkspaceMember.role)
        .join(WorkspaceMember, WorkspaceMember.user_id == User.id)
        .where(WorkspaceMember.workspace_id == workspace_id)
        .order_by(WorkspaceMember.joined_at)
    )
    users = [ContextUser(name=name, role=role) for name, role in result.all()]

    # Tasks are optional context; the assistant still answers without them
    tasks = []
    try:
        for doc in await store.list_tasks(workspace_id, limit=settings.AI_CONTEXT_MAX_TASKS):
            if not doc.get("title"):
                continue
            tasks.append(
                ContextTask(
                    title=doc["title"],
                    status=doc.get("status"),
                    priority=doc.get("priority"),
                )
            )
    except Exception as exc:
        logger.warning("Could not load tasks for AI context of workspace %d: %s", workspace_id, exc)
        tasks = []

    return WorkspaceContext(
        workspace_id=str(workspace_id),
        group_name=workspace.name,
        group_description=workspace.description,
        users=users,
        tasks=tasks,
        user_message=user_message,
    )

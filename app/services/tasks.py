"""
Task service: dual-write across the document store and the relational store.

Task details live in the document store under ``workspaces/{id}/tasks``; the
relational ``tasks`` table only holds a stub (document id, workspace, creator).

Write order
-----------
create : document, then stub; stub failure deletes the document again
update : document, then stub ``updated_at`` (stub failure is only logged)
delete : document, then stub
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.database_models import TaskStub, User, Workspace
from app.models.schemas import TaskCreateRequest
from app.services.document_store import DocumentStore
from app.services.exceptions import (
    DocumentStoreError,
    DualWriteError,
    PermissionDenied,
    TaskNotFound,
)
from app.services.workspaces import can_manage

logger = logging.getLogger(__name__)

STUB_DELETE_FAILED = "Task deleted from primary store, but failed to delete record"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskService:
    """Task operations for a single request (one DB session, one document store)."""

    def __init__(self, db: AsyncSession, store: DocumentStore) -> None:
        self.db = db
        self.store = store

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_task(
        self, workspace: Workspace, user: User, body: TaskCreateRequest
    ) -> Tuple[str, Optional[Dict[str, Any]]]:
        """
        Create a task and return ``(task_id, detail)``.

        ``detail`` is ``None`` when the task was stored but could not be read
        back. Raises ``DocumentStoreError`` if the document write fails and
        ``DualWriteError`` if the stub insert fails.
        """
        workspace_id = workspace.id
        task_id = str(uuid.uuid4())
        now = _utcnow()
        data = body.model_dump(mode="python")
        data.update(
            {
                "workspace_id": workspace_id,
                "creator_uid": user.firebase_uid,
                "last_updated_by_uid": user.firebase_uid,
                "created_at": now,
                "last_updated_at": now,
            }
        )

        await self.store.create_task(workspace_id, task_id, data)

        try:
            self.db.add(TaskStub(document_id=task_id, workspace_id=workspace_id, created_by=user.id))
            await self.db.commit()
        except Exception as exc:
            await self.db.rollback()
            logger.error("Task stub insert failed for %s in workspace %d: %s", task_id, workspace_id, exc)
            compensated = await self._compensate_create(workspace_id, task_id)
            raise DualWriteError("Failed to record task", compensated=compensated) from exc

        logger.info("Created task %s in workspace %d", task_id, workspace_id)

        try:
            detail = await self.store.get_task(workspace_id, task_id)
        except DocumentStoreError as exc:
            logger.warning("Task %s created but could not be read back: %s", task_id, exc)
            detail = None
        return task_id, detail

    async def _compensate_create(self, workspace_id: int, task_id: str) -> bool:
        try:
            await self.store.delete_task(workspace_id, task_id)
        except Exception as exc:
            logger.critical(
                "Orphan task document workspaces/%d/tasks/%s could not be removed: %s",
                workspace_id,
                task_id,
                exc,
            )
            return False
        logger.info("Compensated task %s: document removed", task_id)
        return True

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def list_tasks(self, workspace_id: int) -> List[Dict[str, Any]]:
        return await self.store.list_tasks(workspace_id)

    async def get_task(self, workspace_id: int, task_id: str) -> Dict[str, Any]:
        detail = await self.store.get_task(workspace_id, task_id)
        if detail is None:
            raise TaskNotFound(task_id)
        return detail

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def update_task(
        self, workspace_id: int, task_id: str, user: User, fields: Dict[str, Any]
    ) -> Dict[str, Any]:
        fields = dict(fields)
        fields["last_updated_by_uid"] = user.firebase_uid
        await self.store.update_task(workspace_id, task_id, fields)

        try:
            await self.db.execute(
                update(TaskStub)
                .where(TaskStub.document_id == task_id)
                .values(updated_at=_utcnow())
            )
            await self.db.commit()
        except Exception as exc:
            await self.db.rollback()
            logger.error("Task %s updated but stub timestamp was not: %s", task_id, exc)

        logger.info("Updated task %s (%s)", task_id, ", ".join(sorted(fields)))
        return await self.get_task(workspace_id, task_id)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete_task(self, workspace: Workspace, task_id: str, user: User) -> None:
        workspace_id = workspace.id
        result = await self.db.execute(
            select(TaskStub).where(
                TaskStub.document_id == task_id,
                TaskStub.workspace_id == workspace_id,
            )
        )
        stub = result.scalar_one_or_none()

        if stub is not None:
            is_creator = stub.created_by == user.id
        else:
            detail = await self.store.get_task(workspace_id, task_id)
            if detail is None:
                raise TaskNotFound(task_id)
            is_creator = detail.get("creator_uid") == user.firebase_uid

        if not is_creator and not await can_manage(self.db, workspace, user):
            raise PermissionDenied("only the task creator, the owner or an admin can delete a task")

        await self.store.delete_task(workspace_id, task_id)

        try:
            result = await self.db.execute(
                delete(TaskStub).where(
                    TaskStub.document_id == task_id,
                    TaskStub.workspace_id == workspace_id,
                )
            )
            await self.db.commit()
        except Exception as exc:
            await self.db.rollback()
            logger.error("Task %s document deleted but stub delete failed: %s", task_id, exc)
            raise DualWriteError(STUB_DELETE_FAILED) from exc

        if result.rowcount == 0:
            logger.warning("Task %s had no relational stub in workspace %d", task_id, workspace_id)
        logger.info("Deleted task %s from workspace %d", task_id, workspace_id)


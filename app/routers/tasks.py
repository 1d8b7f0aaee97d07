"""
Task endpoints, scoped to a workspace.

Route summary
-------------
POST   /api/workspaces/{workspace_id}/tasks             create task
GET    /api/workspaces/{workspace_id}/tasks             list tasks
GET    /api/workspaces/{workspace_id}/tasks/{task_id}   task detail
PATCH  /api/workspaces/{workspace_id}/tasks/{task_id}   partial update (PUT accepted too)
DELETE /api/workspaces/{workspace_id}/tasks/{task_id}   delete (creator, owner or admin)
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_current_user, get_member_workspace
from app.dependencies.services import get_document_store
from app.models.database_models import User, Workspace
from app.models.schemas import TaskCreateRequest, TaskResponse, TaskUpdateRequest
from app.services.document_store import DocumentStore
from app.services.exceptions import (
    DocumentStoreError,
    DualWriteError,
    PermissionDenied,
    TaskNotFound,
)
from app.services.tasks import TaskService

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(
    db: AsyncSession = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
) -> TaskService:
    return TaskService(db, store)


def _not_found(task_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Task {task_id} not found.",
    )


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    body: TaskCreateRequest,
    workspace: Workspace = Depends(get_member_workspace),
    user: User = Depends(get_current_user),
    service: TaskService = Depends(_get_service),
):
    """Write the task detail, then its relational stub."""
    try:
        task_id, detail = await service.create_task(workspace, user, body)
    except DocumentStoreError as exc:
        logger.error("Task create failed in workspace %d: %s", workspace.id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create task.",
        )
    except DualWriteError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        )

    if detail is None:
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content={"message": "Task created successfully", "id": task_id},
        )
    return TaskResponse(**detail)


@router.get("", response_model=List[TaskResponse])
async def list_tasks(
    workspace: Workspace = Depends(get_member_workspace),
    service: TaskService = Depends(_get_service),
) -> List[TaskResponse]:
    try:
        tasks = await service.list_tasks(workspace.id)
    except DocumentStoreError as exc:
        logger.error("Task list failed for workspace %d: %s", workspace.id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list tasks.",
        )
    return [TaskResponse(**t) for t in tasks]


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    workspace: Workspace = Depends(get_member_workspace),
    service: TaskService = Depends(_get_service),
) -> TaskResponse:
    try:
        detail = await service.get_task(workspace.id, task_id)
    except TaskNotFound:
        raise _not_found(task_id)
    except DocumentStoreError as exc:
        logger.error("Task read failed for %s: %s", task_id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load task.",
        )
    return TaskResponse(**detail)


@router.patch("/{task_id}", response_model=TaskResponse)
@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    body: TaskUpdateRequest,
    workspace: Workspace = Depends(get_member_workspace),
    user: User = Depends(get_current_user),
    service: TaskService = Depends(_get_service),
) -> TaskResponse:
    """Apply only the fields present in the request body; ``null`` means not provided."""
    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    if not fields:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update.",
        )

    try:
        detail = await service.update_task(workspace.id, task_id, user, fields)
    except TaskNotFound:
        raise _not_found(task_id)
    except DocumentStoreError as exc:
        logger.error("Task update failed for %s: %s", task_id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update task.",
        )
    return TaskResponse(**detail)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: str,
    workspace: Workspace = Depends(get_member_workspace),
    user: User = Depends(get_current_user),
    service: TaskService = Depends(_get_service),
) -> None:
    try:
        await service.delete_task(workspace, task_id, user)
    except TaskNotFound:
        raise _not_found(task_id)
    except PermissionDenied as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    except DocumentStoreError as exc:
        logger.error("Task delete failed for %s: %s", task_id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete task.",
        )
    except DualWriteError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        )

"""
AI proxy endpoints.

Requests are forwarded to the external AI service and every call, successful
or not, is recorded in the AI interaction history.

Route summary
-------------
POST /api/ai/code-review      review a code snippet
POST /api/ai/summarize        summarise text
POST /api/ai/mindmap-ideas    mind-map ideas from text
POST /api/ai/task-assistant   task suggestions using the workspace context
"""
import logging
from typing import Any, Dict, Optional, Type, TypeVar

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_current_user, get_member_workspace
from app.dependencies.services import get_ai_client, get_document_store
from app.models.database_models import User
from app.models.schemas import (
    CodeReviewRequest,
    CodeReviewResponse,
    MindMapRequest,
    MindMapResponse,
    SummarizeRequest,
    SummarizeResponse,
    TaskAssistantAIRequest,
    TaskAssistantRequest,
    TaskAssistantResponse,
)
from app.services import ai_history
from app.services.ai_client import (
    CODE_REVIEW_PATH,
    MINDMAP_IDEAS_PATH,
    SUMMARIZE_PATH,
    TASK_ASSISTANT_PATH,
    AIResult,
    AIServiceClient,
)
from app.services.context_builder import build_workspace_context
from app.services.document_store import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter()

ResponseT = TypeVar("ResponseT", bound=BaseModel)


# ─── Helpers ──────────────────────────────────────────────────────────────────

async def _check_workspace(db: AsyncSession, user: User, workspace_id: Optional[int]) -> None:
    """Membership check for calls tied to a workspace (404 / 403)."""
    if workspace_id is not None:
        await get_member_workspace(workspace_id, user=user, db=db)


def _raise_for_result(result: AIResult) -> Dict[str, Any]:
    """Return the AI response body, or raise the matching HTTPException."""
    if result.ok:
        return result.data if isinstance(result.data, dict) else {}

    if result.status_code == 0 or result.status_code < 400:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "Error communicating with AI service", "details": result.error},
        )

    message = result.error_message
    if message:
        raise HTTPException(status_code=result.status_code, detail={"error_ia": message})

    raise HTTPException(
        status_code=result.status_code,
        detail={"error": "AI service returned an error", "details": result.text},
    )


async def _proxy(
    *,
    client: AIServiceClient,
    store: DocumentStore,
    user: User,
    workspace_id: Optional[int],
    service_type: str,
    path: str,
    frontend_payload: Any,
    request_to_ai: Dict[str, Any],
    response_model: Type[ResponseT],
) -> ResponseT:
    result = await client.call(path, request_to_ai)
    await ai_history.log_ai_interaction(
        store,
        user_uid=user.firebase_uid,
        workspace_id=workspace_id,
        service_type=service_type,
        frontend_payload=frontend_payload,
        request_to_ai=request_to_ai,
        response_from_ai=result.loggable_response(),
        status_code=result.status_code,
        error=result.error,
    )
    if not result.ok:
        logger.warning("AI %s failed for user %s: %s", service_type, user.firebase_uid, result.error)
    data = _raise_for_result(result)
    try:
        return response_model(**data)
    except ValidationError as exc:
        logger.warning("AI %s returned an unexpected body: %s", service_type, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "Unexpected response from AI service", "details": result.text},
        )


# ═══════════════════════════════════════════════════════════════════════════════
# ENDPOINTS
# ═══════════════════════════════════════════════════════════════════════════════

@router.post("/code-review", response_model=CodeReviewResponse)
async def code_review(
    body: CodeReviewRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
    client: AIServiceClient = Depends(get_ai_client),
) -> CodeReviewResponse:
    await _check_workspace(db, user, body.workspace_id)
    return await _proxy(
        client=client,
        store=store,
        user=user,
        workspace_id=body.workspace_id,
        service_type=ai_history.CODE_REVIEW,
        path=CODE_REVIEW_PATH,
        frontend_payload=body.model_dump(),
        request_to_ai={"code": body.code, "language": body.language or "Python"},
        response_model=CodeReviewResponse,
    )


@router.post("/summarize", response_model=SummarizeResponse)
async def summarize(
    body: SummarizeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
    client: AIServiceClient = Depends(get_ai_client),
) -> SummarizeResponse:
    await _check_workspace(db, user, body.workspace_id)
    return await _proxy(
        client=client,
        store=store,
        user=user,
        workspace_id=body.workspace_id,
        service_type=ai_history.TEXT_SUMMARY,
        path=SUMMARIZE_PATH,
        frontend_payload=body.model_dump(),
        request_to_ai={"text": body.text},
        response_model=SummarizeResponse,
    )


@router.post("/mindmap-ideas", response_model=MindMapResponse)
async def mindmap_ideas(
    body: MindMapRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
    client: AIServiceClient = Depends(get_ai_client),
) -> MindMapResponse:
    await _check_workspace(db, user, body.workspace_id)
    return await _proxy(
        client=client,
        store=store,
        user=user,
        workspace_id=body.workspace_id,
        service_type=ai_history.MINDMAP_IDEAS,
        path=MINDMAP_IDEAS_PATH,
        frontend_payload=body.model_dump(),
        request_to_ai={"text": body.text},
        response_model=MindMapResponse,
    )


@router.post("/task-assistant", response_model=TaskAssistantResponse)
async def task_assistant(
    body: TaskAssistantRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
    client: AIServiceClient = Depends(get_ai_client),
) -> TaskAssistantResponse:
    """Send the workspace snapshot plus the user's message to the assistant."""
    await _check_workspace(db, user, body.workspace_id)
    context = await build_workspace_context(db, store, body.workspace_id, body.user_message)
    return await _proxy(
        client=client,
        store=store,
        user=user,
        workspace_id=body.workspace_id,
        service_type=ai_history.TASK_ASSISTANT,
        path=TASK_ASSISTANT_PATH,
        frontend_payload=body.model_dump(),
        request_to_ai=TaskAssistantAIRequest(workspace_context=context).model_dump(),
        response_model=TaskAssistantResponse,
    )

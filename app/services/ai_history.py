"""
AI interaction history.

Each call to the AI service is appended to the document store so a workspace
keeps a record of what was asked and what came back. Logging is best-effort:
a failure here is reported in the application log and never reaches the caller.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from app.services.document_store import DocumentStore

logger = logging.getLogger(__name__)

# Service types recorded in ``ai_service_type``
CODE_REVIEW = "code_review"
TEXT_SUMMARY = "text_summary"
MINDMAP_IDEAS = "mindmap_ideas"
TASK_ASSISTANT = "task_assistant"


async def log_ai_interaction(
    store: DocumentStore,
    user_uid: str,
    workspace_id: Optional[int],
    service_type: str,
    frontend_payload: Any,
    request_to_ai: Any,
    response_from_ai: Any,
    status_code: int,
    error: Optional[str] = None,
) -> Optional[str]:
    """Append one history entry. Returns its id, or ``None`` if it was not stored."""
    entry = {
        "user_id": user_uid,
        "workspace_id": workspace_id,
        "ai_service_type": service_type,
        "timestamp": datetime.now(timezone.utc),
        "frontend_request_payload": frontend_payload,
        "request_to_ai": request_to_ai,
        "response_from_ai": response_from_ai,
        "ai_status_code": status_code,
    }
    if error:
        entry["ai_error"] = error

    try:
        entry_id = await store.add_ai_history(workspace_id, entry)
    except Exception as exc:
        logger.error(
            "Failed to store AI history (%s) for workspace=%s user=%s: %s",
            service_type,
            workspace_id,
            user_uid,
            exc,
        )
        return None

    logger.debug("AI history %s stored for workspace=%s", entry_id, workspace_id)
    return entry_id

"""
Document store for task details and AI interaction history.

Layout (Firestore paths)::

    workspaces/{workspace_id}                         workspace document (may be absent)
    workspaces/{workspace_id}/tasks/{task_id}         task detail
    workspaces/{workspace_id}/ai_request_history/{id} AI interaction log
    ai_request_history/{id}                           AI calls not tied to a workspace

Provides:
- DocumentStore: interface used by the services
- FirestoreDocumentStore: Firestore-backed implementation (firebase-admin async client)
- InMemoryDocumentStore: process-local implementation for development and tests
"""
from __future__ import annotations

import copy
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from app.services.exceptions import DocumentStoreError, TaskNotFound

logger = logging.getLogger(__name__)

WORKSPACES_COLLECTION = "workspaces"
TASKS_SUBCOLLECTION = "tasks"
AI_HISTORY_COLLECTION = "ai_request_history"

# Subcollections removed when a workspace is deleted
WORKSPACE_SUBCOLLECTIONS = (TASKS_SUBCOLLECTION, AI_HISTORY_COLLECTION)

# Firestore rejects write batches with more operations than this
MAX_BATCH_SIZE = 500


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStore(Protocol):
    """Interface for document-store access."""

    async def create_task(self, workspace_id: int, task_id: str, data: Dict[str, Any]) -> None:
        ...

    async def get_task(self, workspace_id: int, task_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def list_tasks(self, workspace_id: int, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        ...

    async def update_task(self, workspace_id: int, task_id: str, fields: Dict[str, Any]) -> None:
        ...

    async def delete_task(self, workspace_id: int, task_id: str) -> None:
        ...

    async def add_ai_history(self, workspace_id: Optional[int], entry: Dict[str, Any]) -> str:
        ...

    async def list_ai_history(self, workspace_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        ...

    async def delete_workspace_tree(self, workspace_id: int, batch_size: int = 500) -> int:
        ...

    async def check_health(self) -> bool:
        ...


# ---------------------------------------------------------------------------
# Firestore
# ---------------------------------------------------------------------------

class FirestoreDocumentStore:
    """Firestore implementation backed by ``firebase_admin.firestore_async``."""

    def __init__(self, client: Any = None) -> None:
        if client is None:
            from firebase_admin import firestore_async

            from app.services.firebase_app import get_firebase_app

            client = firestore_async.client(get_firebase_app())
        self.client = client

    # ---- references ---------------------------------------------------

    def _workspace_ref(self, workspace_id: int):
        return self.client.collection(WORKSPACES_COLLECTION).document(str(workspace_id))

    def _tasks_ref(self, workspace_id: int):
        return self._workspace_ref(workspace_id).collection(TASKS_SUBCOLLECTION)

    # ---- tasks --------------------------------------------------------

    async def create_task(self, workspace_id: int, task_id: str, data: Dict[str, Any]) -> None:
        try:
            await self._tasks_ref(workspace_id).document(task_id).set(data)
        except Exception as exc:
            raise DocumentStoreError(f"failed to create task {task_id}: {exc}") from exc

    async def get_task(self, workspace_id: int, task_id: str) -> Optional[Dict[str, Any]]:
        try:
            snapshot = await self._tasks_ref(workspace_id).document(task_id).get()
        except Exception as exc:
            raise DocumentStoreError(f"failed to read task {task_id}: {exc}") from exc
        if not snapshot.exists:
            return None
        data = snapshot.to_dict() or {}
        data["id"] = snapshot.id
        return data

    async def list_tasks(self, workspace_id: int, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        from google.cloud import firestore

        query = self._tasks_ref(workspace_id).order_by(
            "last_updated_at", direction=firestore.Query.DESCENDING
        )
        if limit is not None:
            query = query.limit(limit)

        tasks: List[Dict[str, Any]] = []
        try:
            async for snapshot in query.stream():
                data = snapshot.to_dict() or {}
                data["id"] = snapshot.id
                tasks.append(data)
        except Exception as exc:
            raise DocumentStoreError(
                f"failed to list tasks for workspace {workspace_id}: {exc}"
            ) from exc
        return tasks

    async def update_task(self, workspace_id: int, task_id: str, fields: Dict[str, Any]) -> None:
        from google.api_core.exceptions import NotFound
        from google.cloud import firestore

        payload = dict(fields)
        payload["last_updated_at"] = firestore.SERVER_TIMESTAMP
        try:
            await self._tasks_ref(workspace_id).document(task_id).update(payload)
        except NotFound as exc:
            raise TaskNotFound(task_id) from exc
        except Exception as exc:
            raise DocumentStoreError(f"failed to update task {task_id}: {exc}") from exc

    async def delete_task(self, workspace_id: int, task_id: str) -> None:
        try:
            await self._tasks_ref(workspace_id).document(task_id).delete()
        except Exception as exc:
            raise DocumentStoreError(f"failed to delete task {task_id}: {exc}") from exc

    # ---- AI history ---------------------------------------------------

    async def add_ai_history(self, workspace_id: Optional[int], entry: Dict[str, Any]) -> str:
        if workspace_id is None:
            collection = self.client.collection(AI_HISTORY_COLLECTION)
        else:
            collection = self._workspace_ref(workspace_id).collection(AI_HISTORY_COLLECTION)
        try:
            _, doc_ref = await collection.add(entry)
        except Exception as exc:
            raise DocumentStoreError(f"failed to store AI history entry: {exc}") from exc
        return doc_ref.id

    async def list_ai_history(self, workspace_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        from google.cloud import firestore

        query = (
            self._workspace_ref(workspace_id)
            .collection(AI_HISTORY_COLLECTION)
            .order_by("timestamp", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )
        entries: List[Dict[str, Any]] = []
        try:
            async for snapshot in query.stream():
                data = snapshot.to_dict() or {}
                data["id"] = snapshot.id
                entries.append(data)
        except Exception as exc:
            raise DocumentStoreError(
                f"failed to list AI history for workspace {workspace_id}: {exc}"
            ) from exc
        return entries

    # ---- cascade ------------------------------------------------------

    async def delete_workspace_tree(self, workspace_id: int, batch_size: int = 500) -> int:
        """
        Delete every document under ``workspaces/{workspace_id}`` and then the
        workspace document itself.

        Firestore never removes subcollections together with their parent, so
        each one is drained in write batches of at most *batch_size* documents
        (capped at ``MAX_BATCH_SIZE``).
        """
        batch_size = max(1, min(batch_size, MAX_BATCH_SIZE))
        workspace_ref = self._workspace_ref(workspace_id)
        deleted = 0

        for name in WORKSPACE_SUBCOLLECTIONS:
            collection = workspace_ref.collection(name)
            while True:
                batch = self.client.batch()
                in_batch = 0
                try:
                    async for snapshot in collection.limit(batch_size).stream():
                        batch.delete(snapshot.reference)
                        in_batch += 1
                    if in_batch == 0:
                        break
                    await batch.commit()
                except Exception as exc:
                    raise DocumentStoreError(
                        f"failed to delete {name} of workspace {workspace_id}: {exc}"
                    ) from exc
                deleted += in_batch
                logger.debug(
                    "Deleted %d %s documents of workspace %d", in_batch, name, workspace_id
                )

        try:
            await workspace_ref.delete()
        except Exception as exc:
            raise DocumentStoreError(
                f"failed to delete workspace document {workspace_id}: {exc}"
            ) from exc

        logger.info("Workspace %d removed from Firestore (%d documents)", workspace_id, deleted)
        return deleted

    async def check_health(self) -> bool:
        try:
            async for _ in self.client.collection(WORKSPACES_COLLECTION).limit(1).stream():
                break
            return True
        except Exception as exc:
            logger.error("Firestore health check failed: %s", exc)
            return False


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------

class InMemoryDocumentStore:
    """Simple in-memory document store for development and tests."""

    def __init__(self) -> None:
        # workspace_id -> subcollection name -> doc id -> data
        self.workspaces: Dict[int, Dict[str, Dict[str, Dict[str, Any]]]] = {}
        self.global_history: Dict[str, Dict[str, Any]] = {}

    def _collection(self, workspace_id: int, name: str) -> Dict[str, Dict[str, Any]]:
        tree = self.workspaces.setdefault(workspace_id, {})
        return tree.setdefault(name, {})

    async def create_task(self, workspace_id: int, task_id: str, data: Dict[str, Any]) -> None:
        self._collection(workspace_id, TASKS_SUBCOLLECTION)[task_id] = copy.deepcopy(data)

    async def get_task(self, workspace_id: int, task_id: str) -> Optional[Dict[str, Any]]:
        data = self._collection(workspace_id, TASKS_SUBCOLLECTION).get(task_id)
        if data is None:
            return None
        result = copy.deepcopy(data)
        result["id"] = task_id
        return result

    async def list_tasks(self, workspace_id: int, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        tasks = [
            dict(copy.deepcopy(data), id=task_id)
            for task_id, data in self._collection(workspace_id, TASKS_SUBCOLLECTION).items()
        ]
        tasks.sort(key=lambda t: t.get("last_updated_at") or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return tasks[:limit] if limit is not None else tasks

    async def update_task(self, workspace_id: int, task_id: str, fields: Dict[str, Any]) -> None:
        tasks = self._collection(workspace_id, TASKS_SUBCOLLECTION)
        if task_id not in tasks:
            raise TaskNotFound(task_id)
        tasks[task_id].update(copy.deepcopy(fields))
        tasks[task_id]["last_updated_at"] = _utcnow()

    async def delete_task(self, workspace_id: int, task_id: str) -> None:
        self._collection(workspace_id, TASKS_SUBCOLLECTION).pop(task_id, None)

    async def add_ai_history(self, workspace_id: Optional[int], entry: Dict[str, Any]) -> str:
        entry_id = uuid.uuid4().hex
        if workspace_id is None:
            self.global_history[entry_id] = copy.deepcopy(entry)
        else:
            self._collection(workspace_id, AI_HISTORY_COLLECTION)[entry_id] = copy.deepcopy(entry)
        return entry_id

    async def list_ai_history(self, workspace_id: int, limit: int = 50) -> List[Dict[str, Any]]:
        entries = [
            dict(copy.deepcopy(data), id=entry_id)
            for entry_id, data in self._collection(workspace_id, AI_HISTORY_COLLECTION).items()
        ]
        entries.sort(key=lambda e: e.get("timestamp") or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return entries[:limit]

    async def delete_workspace_tree(self, workspace_id: int, batch_size: int = 500) -> int:
        tree = self.workspaces.pop(workspace_id, {})
        return sum(len(docs) for docs in tree.values())

    async def check_health(self) -> bool:
        return True

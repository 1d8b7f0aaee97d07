"""Unit tests for the document store implementations.

FirestoreDocumentStore runs against a small in-process stand-in for the
Firestore AsyncClient that records batch commits.
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest
from google.api_core.exceptions import NotFound
from google.cloud import firestore

from app.services.document_store import (
    MAX_BATCH_SIZE,
    FirestoreDocumentStore,
    InMemoryDocumentStore,
)
from app.services.exceptions import DocumentStoreError, TaskNotFound

Path = Tuple[str, ...]


# ---------------------------------------------------------------------------
# Firestore stand-in
# ---------------------------------------------------------------------------

class _Snapshot:
    def __init__(self, ref: "_DocRef", data: Optional[dict]):
        self.reference = ref
        self.id = ref.id
        self.exists = data is not None
        self._data = data

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class _DocRef:
    def __init__(self, client: "_FakeFirestore", path: Path):
        self._client = client
        self.path = path
        self.id = path[-1]

    def collection(self, name: str) -> "_CollectionRef":
        return _CollectionRef(self._client, self.path + (name,))

    async def set(self, data: dict) -> None:
        self._client.docs[self.path] = dict(data)

    async def get(self) -> _Snapshot:
        return _Snapshot(self, self._client.docs.get(self.path))

    async def update(self, data: dict) -> None:
        if self.path not in self._client.docs:
            raise NotFound(f"No document to update: {'/'.join(self.path)}")
        self._client.docs[self.path].update(data)

    async def delete(self) -> None:
        self._client.docs.pop(self.path, None)


class _CollectionRef:
    def __init__(self, client: "_FakeFirestore", path: Path, limit: Optional[int] = None):
        self._client = client
        self.path = path
        self._limit = limit

    def document(self, doc_id: str) -> _DocRef:
        return _DocRef(self._client, self.path + (doc_id,))

    def limit(self, n: int) -> "_CollectionRef":
        return _CollectionRef(self._client, self.path, n)

    def order_by(self, field: str, direction=None) -> "_CollectionRef":
        return self

    async def add(self, data: dict):
        self._client.auto_id += 1
        ref = self.document(f"auto-{self._client.auto_id}")
        await ref.set(data)
        return None, ref

    async def stream(self):
        children = [
            path for path in sorted(self._client.docs)
            if len(path) == len(self.path) + 1 and path[: len(self.path)] == self.path
        ]
        if self._limit is not None:
            children = children[: self._limit]
        for path in children:
            ref = _DocRef(self._client, path)
            yield _Snapshot(ref, self._client.docs[path])


class _Batch:
    def __init__(self, client: "_FakeFirestore"):
        self._client = client
        self._refs: List[_DocRef] = []

    def delete(self, ref: _DocRef) -> None:
        self._refs.append(ref)

    async def commit(self) -> None:
        if self._client.fail_commit:
            raise RuntimeError("commit rejected")
        self._client.commits.append(len(self._refs))
        for ref in self._refs:
            self._client.docs.pop(ref.path, None)


class _FakeFirestore:
    def __init__(self):
        self.docs: Dict[Path, dict] = {}
        self.commits: List[int] = []
        self.auto_id = 0
        self.fail_commit = False

    def collection(self, name: str) -> _CollectionRef:
        return _CollectionRef(self, (name,))

    def batch(self) -> _Batch:
        return _Batch(self)


# ---------------------------------------------------------------------------
# FirestoreDocumentStore
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_firestore_task_paths_and_round_trip():
    fake = _FakeFirestore()
    store = FirestoreDocumentStore(client=fake)

    await store.create_task(7, "t1", {"title": "Hello"})
    assert ("workspaces", "7", "tasks", "t1") in fake.docs

    task = await store.get_task(7, "t1")
    assert task == {"title": "Hello", "id": "t1"}
    assert await store.get_task(7, "missing") is None


@pytest.mark.asyncio
async def test_firestore_update_stamps_server_timestamp():
    fake = _FakeFirestore()
    store = FirestoreDocumentStore(client=fake)
    await store.create_task(1, "t1", {"title": "Hello"})

    await store.update_task(1, "t1", {"status": "done"})
    doc = fake.docs[("workspaces", "1", "tasks", "t1")]
    assert doc["status"] == "done"
    assert doc["last_updated_at"] is firestore.SERVER_TIMESTAMP


@pytest.mark.asyncio
async def test_firestore_update_missing_task_raises_task_not_found():
    store = FirestoreDocumentStore(client=_FakeFirestore())
    with pytest.raises(TaskNotFound):
        await store.update_task(1, "ghost", {"status": "done"})


@pytest.mark.asyncio
async def test_firestore_ai_history_locations():
    fake = _FakeFirestore()
    store = FirestoreDocumentStore(client=fake)

    scoped = await store.add_ai_history(3, {"ai_service_type": "code_review"})
    unscoped = await store.add_ai_history(None, {"ai_service_type": "text_summary"})

    assert ("workspaces", "3", "ai_request_history", scoped) in fake.docs
    assert ("ai_request_history", unscoped) in fake.docs


@pytest.mark.asyncio
async def test_firestore_delete_workspace_tree_in_batches():
    fake = _FakeFirestore()
    store = FirestoreDocumentStore(client=fake)
    await fake.collection("workspaces").document("5").set({"name": "ws"})
    for i in range(5):
        await store.create_task(5, f"t{i}", {"title": str(i)})
    await store.add_ai_history(5, {"user_id": "u"})
    await store.create_task(6, "other", {"title": "untouched"})

    deleted = await store.delete_workspace_tree(5, batch_size=2)

    assert deleted == 6
    assert fake.commits == [2, 2, 1, 1]
    assert all(path[1] != "5" for path in fake.docs)
    assert ("workspaces", "6", "tasks", "other") in fake.docs


@pytest.mark.asyncio
async def test_firestore_batch_size_is_capped_at_write_limit():
    fake = _FakeFirestore()
    store = FirestoreDocumentStore(client=fake)
    for i in range(MAX_BATCH_SIZE + 1):
        fake.docs[("workspaces", "9", "tasks", f"t{i:04d}")] = {"title": str(i)}

    deleted = await store.delete_workspace_tree(9, batch_size=2000)

    assert deleted == MAX_BATCH_SIZE + 1
    assert fake.commits == [MAX_BATCH_SIZE, 1]


@pytest.mark.asyncio
async def test_firestore_delete_workspace_tree_failure_is_wrapped():
    fake = _FakeFirestore()
    store = FirestoreDocumentStore(client=fake)
    await store.create_task(5, "t1", {"title": "x"})
    fake.fail_commit = True

    with pytest.raises(DocumentStoreError):
        await store.delete_workspace_tree(5)
    assert ("workspaces", "5", "tasks", "t1") in fake.docs


# ---------------------------------------------------------------------------
# InMemoryDocumentStore
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_in_memory_list_tasks_newest_first_with_limit():
    store = InMemoryDocumentStore()
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for i in range(4):
        await store.create_task(1, f"t{i}", {"title": str(i), "last_updated_at": base + timedelta(hours=i)})

    tasks = await store.list_tasks(1, limit=2)
    assert [t["id"] for t in tasks] == ["t3", "t2"]


@pytest.mark.asyncio
async def test_in_memory_update_missing_raises():
    store = InMemoryDocumentStore()
    with pytest.raises(TaskNotFound):
        await store.update_task(1, "nope", {"title": "x"})


@pytest.mark.asyncio
async def test_in_memory_returns_copies():
    store = InMemoryDocumentStore()
    await store.create_task(1, "t1", {"title": "original"})
    task = await store.get_task(1, "t1")
    task["title"] = "mutated"
    assert (await store.get_task(1, "t1"))["title"] == "original"


@pytest.mark.asyncio
async def test_in_memory_delete_workspace_tree_counts_documents():
    store = InMemoryDocumentStore()
    await store.create_task(1, "t1", {"title": "a"})
    await store.create_task(1, "t2", {"title": "b"})
    await store.add_ai_history(1, {"user_id": "u"})

    assert await store.delete_workspace_tree(1) == 3
    assert await store.list_tasks(1) == []
    # missing task delete is not an error
    await store.delete_task(1, "t1")

"""
Process-wide service singletons used through FastAPI ``Depends``.

Tests replace them with ``app.dependency_overrides``.
"""
from __future__ import annotations

import logging
from typing import Optional

from app.config import settings
from app.services.ai_client import AIServiceClient
from app.services.document_store import (
    DocumentStore,
    FirestoreDocumentStore,
    InMemoryDocumentStore,
)
from app.services.identity import FirebaseIdentityProvider

logger = logging.getLogger(__name__)

_document_store: Optional[DocumentStore] = None
_identity_provider: Optional[FirebaseIdentityProvider] = None
_ai_client: Optional[AIServiceClient] = None


def get_document_store() -> DocumentStore:
    """Return the shared document store (Firestore unless configured in-memory)."""
    global _document_store
    if _document_store is None:
        if settings.USE_IN_MEMORY_DOCUMENT_STORE:
            logger.warning("Using in-memory document store; task details are not persisted")
            _document_store = InMemoryDocumentStore()
        else:
            _document_store = FirestoreDocumentStore()
    return _document_store


def get_identity_provider() -> FirebaseIdentityProvider:
    global _identity_provider
    if _identity_provider is None:
        _identity_provider = FirebaseIdentityProvider()
    return _identity_provider


def get_ai_client() -> AIServiceClient:
    global _ai_client
    if _ai_client is None:
        _ai_client = AIServiceClient()
    return _ai_client

"""
Process-wide Firebase Admin app.

Initialised lazily from ``FIREBASE_CREDENTIALS_PATH`` (service-account JSON);
falls back to Application Default Credentials when no path is configured.
"""
import logging
import threading
from typing import Optional

import firebase_admin
from firebase_admin import credentials

from app.config import settings

logger = logging.getLogger(__name__)

_app: Optional[firebase_admin.App] = None
_lock = threading.Lock()


def get_firebase_app() -> firebase_admin.App:
    """Return the shared Firebase app, initialising it on first use."""
    global _app
    if _app is not None:
        return _app

    with _lock:
        if _app is None:
            if settings.FIREBASE_CREDENTIALS_PATH:
                cred = credentials.Certificate(settings.FIREBASE_CREDENTIALS_PATH)
                source = settings.FIREBASE_CREDENTIALS_PATH
            else:
                cred = credentials.ApplicationDefault()
                source = "application default credentials"

            options = {}
            if settings.FIREBASE_PROJECT_ID:
                options["projectId"] = settings.FIREBASE_PROJECT_ID

            _app = firebase_admin.initialize_app(cred, options or None)
            logger.info("Firebase app initialised from %s", source)
    return _app

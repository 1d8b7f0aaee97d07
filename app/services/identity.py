"""
Identity provider backed by Firebase Authentication.

The Admin SDK is synchronous, so every call is pushed to a worker thread with
``asyncio.to_thread``. Password sign-in is not part of the Admin SDK and goes
through the Identity Toolkit REST endpoint instead.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from firebase_admin import auth
from firebase_admin.exceptions import FirebaseError

from app.config import settings
from app.services.exceptions import (
    IdentityError,
    InvalidCredentialsError,
    InvalidTokenError,
    UserAlreadyExists,
)
from app.services.firebase_app import get_firebase_app

logger = logging.getLogger(__name__)


@dataclass
class IdentityUser:
    """Subset of an identity-provider account used by the API."""

    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None


@dataclass
class SignInResult:
    id_token: str
    uid: str
    refresh_token: Optional[str] = None


def _to_identity_user(record: Any) -> IdentityUser:
    return IdentityUser(uid=record.uid, email=record.email, display_name=record.display_name)


class FirebaseIdentityProvider:
    """Account management and token checks through ``firebase_admin.auth``."""

    def __init__(self, app=None, api_key: Optional[str] = None) -> None:
        self._app = app
        self.api_key = api_key if api_key is not None else settings.FIREBASE_API_KEY

    @property
    def app(self):
        if self._app is None:
            self._app = get_firebase_app()
        return self._app

    async def verify_id_token(self, token: str) -> Dict[str, Any]:
        """Return the decoded claims of a valid ID token."""
        try:
            return await asyncio.to_thread(auth.verify_id_token, token, app=self.app)
        except (auth.InvalidIdTokenError, ValueError) as exc:
            raise InvalidTokenError(str(exc)) from exc
        except FirebaseError as exc:
            raise IdentityError(f"token verification failed: {exc}") from exc

    async def get_user_by_email(self, email: str) -> Optional[IdentityUser]:
        try:
            record = await asyncio.to_thread(auth.get_user_by_email, email, app=self.app)
        except auth.UserNotFoundError:
            return None
        except FirebaseError as exc:
            raise IdentityError(f"user lookup failed: {exc}") from exc
        return _to_identity_user(record)

    async def create_user(self, email: str, password: str, display_name: Optional[str] = None) -> IdentityUser:
        try:
            record = await asyncio.to_thread(
                auth.create_user,
                email=email,
                password=password,
                display_name=display_name,
                disabled=False,
                app=self.app,
            )
        except auth.EmailAlreadyExistsError as exc:
            raise UserAlreadyExists(email) from exc
        except (FirebaseError, ValueError) as exc:
            raise IdentityError(f"user creation failed: {exc}") from exc
        logger.info("Created identity user uid=%s", record.uid)
        return _to_identity_user(record)

    async def delete_user(self, uid: str) -> None:
        try:
            await asyncio.to_thread(auth.delete_user, uid, app=self.app)
        except FirebaseError as exc:
            raise IdentityError(f"user deletion failed: {exc}") from exc
        logger.info("Deleted identity user uid=%s", uid)

    async def revoke_refresh_tokens(self, uid: str) -> None:
        try:
            await asyncio.to_thread(auth.revoke_refresh_tokens, uid, app=self.app)
        except FirebaseError as exc:
            raise IdentityError(f"token revocation failed: {exc}") from exc

    async def create_custom_token(self, uid: str) -> str:
        try:
            token = await asyncio.to_thread(auth.create_custom_token, uid, app=self.app)
        except (FirebaseError, ValueError) as exc:
            raise IdentityError(f"custom token creation failed: {exc}") from exc
        return token.decode("utf-8") if isinstance(token, bytes) else token

    async def sign_in_with_password(self, email: str, password: str) -> SignInResult:
        """Exchange email/password for an ID token via the Identity Toolkit API."""
        if not self.api_key:
            raise IdentityError("FIREBASE_API_KEY is not configured")

        payload = {"email": email, "password": password, "returnSecureToken": True}
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                resp = await client.post(
                    settings.FIREBASE_SIGN_IN_URL,
                    params={"key": self.api_key},
                    json=payload,
                )
        except httpx.HTTPError as exc:
            raise IdentityError(f"sign-in request failed: {exc}") from exc

        if resp.status_code == 400:
            raise InvalidCredentialsError(email)
        if resp.status_code != 200:
            raise IdentityError(f"sign-in returned status {resp.status_code}")

        data = resp.json()
        return SignInResult(
            id_token=data["idToken"],
            uid=data["localId"],
            refresh_token=data.get("refreshToken"),
        )

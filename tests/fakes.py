# tests/fakes.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Set

from app.services.document_store import InMemoryDocumentStore
from app.services.exceptions import (
    DocumentStoreError,
    IdentityError,
    InvalidCredentialsError,
    InvalidTokenError,
    UserAlreadyExists,
)
from app.services.identity import IdentityUser, SignInResult


@dataclass
class _Account:
    user: IdentityUser
    password: str


class FakeIdentityProvider:
    """
    In-memory stand-in for FirebaseIdentityProvider.

    - Tokens are opaque strings mapped to claims
    - Captures deletions and revocations for assertions
    """

    def __init__(self) -> None:
        self.tokens: Dict[str, Dict[str, Any]] = {}
        self.accounts: Dict[str, _Account] = {}
        self.deleted: list[str] = []
        self.revoked: list[str] = []
        self.fail_delete = False
        self._next_uid = 1

    def issue_token(self, uid: str, email: Optional[str] = None, name: Optional[str] = None) -> str:
        token = f"token-{uid}"
        claims: Dict[str, Any] = {"uid": uid}
        if email:
            claims["email"] = email
        if name:
            claims["name"] = name
        self.tokens[token] = claims
        return token

    async def verify_id_token(self, token: str) -> Dict[str, Any]:
        try:
            return dict(self.tokens[token])
        except KeyError:
            raise InvalidTokenError("unknown token") from None

    async def get_user_by_email(self, email: str) -> Optional[IdentityUser]:
        for account in self.accounts.values():
            if account.user.email == email:
                return account.user
        return None

    async def create_user(self, email: str, password: str, display_name: Optional[str] = None) -> IdentityUser:
        if await self.get_user_by_email(email) is not None:
            raise UserAlreadyExists(email)
        uid = f"fb-uid-{self._next_uid}"
        self._next_uid += 1
        user = IdentityUser(uid=uid, email=email, display_name=display_name)
        self.accounts[uid] = _Account(user=user, password=password)
        return user

    async def delete_user(self, uid: str) -> None:
        if self.fail_delete:
            raise IdentityError("delete failed")
        self.accounts.pop(uid, None)
        self.deleted.append(uid)

    async def revoke_refresh_tokens(self, uid: str) -> None:
        self.revoked.append(uid)

    async def create_custom_token(self, uid: str) -> str:
        return f"custom-{uid}"

    async def sign_in_with_password(self, email: str, password: str) -> SignInResult:
        for account in self.accounts.values():
            if account.user.email == email and account.password == password:
                token = self.issue_token(account.user.uid, email, account.user.display_name)
                return SignInResult(id_token=token, uid=account.user.uid)
        raise InvalidCredentialsError(email)


class FailingDocumentStore(InMemoryDocumentStore):
    """InMemoryDocumentStore whose selected operations raise DocumentStoreError.

    ``fail_trees_of`` limits ``delete_workspace_tree`` failures to the given
    workspace ids.
    """

    def __init__(self, fail_on: Optional[Set[str]] = None, fail_trees_of: Optional[Set[int]] = None) -> None:
        super().__init__()
        self.fail_on: Set[str] = set(fail_on or ())
        self.fail_trees_of: Set[int] = set(fail_trees_of or ())

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise DocumentStoreError(f"{operation} unavailable")

    async def create_task(self, workspace_id, task_id, data):
        self._maybe_fail("create_task")
        await super().create_task(workspace_id, task_id, data)

    async def get_task(self, workspace_id, task_id):
        self._maybe_fail("get_task")
        return await super().get_task(workspace_id, task_id)

    async def list_tasks(self, workspace_id, limit=None):
        self._maybe_fail("list_tasks")
        return await super().list_tasks(workspace_id, limit)

    async def delete_task(self, workspace_id, task_id):
        self._maybe_fail("delete_task")
        await super().delete_task(workspace_id, task_id)

    async def add_ai_history(self, workspace_id, entry):
        self._maybe_fail("add_ai_history")
        return await super().add_ai_history(workspace_id, entry)

    async def delete_workspace_tree(self, workspace_id, batch_size=500):
        self._maybe_fail("delete_workspace_tree")
        if workspace_id in self.fail_trees_of:
            raise DocumentStoreError(f"delete_workspace_tree unavailable for {workspace_id}")
        return await super().delete_workspace_tree(workspace_id, batch_size)

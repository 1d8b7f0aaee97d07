"""
Domain exceptions raised by the service layer.

Routers translate these into ``HTTPException`` responses.
"""


class WorkspaceNotFound(Exception):
    """The workspace does not exist in the relational store."""


class PermissionDenied(Exception):
    """The caller is a member but lacks the role the action needs."""


class WorkspaceAlreadyExists(Exception):
    """The user already has a private workspace."""


class MembershipError(Exception):
    """A membership change violates a rule, e.g. removing the owner."""


class AlreadyMember(MembershipError):
    """The user already belongs to the workspace."""


class InviteNotFound(Exception):
    """No invite matches the code."""


class InviteExpired(Exception):
    """The invite code is past its expiry."""


class UserNotFound(Exception):
    """No local user record matches the lookup."""


class TaskNotFound(Exception):
    """The task detail does not exist in the document store."""


class DocumentStoreError(Exception):
    """The document store failed to complete an operation."""


class DualWriteError(Exception):
    """One half of a two-store write failed.

    ``compensated`` tells whether the half that did succeed was rolled back.
    """

    def __init__(self, message: str, compensated: bool = False):
        super().__init__(message)
        self.compensated = compensated


class IdentityError(Exception):
    """The identity provider rejected or failed an operation."""


class InvalidTokenError(IdentityError):
    """An ID token could not be verified."""


class InvalidCredentialsError(IdentityError):
    """Email/password sign-in was rejected."""


class UserAlreadyExists(IdentityError):
    """An account with the given email is already registered."""

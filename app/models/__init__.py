"""Database and schema models for Workspace Hub."""
from app.models.database_models import (
    User,
    Workspace,
    WorkspaceMember,
    WorkspaceInvite,
    TaskStub,
    MemberRole,
)
from app.models.schemas import (
    WorkspaceCreateRequest,
    WorkspaceResponse,
    WorkspaceMemberResponse,
    TaskCreateRequest,
    TaskResponse,
    UserResponse,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "User",
    "Workspace",
    "WorkspaceMember",
    "WorkspaceInvite",
    "TaskStub",
    "MemberRole",
    # Pydantic schemas
    "WorkspaceCreateRequest",
    "WorkspaceResponse",
    "WorkspaceMemberResponse",
    "TaskCreateRequest",
    "TaskResponse",
    "UserResponse",
    "HealthCheckResponse",
]

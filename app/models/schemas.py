"""
Pydantic schemas for request/response validation.
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Any
from datetime import datetime
from enum import Enum


# Enums (matching database enums)
class MemberRoleSchema(str, Enum):
    """Workspace roles for API requests and responses."""

    ADMIN = "admin"
    MEMBER = "member"


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


# Auth / User Schemas
class RegisterRequest(BaseModel):
    """Schema for registering a new account."""

    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6)
    display_name: str = Field(..., min_length=1, max_length=255)


class RegisterResponse(BaseModel):
    """Returned after a successful registration."""

    message: str = "User created successfully and ready to sign in"
    uid: str
    custom_token: str


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    token: str
    uid: str


class UserResponse(BaseModel):
    """Public view of a user record."""

    firebase_uid: str
    email: str
    display_name: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserUpdateRequest(BaseModel):
    display_name: str = Field(..., min_length=1, max_length=255)


# Workspace Schemas
class WorkspaceCreateRequest(BaseModel):
    """Schema for creating a new workspace."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    is_public: bool = True


class WorkspaceUpdateRequest(BaseModel):
    """Schema for updating a workspace (owner only)."""

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    is_public: Optional[bool] = None


class WorkspaceResponse(BaseModel):
    """Schema for workspace responses."""

    id: int
    name: str
    description: Optional[str] = None
    is_public: bool
    owner_uid: str
    created_at: datetime
    members: int = 0

    model_config = ConfigDict(from_attributes=True)


class UserWorkspaceInfo(BaseModel):
    """A workspace the current user belongs to."""

    id: int
    name: str
    user_role: str
    is_owner: bool


class WorkspaceMemberResponse(BaseModel):
    """A member as listed inside a workspace."""

    user_id: str  # Firebase UID
    display_name: Optional[str] = None
    email: str
    role: str
    joined_at: datetime


class AddMemberRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    role: Optional[str] = MemberRoleSchema.MEMBER.value


class InviteCreateRequest(BaseModel):
    role: MemberRoleSchema = MemberRoleSchema.MEMBER
    expires_in_hours: Optional[int] = Field(None, ge=1, le=24 * 30)


class InviteResponse(BaseModel):
    id: int
    workspace_id: int
    invite_code: str
    role: str
    created_at: datetime
    expires_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class JoinWorkspaceRequest(BaseModel):
    invite_code: str = Field(..., min_length=1, max_length=64)


# Task Schemas
class AttachmentSchema(BaseModel):
    """Metadata of a file the client already uploaded."""

    name: str
    url: str
    content_type: Optional[str] = None
    size: Optional[int] = None


class TaskCreateRequest(BaseModel):
    """Schema for creating a task inside a workspace."""

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: str = Field("pending", min_length=1, max_length=50)
    priority: Optional[str] = Field(None, max_length=50)
    expiration_date: Optional[datetime] = None
    attachment: Optional[AttachmentSchema] = None


class TaskUpdateRequest(BaseModel):
    """Partial update; only the fields sent by the client are applied."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[str] = Field(None, min_length=1, max_length=50)
    priority: Optional[str] = Field(None, max_length=50)
    expiration_date: Optional[datetime] = None
    attachment: Optional[AttachmentSchema] = None


class TaskResponse(BaseModel):
    """Task detail as stored in the document store."""

    id: str
    title: str
    description: Optional[str] = None
    status: str
    priority: Optional[str] = None
    expiration_date: Optional[datetime] = None
    attachment: Optional[AttachmentSchema] = None
    workspace_id: int
    creator_uid: str
    last_updated_by_uid: Optional[str] = None
    created_at: Optional[datetime] = None
    last_updated_at: Optional[datetime] = None


# AI Schemas
class CodeReviewRequest(BaseModel):
    code: str = Field(..., min_length=1)
    language: Optional[str] = "Python"
    workspace_id: Optional[int] = None


class CodeReviewResponse(BaseModel):
    review: Optional[str] = None
    error: Optional[str] = None


class SummarizeRequest(BaseModel):
    text: str = Field(..., min_length=1)
    workspace_id: Optional[int] = None


class SummarizeResponse(BaseModel):
    summary: Optional[str] = None
    error: Optional[str] = None


class MindMapRequest(BaseModel):
    text: str = Field(..., min_length=1)
    workspace_id: Optional[int] = None


class MindMapResponse(BaseModel):
    mind_map_ideas: Optional[str] = None
    error: Optional[str] = None


class TaskAssistantRequest(BaseModel):
    user_message: str = Field(..., min_length=1)
    workspace_id: int


class TaskAssistantResponse(BaseModel):
    suggestions: List[str] = []
    error: Optional[str] = None


class ContextUser(BaseModel):
    name: Optional[str] = None
    role: str


class ContextTask(BaseModel):
    title: str
    status: Optional[str] = None
    priority: Optional[str] = None


class WorkspaceContext(BaseModel):
    """Workspace snapshot sent to the task assistant."""

    workspace_id: str
    group_name: str
    group_description: Optional[str] = None
    users: List[ContextUser] = []
    tasks: List[ContextTask] = []
    user_message: str


class TaskAssistantAIRequest(BaseModel):
    workspace_context: WorkspaceContext


class AIHistoryEntryResponse(BaseModel):
    """One logged call to the AI service."""

    id: str
    user_id: str
    workspace_id: Optional[int] = None
    ai_service_type: str
    timestamp: Optional[datetime] = None
    frontend_request_payload: Any = None
    request_to_ai: Any = None
    response_from_ai: Any = None
    ai_status_code: int = 0
    ai_error: Optional[str] = None


# Health Schemas
class HealthCheckResponse(BaseModel):
    """Schema for health check response."""

    status: str
    database: str
    document_store: str
    ai_service: str
    timestamp: datetime

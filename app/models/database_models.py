"""
SQLAlchemy ORM models for the Workspace Hub relational store.

Only ownership and membership live here; task content and AI history are
kept in the document store and referenced through ``TaskStub.document_id``.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Boolean,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from app.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Enums
class MemberRole(str, enum.Enum):
    """Roles a user can hold inside a workspace."""

    ADMIN = "admin"
    MEMBER = "member"


# Models
class User(Base):
    """User account (mirrors a Firebase Authentication user)."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(128), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    display_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    # Relationships
    memberships = relationship("WorkspaceMember", back_populates="user")


class Workspace(Base):
    """Collaboration space with an owner, members and tasks."""

    __tablename__ = "workspaces"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_public = Column(Boolean, default=True, nullable=False)
    owner_uid = Column(
        String(128), ForeignKey("users.firebase_uid", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    # Relationships
    members = relationship("WorkspaceMember", back_populates="workspace")


class WorkspaceMember(Base):
    """Membership of a user in a workspace."""

    __tablename__ = "workspace_members"

    workspace_id = Column(
        Integer, ForeignKey("workspaces.id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    role = Column(String(20), nullable=False, default=MemberRole.MEMBER.value)
    joined_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    # Relationships
    workspace = relationship("Workspace", back_populates="members")
    user = relationship("User", back_populates="memberships")


class WorkspaceInvite(Base):
    """Shareable invite code granting a role in a workspace."""

    __tablename__ = "workspace_invites"

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(
        Integer, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True
    )
    invite_code = Column(String(64), nullable=False, unique=True, index=True)
    role = Column(String(20), nullable=False, default=MemberRole.MEMBER.value)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)


class TaskStub(Base):
    """Relational half of a task: ownership and foreign keys only."""

    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    document_id = Column(String(64), nullable=False, unique=True, index=True)
    workspace_id = Column(
        Integer, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

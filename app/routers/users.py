"""
Account and user endpoints.

Route summary
-------------
POST   /api/auth/register   create identity account, user row and private workspace
POST   /api/auth/login      email/password sign-in, returns an ID token
POST   /api/auth/logout     revoke refresh tokens, clear session cookie

GET    /api/users/me        current user
PUT    /api/users/me        update display name
DELETE /api/users/me        delete account (owned workspaces included)
GET    /api/users           list users
GET    /api/users/{uid}     single user
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_current_user, get_current_user_uid
from app.dependencies.services import get_document_store, get_identity_provider
from app.models.database_models import User
from app.models.schemas import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    UserResponse,
    UserUpdateRequest,
)
from app.services import users as user_service
from app.services.document_store import DocumentStore
from app.services.exceptions import (
    DocumentStoreError,
    DualWriteError,
    IdentityError,
    InvalidCredentialsError,
    UserAlreadyExists,
)
from app.services.identity import FirebaseIdentityProvider

logger = logging.getLogger(__name__)

auth_router = APIRouter()
router = APIRouter()

SESSION_COOKIE = "session"


# ═══════════════════════════════════════════════════════════════════════════════
# AUTH
# ═══════════════════════════════════════════════════════════════════════════════

@auth_router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    identity: FirebaseIdentityProvider = Depends(get_identity_provider),
) -> RegisterResponse:
    """Create an account and its private workspace."""
    try:
        result = await user_service.register_user(
            db, identity, body.email, body.password, body.display_name
        )
    except UserAlreadyExists:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A user with this email already exists.",
        )
    except DualWriteError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        )
    except IdentityError as exc:
        logger.error("Registration failed for %s: %s", body.email, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create user account.",
        )

    return RegisterResponse(uid=result.uid, custom_token=result.custom_token)


@auth_router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    identity: FirebaseIdentityProvider = Depends(get_identity_provider),
) -> LoginResponse:
    try:
        result = await identity.sign_in_with_password(body.email, body.password)
    except InvalidCredentialsError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password.",
        )
    except IdentityError as exc:
        logger.error("Sign-in failed for %s: %s", body.email, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Sign-in service unavailable.",
        )

    return LoginResponse(token=result.id_token, uid=result.uid)


@auth_router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    uid: str = Depends(get_current_user_uid),
    identity: FirebaseIdentityProvider = Depends(get_identity_provider),
) -> MessageResponse:
    """Revoke the caller's refresh tokens and drop the session cookie."""
    try:
        await identity.revoke_refresh_tokens(uid)
    except IdentityError as exc:
        logger.error("Token revocation failed for %s: %s", uid, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to revoke session.",
        )

    response.delete_cookie(SESSION_COOKIE)
    logger.info("User %s logged out", uid)
    return MessageResponse(message="Logged out successfully")


# ═══════════════════════════════════════════════════════════════════════════════
# USERS
# ═══════════════════════════════════════════════════════════════════════════════

@router.get("/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(user)


@router.put("/me", response_model=UserResponse)
async def update_me(
    body: UserUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    user = await user_service.update_display_name(db, user, body.display_name)
    return UserResponse.model_validate(user)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
async def delete_me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: DocumentStore = Depends(get_document_store),
    identity: FirebaseIdentityProvider = Depends(get_identity_provider),
) -> None:
    """Delete the account, every workspace it owns and its memberships."""
    try:
        await user_service.delete_account(db, store, identity, user)
    except DocumentStoreError as exc:
        logger.error("Account deletion aborted for %s: %s", user.firebase_uid, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete workspace data; account was not deleted.",
        )
    except DualWriteError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        )


@router.get("", response_model=List[UserResponse])
async def list_users(
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[UserResponse]:
    users = await user_service.list_users(db)
    return [UserResponse.model_validate(u) for u in users]


@router.get("/{uid}", response_model=UserResponse)
async def get_user(
    uid: str,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    user = await user_service.get_user_by_uid(db, uid)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {uid} not found.",
        )
    return UserResponse.model_validate(user)

"""
Authentication endpoints: register, login, profile.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from food_ordering.core.exceptions import (
    APIError,
    AuthenticationError,
    ConflictError,
    ConstraintViolation,
    InternalError,
    NotFoundError,
    classify_integrity_error,
)
from food_ordering.core.guard import Identity
from food_ordering.core.security import (
    PasswordHasher,
    TokenService,
    get_current_identity,
    get_password_hasher,
    get_token_service,
)
from food_ordering.database import get_db
from food_ordering.models import User
from food_ordering.schemas import (
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    UserEnvelope,
    UserResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=UserEnvelope,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Register a new user",
)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
) -> UserEnvelope:
    try:
        existing = await db.execute(select(User.id).where(User.email == payload.email))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("Email already registered")

        user = User(
            email=payload.email,
            password_hash=await hasher.hash(payload.password),
            name=payload.name,
            role=payload.role,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)

    except APIError:
        raise
    except IntegrityError as e:
        await db.rollback()
        # Lost a race against a concurrent registration
        if classify_integrity_error(e) == ConstraintViolation.UNIQUE:
            raise ConflictError("Email already registered")
        logger.exception(f"Registration error: {e}")
        raise InternalError("Registration failed")
    except Exception as e:
        logger.exception(f"Registration error: {e}")
        raise InternalError("Registration failed")

    logger.info(f"User #{user.id} registered ({user.role.value})")
    return UserEnvelope(
        message="User registered successfully",
        user=UserResponse.model_validate(user),
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    summary="Exchange credentials for an access token",
)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
    hasher: PasswordHasher = Depends(get_password_hasher),
    tokens: TokenService = Depends(get_token_service),
) -> LoginResponse:
    try:
        result = await db.execute(select(User).where(User.email == payload.email))
        user = result.scalar_one_or_none()
    except Exception as e:
        logger.exception(f"Login error: {e}")
        raise InternalError("Login failed")

    # Same answer for unknown email and wrong password
    if not await hasher.verify(payload.password, user.password_hash if user else None):
        raise AuthenticationError("Invalid email or password")

    logger.info(f"User #{user.id} logged in")
    return LoginResponse(
        message="Login successful",
        token=tokens.issue(user),
        user=UserResponse.model_validate(user),
    )


@router.get(
    "/profile",
    response_model=UserEnvelope,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Current user's profile",
)
async def profile(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> UserEnvelope:
    try:
        user = await db.get(User, identity.user_id)
    except Exception as e:
        logger.exception(f"Profile error: {e}")
        raise InternalError("Failed to get profile")

    if user is None:
        raise NotFoundError("User not found")

    return UserEnvelope(
        message="Profile retrieved successfully",
        user=UserResponse.model_validate(user),
    )

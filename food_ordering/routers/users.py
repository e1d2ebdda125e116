"""
User management endpoints.

Listing is admin-only; reading, updating and deleting a user record is open
to that user and to admins. Only admins may change a role.
"""

import logging

from fastapi import APIRouter, Depends, Path
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from food_ordering.core.exceptions import (
    APIError,
    AuthorizationError,
    ConflictError,
    ConstraintViolation,
    InternalError,
    NotFoundError,
    ValidationError,
    classify_integrity_error,
)
from food_ordering.core.guard import Action, Identity, Resource, authorize, enforce
from food_ordering.core.security import get_current_identity, require
from food_ordering.database import get_db
from food_ordering.models import User
from food_ordering.schemas import (
    ErrorResponse,
    MessageResponse,
    UserEnvelope,
    UserListResponse,
    UserResponse,
    UserUpdate,
)
from food_ordering.services.partial_update import build_partial_update

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])

ERRORS = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


async def _load_user(db: AsyncSession, user_id: int, for_update: bool = False) -> User:
    query = select(User).where(User.id == user_id)
    if for_update:
        query = query.with_for_update()
    user = (await db.execute(query)).scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


@router.get("", response_model=UserListResponse, responses=ERRORS, summary="List all users")
async def list_users(
    identity: Identity = Depends(require(Action.USER_LIST)),
    db: AsyncSession = Depends(get_db),
) -> UserListResponse:
    try:
        result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
        users = result.scalars().all()
    except Exception as e:
        logger.exception(f"Get users error: {e}")
        raise InternalError("Failed to get users")

    return UserListResponse(
        message="Users retrieved successfully",
        users=[UserResponse.model_validate(u) for u in users],
    )


@router.get("/{user_id}", response_model=UserEnvelope, responses=ERRORS)
async def get_user(
    user_id: int = Path(..., ge=1),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> UserEnvelope:
    # Ownership needs only the id and is checked before the lookup
    enforce(identity, Action.USER_READ, Resource.user(user_id))

    try:
        user = await _load_user(db, user_id)
    except APIError:
        raise
    except Exception as e:
        logger.exception(f"Get user error: {e}")
        raise InternalError("Failed to get user")

    return UserEnvelope(
        message="User retrieved successfully",
        user=UserResponse.model_validate(user),
    )


@router.put("/{user_id}", response_model=UserEnvelope, responses={**ERRORS, 409: {"model": ErrorResponse}})
async def update_user(
    payload: UserUpdate,
    user_id: int = Path(..., ge=1),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> UserEnvelope:
    fields = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if not fields:
        raise ValidationError("At least one field must be provided")

    enforce(identity, Action.USER_UPDATE, Resource.user(user_id))

    try:
        await _load_user(db, user_id, for_update=True)

        if "role" in fields and not authorize(identity, Action.USER_CHANGE_ROLE):
            logger.warning(f"User #{identity.user_id} tried to change role of user #{user_id}")
            raise AuthorizationError("Only admins can update roles")

        update = build_partial_update("users", user_id, fields)
        row = (await db.execute(update.statement)).mappings().one_or_none()
        if row is None:
            raise NotFoundError("User not found")
        await db.commit()

    except APIError:
        await db.rollback()
        raise
    except IntegrityError as e:
        await db.rollback()
        if classify_integrity_error(e) == ConstraintViolation.UNIQUE:
            raise ConflictError("Email already exists")
        logger.exception(f"Update user error: {e}")
        raise InternalError("Failed to update user")
    except Exception as e:
        await db.rollback()
        logger.exception(f"Update user error: {e}")
        raise InternalError("Failed to update user")

    logger.info(f"User #{user_id} updated by #{identity.user_id}: {list(update.columns)}")
    return UserEnvelope(
        message="User updated successfully",
        user=UserResponse.model_validate(dict(row)),
    )


@router.delete("/{user_id}", response_model=MessageResponse, responses={**ERRORS, 409: {"model": ErrorResponse}})
async def delete_user(
    user_id: int = Path(..., ge=1),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    enforce(identity, Action.USER_DELETE, Resource.user(user_id))

    try:
        await _load_user(db, user_id, for_update=True)

        await db.execute(delete(User).where(User.id == user_id))
        await db.commit()

    except APIError:
        await db.rollback()
        raise
    except IntegrityError as e:
        await db.rollback()
        if classify_integrity_error(e) == ConstraintViolation.FOREIGN_KEY:
            raise ConflictError("Cannot delete user with related records")
        logger.exception(f"Delete user error: {e}")
        raise InternalError("Failed to delete user")
    except Exception as e:
        await db.rollback()
        logger.exception(f"Delete user error: {e}")
        raise InternalError("Failed to delete user")

    logger.info(f"User #{user_id} deleted by #{identity.user_id}")
    return MessageResponse(message="User deleted successfully")

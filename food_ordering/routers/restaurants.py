"""
Restaurant and menu endpoints.

Browsing is public. Creating a restaurant requires the admin or
restaurant_owner role; updating, deleting and adding menu items requires
owning the restaurant (or being an admin).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from food_ordering.core.exceptions import (
    APIError,
    ConflictError,
    ConstraintViolation,
    InternalError,
    NotFoundError,
    ValidationError,
    classify_integrity_error,
)
from food_ordering.core.guard import Action, Identity, Resource, enforce
from food_ordering.core.security import get_current_identity, require
from food_ordering.database import get_db
from food_ordering.models import MenuItem, Restaurant
from food_ordering.schemas import (
    ErrorResponse,
    MenuItemCreate,
    MenuItemEnvelope,
    MenuItemResponse,
    MenuResponse,
    MessageResponse,
    Pagination,
    RestaurantCreate,
    RestaurantEnvelope,
    RestaurantListResponse,
    RestaurantResponse,
    RestaurantUpdate,
)
from food_ordering.services.partial_update import build_partial_update

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/restaurants", tags=["Restaurants"])

ERRORS = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


async def _load_restaurant(
    db: AsyncSession,
    restaurant_id: int,
    for_update: bool = False,
) -> Restaurant:
    query = select(Restaurant).where(Restaurant.id == restaurant_id)
    if for_update:
        query = query.with_for_update()
    restaurant = (await db.execute(query)).scalar_one_or_none()
    if restaurant is None:
        raise NotFoundError("Restaurant not found")
    return restaurant


# =============================================================================
# PUBLIC ENDPOINTS
# =============================================================================

@router.get("", response_model=RestaurantListResponse, summary="List restaurants")
async def list_restaurants(
    category: Optional[str] = Query(None, max_length=50, description="Cuisine to filter by"),
    search: Optional[str] = Query(None, max_length=100, description="Substring of the name"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> RestaurantListResponse:
    """Retrieve a filtered, paginated list of restaurants."""
    query = select(Restaurant)
    count_query = select(func.count(Restaurant.id))

    if category:
        query = query.where(Restaurant.cuisine == category)
        count_query = count_query.where(Restaurant.cuisine == category)
    if search:
        # % and _ in the search text match literally
        name_matches = Restaurant.name.icontains(search, autoescape=True)
        query = query.where(name_matches)
        count_query = count_query.where(name_matches)

    try:
        total = (await db.execute(count_query)).scalar() or 0
        result = await db.execute(
            query.order_by(Restaurant.id).offset(offset).limit(limit)
        )
        restaurants = result.scalars().all()
    except Exception as e:
        logger.exception(f"Get restaurants error: {e}")
        raise InternalError("Failed to get restaurants")

    return RestaurantListResponse(
        message="Restaurants retrieved successfully",
        restaurants=[RestaurantResponse.model_validate(r) for r in restaurants],
        pagination=Pagination(limit=limit, offset=offset, total=total),
    )


@router.get("/{restaurant_id}", response_model=RestaurantEnvelope, responses=ERRORS)
async def get_restaurant(
    restaurant_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_db),
) -> RestaurantEnvelope:
    try:
        restaurant = await _load_restaurant(db, restaurant_id)
    except APIError:
        raise
    except Exception as e:
        logger.exception(f"Get restaurant error: {e}")
        raise InternalError("Failed to get restaurant")

    return RestaurantEnvelope(
        message="Restaurant retrieved successfully",
        restaurant=RestaurantResponse.model_validate(restaurant),
    )


@router.get("/{restaurant_id}/menu", response_model=MenuResponse, responses=ERRORS)
async def get_menu(
    restaurant_id: int = Path(..., ge=1),
    category: Optional[str] = Query(None, max_length=50),
    db: AsyncSession = Depends(get_db),
) -> MenuResponse:
    """Available menu items of a restaurant."""
    try:
        await _load_restaurant(db, restaurant_id)

        query = select(MenuItem).where(
            MenuItem.restaurant_id == restaurant_id,
            MenuItem.available.is_(True),
        )
        if category:
            query = query.where(MenuItem.category == category)
        result = await db.execute(query.order_by(MenuItem.id))
        items = result.scalars().all()
    except APIError:
        raise
    except Exception as e:
        logger.exception(f"Get menu error: {e}")
        raise InternalError("Failed to get menu")

    return MenuResponse(
        message="Menu retrieved successfully",
        menu_items=[MenuItemResponse.model_validate(i) for i in items],
    )


# =============================================================================
# OWNER / ADMIN ENDPOINTS
# =============================================================================

@router.post(
    "",
    response_model=RestaurantEnvelope,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
    summary="Create a restaurant",
)
async def create_restaurant(
    payload: RestaurantCreate,
    identity: Identity = Depends(require(Action.RESTAURANT_CREATE)),
    db: AsyncSession = Depends(get_db),
) -> RestaurantEnvelope:
    """
    Create a restaurant.

    Restaurant owners always own what they create; admins may assign any
    existing user as owner (defaulting to themselves).
    """
    owner_id = identity.user_id
    if identity.is_admin and payload.owner_id is not None:
        owner_id = payload.owner_id

    try:
        restaurant = Restaurant(
            name=payload.name,
            cuisine=payload.cuisine,
            rating=payload.rating,
            owner_id=owner_id,
        )
        db.add(restaurant)
        await db.commit()
        await db.refresh(restaurant)

    except IntegrityError as e:
        await db.rollback()
        if classify_integrity_error(e) == ConstraintViolation.FOREIGN_KEY:
            raise ValidationError("Invalid owner")
        logger.exception(f"Create restaurant error: {e}")
        raise InternalError("Failed to create restaurant")
    except Exception as e:
        await db.rollback()
        logger.exception(f"Create restaurant error: {e}")
        raise InternalError("Failed to create restaurant")

    logger.info(f"Restaurant #{restaurant.id} created by #{identity.user_id} (owner #{owner_id})")
    return RestaurantEnvelope(
        message="Restaurant created successfully",
        restaurant=RestaurantResponse.model_validate(restaurant),
    )


@router.put("/{restaurant_id}", response_model=RestaurantEnvelope, responses=ERRORS)
async def update_restaurant(
    payload: RestaurantUpdate,
    restaurant_id: int = Path(..., ge=1),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> RestaurantEnvelope:
    """Apply only the supplied fields; everything else is left untouched."""
    fields = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if not fields:
        raise ValidationError("At least one field must be provided")

    try:
        restaurant = await _load_restaurant(db, restaurant_id, for_update=True)
        enforce(identity, Action.RESTAURANT_UPDATE, Resource.restaurant(restaurant.owner_id))

        update = build_partial_update("restaurants", restaurant_id, fields)
        row = (await db.execute(update.statement)).mappings().one_or_none()
        if row is None:
            raise NotFoundError("Restaurant not found")
        await db.commit()

    except APIError:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.exception(f"Update restaurant error: {e}")
        raise InternalError("Failed to update restaurant")

    logger.info(f"Restaurant #{restaurant_id} updated by #{identity.user_id}: {list(update.columns)}")
    return RestaurantEnvelope(
        message="Restaurant updated successfully",
        restaurant=RestaurantResponse.model_validate(dict(row)),
    )


@router.delete("/{restaurant_id}", response_model=MessageResponse, responses=ERRORS)
async def delete_restaurant(
    restaurant_id: int = Path(..., ge=1),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        restaurant = await _load_restaurant(db, restaurant_id, for_update=True)
        enforce(identity, Action.RESTAURANT_DELETE, Resource.restaurant(restaurant.owner_id))

        await db.execute(delete(Restaurant).where(Restaurant.id == restaurant_id))
        await db.commit()

    except APIError:
        await db.rollback()
        raise
    except IntegrityError as e:
        await db.rollback()
        if classify_integrity_error(e) == ConstraintViolation.FOREIGN_KEY:
            raise ConflictError("Cannot delete restaurant with related records")
        logger.exception(f"Delete restaurant error: {e}")
        raise InternalError("Failed to delete restaurant")
    except Exception as e:
        await db.rollback()
        logger.exception(f"Delete restaurant error: {e}")
        raise InternalError("Failed to delete restaurant")

    logger.info(f"Restaurant #{restaurant_id} deleted by #{identity.user_id}")
    return MessageResponse(message="Restaurant deleted successfully")


@router.post(
    "/{restaurant_id}/menu",
    response_model=MenuItemEnvelope,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
    summary="Add a menu item",
)
async def create_menu_item(
    payload: MenuItemCreate,
    restaurant_id: int = Path(..., ge=1),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> MenuItemEnvelope:
    try:
        restaurant = await _load_restaurant(db, restaurant_id, for_update=True)
        enforce(identity, Action.MENU_CREATE, Resource.restaurant(restaurant.owner_id))

        item = MenuItem(restaurant_id=restaurant_id, **payload.model_dump())
        db.add(item)
        await db.commit()
        await db.refresh(item)

    except APIError:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.exception(f"Create menu item error: {e}")
        raise InternalError("Failed to create menu item")

    logger.info(f"Menu item #{item.id} added to restaurant #{restaurant_id}")
    return MenuItemEnvelope(
        message="Menu item created successfully",
        menu_item=MenuItemResponse.model_validate(item),
    )

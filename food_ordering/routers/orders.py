"""
Order endpoints.

Status workflow:
    pending -> confirmed -> preparing -> ready -> delivered
    pending | confirmed -> cancelled

delivered and cancelled are terminal. Restaurant owners move orders of their
own restaurants along the workflow; admins may set any status. Customers may
cancel their own orders while they are pending or confirmed and still inside
the cancellation window.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from food_ordering.core.config import Settings
from food_ordering.core.exceptions import (
    APIError,
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from food_ordering.core.guard import Action, Identity, Resource, enforce
from food_ordering.core.security import get_current_identity, require
from food_ordering.database import get_db
from food_ordering.models import MenuItem, Order, OrderStatus, Restaurant, Role
from food_ordering.schemas import (
    ErrorResponse,
    OrderCreate,
    OrderEnvelope,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    Pagination,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"])

ERRORS = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY}),
    OrderStatus.READY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def within_cancellation_window(
    created_at: Optional[datetime],
    window_minutes: int,
    now: Optional[datetime] = None,
) -> bool:
    """
    Whether an order created at ``created_at`` may still be cancelled.

    A window of 0 disables the time limit. Naive timestamps (SQLite) are
    taken as UTC.
    """
    if window_minutes == 0 or created_at is None:
        return True
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return now - created_at <= timedelta(minutes=window_minutes)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def _load_order(db: AsyncSession, order_id: int, for_update: bool = False) -> Order:
    query = select(Order).where(Order.id == order_id)
    if for_update:
        query = query.with_for_update()
    order = (await db.execute(query)).scalar_one_or_none()
    if order is None:
        raise NotFoundError(f"Order #{order_id} not found")
    return order


async def _restaurant_owner_id(db: AsyncSession, restaurant_id: int) -> Optional[int]:
    result = await db.execute(select(Restaurant.owner_id).where(Restaurant.id == restaurant_id))
    return result.scalar_one_or_none()


# =============================================================================
# LISTING
# =============================================================================

@router.get("", response_model=OrderListResponse, responses=ERRORS, summary="List my orders")
async def list_my_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> OrderListResponse:
    """Orders placed by the caller, newest first."""
    query = select(Order).where(Order.user_id == identity.user_id)
    count_query = select(func.count(Order.id)).where(Order.user_id == identity.user_id)

    if status_filter:
        query = query.where(Order.status == status_filter)
        count_query = count_query.where(Order.status == status_filter)

    try:
        total = (await db.execute(count_query)).scalar() or 0
        result = await db.execute(
            query.order_by(Order.created_at.desc(), Order.id.desc()).offset(offset).limit(limit)
        )
        orders = result.scalars().all()
    except Exception as e:
        logger.exception(f"Get orders error: {e}")
        raise InternalError("Failed to get orders")

    return OrderListResponse(
        message="Orders retrieved successfully",
        orders=[OrderResponse.model_validate(o) for o in orders],
        pagination=Pagination(limit=limit, offset=offset, total=total),
    )


@router.get("/admin/all", response_model=OrderListResponse, responses=ERRORS, summary="List all orders")
async def list_all_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    restaurant_id: Optional[int] = Query(None, ge=1),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(require(Action.ORDER_LIST_ALL)),
    db: AsyncSession = Depends(get_db),
) -> OrderListResponse:
    """
    All orders for admins; restaurant owners only see orders placed with
    restaurants they own.
    """
    query = select(Order)
    count_query = select(func.count(Order.id))

    if identity.role == Role.RESTAURANT_OWNER:
        owned = select(Restaurant.id).where(Restaurant.owner_id == identity.user_id)
        query = query.where(Order.restaurant_id.in_(owned))
        count_query = count_query.where(Order.restaurant_id.in_(owned))
    if status_filter:
        query = query.where(Order.status == status_filter)
        count_query = count_query.where(Order.status == status_filter)
    if restaurant_id:
        query = query.where(Order.restaurant_id == restaurant_id)
        count_query = count_query.where(Order.restaurant_id == restaurant_id)

    try:
        total = (await db.execute(count_query)).scalar() or 0
        result = await db.execute(
            query.order_by(Order.created_at.desc(), Order.id.desc()).offset(offset).limit(limit)
        )
        orders = result.scalars().all()
    except Exception as e:
        logger.exception(f"Get all orders error: {e}")
        raise InternalError("Failed to get orders")

    return OrderListResponse(
        message="Orders retrieved successfully",
        orders=[OrderResponse.model_validate(o) for o in orders],
        pagination=Pagination(limit=limit, offset=offset, total=total),
    )


@router.get("/{order_id}", response_model=OrderEnvelope, responses=ERRORS)
async def get_order(
    order_id: int = Path(..., ge=1),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> OrderEnvelope:
    """Get a specific order by ID."""
    try:
        order = await _load_order(db, order_id)
        owner_id = await _restaurant_owner_id(db, order.restaurant_id)
    except APIError:
        raise
    except Exception as e:
        logger.exception(f"Get order error: {e}")
        raise InternalError("Failed to get order")

    enforce(identity, Action.ORDER_READ, Resource.order(order.user_id, owner_id))

    return OrderEnvelope(
        message="Order retrieved successfully",
        order=OrderResponse.model_validate(order),
    )


# =============================================================================
# MUTATIONS
# =============================================================================

@router.post(
    "",
    response_model=OrderEnvelope,
    status_code=status.HTTP_201_CREATED,
    responses=ERRORS,
    summary="Place an order",
)
async def create_order(
    payload: OrderCreate,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> OrderEnvelope:
    """
    Place an order with one restaurant.

    Prices come from the restaurant's menu, never from the client. Every
    item must belong to the restaurant and be available.
    """
    logger.info(f"Creating order for user #{identity.user_id} at restaurant #{payload.restaurant_id}")

    try:
        if await _restaurant_owner_id(db, payload.restaurant_id) is None:
            raise NotFoundError("Restaurant not found")

        requested_ids = {line.menu_item_id for line in payload.items}
        result = await db.execute(
            select(MenuItem).where(
                MenuItem.id.in_(sorted(requested_ids)),
                MenuItem.restaurant_id == payload.restaurant_id,
                MenuItem.available.is_(True),
            )
        )
        menu = {item.id: item for item in result.scalars().all()}

        lines = []
        for line in payload.items:
            item = menu.get(line.menu_item_id)
            if item is None:
                raise ValidationError(f"Invalid menu item {line.menu_item_id}")
            lines.append({
                "menu_item_id": item.id,
                "name": item.name,
                "quantity": line.quantity,
                "unit_price": item.price,
            })

        total = round(sum(entry["quantity"] * entry["unit_price"] for entry in lines), 2)

        new_order = Order(
            user_id=identity.user_id,
            restaurant_id=payload.restaurant_id,
            items=json.dumps(lines),
            total_amount=total,
            delivery_address=payload.delivery_address,
            payment_method=payload.payment_method,
            status=OrderStatus.PENDING,
        )
        db.add(new_order)
        await db.commit()
        await db.refresh(new_order)

    except APIError:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error creating order: {e}")
        raise InternalError("Failed to create order")

    logger.info(f"Order #{new_order.id} created successfully (${new_order.total_amount:.2f})")
    return OrderEnvelope(
        message="Order created successfully",
        order=OrderResponse.model_validate(new_order),
    )


@router.put("/{order_id}/status", response_model=OrderEnvelope, responses=ERRORS)
async def update_order_status(
    payload: OrderStatusUpdate,
    order_id: int = Path(..., ge=1),
    identity: Identity = Depends(require(Action.ORDER_SET_STATUS)),
    db: AsyncSession = Depends(get_db),
) -> OrderEnvelope:
    try:
        order = await _load_order(db, order_id, for_update=True)
        owner_id = await _restaurant_owner_id(db, order.restaurant_id)
        enforce(identity, Action.ORDER_SET_STATUS, Resource.order(order.user_id, owner_id))

        previous = order.status
        if not identity.is_admin and not can_transition(previous, payload.status):
            raise ConflictError(
                f"Invalid status transition from {previous.value} to {payload.status.value}"
            )

        order.status = payload.status
        await db.commit()
        await db.refresh(order)

    except APIError:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.exception(f"Update order status error: {e}")
        raise InternalError("Failed to update order status")

    logger.info(
        f"Order #{order_id} status {previous.value} -> {order.status.value} "
        f"by #{identity.user_id}"
    )
    return OrderEnvelope(
        message="Order status updated successfully",
        order=OrderResponse.model_validate(order),
    )


@router.put("/{order_id}/cancel", response_model=OrderEnvelope, responses=ERRORS)
async def cancel_order(
    order_id: int = Path(..., ge=1),
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> OrderEnvelope:
    try:
        order = await _load_order(db, order_id, for_update=True)
        enforce(identity, Action.ORDER_CANCEL, Resource.order(order.user_id, None))

        if order.status not in CANCELLABLE:
            raise ConflictError(f"Order can no longer be cancelled ({order.status.value})")
        if not identity.is_admin and not within_cancellation_window(
            order.created_at, settings.order_cancellation_window_minutes
        ):
            raise ConflictError("Cancellation window has expired")

        order.status = OrderStatus.CANCELLED
        await db.commit()
        await db.refresh(order)

    except APIError:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.exception(f"Cancel order error: {e}")
        raise InternalError("Failed to cancel order")

    logger.info(f"Order #{order_id} cancelled by #{identity.user_id}")
    return OrderEnvelope(
        message="Order cancelled successfully",
        order=OrderResponse.model_validate(order),
    )

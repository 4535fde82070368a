# ===============================================================
# handlers/orders.py
# ===============================================================
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from helpers import fails_with, ok
from models import User
from schemas import CreateOrderRequest, UpdateOrderRequest
from services import orders
from utils.security import get_current_user

router = APIRouter(prefix="/api/orders", tags=["orders"])


@router.get("")
async def list_orders(
    status: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    with fails_with("Failed to fetch orders"):
        data = await orders.list_orders(session, user, status, search, limit, offset)
    return ok(data)


@router.post("")
async def create_order(
    payload: CreateOrderRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    with fails_with("Failed to create order"):
        data = await orders.create_order(session, user, payload)
    return ok(data, message="Order created successfully")


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    with fails_with("Failed to fetch order"):
        data = await orders.get_order(session, user, order_id)
    return ok(data)


@router.api_route("/{order_id}", methods=["PUT", "PATCH"])
async def update_order(
    order_id: str,
    payload: UpdateOrderRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    with fails_with("Failed to update order"):
        data = await orders.update_order(session, user, order_id, payload)
    return ok(data, message="Order updated successfully")


def register_handlers(app: FastAPI) -> None:
    app.include_router(router)

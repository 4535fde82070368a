# ===============================================================
# handlers/preorders.py
# ===============================================================
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from helpers import fails_with, ok
from models import User
from schemas import PreorderPurchaseRequest
from services import preorders
from utils.security import get_current_user

router = APIRouter(prefix="/api/preorders", tags=["preorders"])


@router.get("")
async def list_preorders(session: AsyncSession = Depends(get_session)):
    with fails_with("Internal server error"):
        data = await preorders.list_active_preorders(session)
    return ok(data)


@router.get("/{preorder_id}")
async def get_preorder(preorder_id: str, session: AsyncSession = Depends(get_session)):
    with fails_with("Internal server error"):
        preorder, book = await preorders.get_active_preorder(session, preorder_id)
    return ok(preorders.serialize_preorder(preorder, book))


@router.post("/{preorder_id}")
async def purchase_preorder(
    preorder_id: str,
    payload: Optional[PreorderPurchaseRequest] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    quantity = payload.quantity if payload else 1
    with fails_with("Internal server error"):
        data = await preorders.purchase_preorder(session, preorder_id, user, quantity)
    return ok(data)


def register_handlers(app: FastAPI) -> None:
    app.include_router(router)

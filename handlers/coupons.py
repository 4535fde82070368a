# ===============================================================
# handlers/coupons.py
# ===============================================================
from fastapi import APIRouter, Depends, FastAPI
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from helpers import fails_with, ok
from models import User
from schemas import ValidateCouponRequest
from services import coupons
from utils.security import get_current_user

router = APIRouter(prefix="/api/coupons", tags=["coupons"])


@router.post("/validate")
async def validate_coupon(
    payload: ValidateCouponRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    with fails_with("Failed to validate coupon"):
        quote = await coupons.validate_coupon(session, user.id, payload.code, payload.order_amount, payload.items)
    body = quote.as_dict()
    body.pop("success")
    return ok(**body)


def register_handlers(app: FastAPI) -> None:
    app.include_router(router)

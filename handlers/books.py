# ===============================================================
# handlers/books.py
# ===============================================================
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from helpers import fails_with, ok
from services import catalog

router = APIRouter(prefix="/api/books", tags=["books"])


@router.get("")
async def list_books(
    category: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    session: AsyncSession = Depends(get_session),
):
    with fails_with("Failed to fetch books"):
        data = await catalog.list_books(session, category, search, page, limit, sort_by, sort_order)
    return ok(data)


@router.get("/{book_id}")
async def get_book(book_id: str, session: AsyncSession = Depends(get_session)):
    with fails_with("Failed to fetch book"):
        data = await catalog.get_book(session, book_id)
    return ok(data)


def register_handlers(app: FastAPI) -> None:
    app.include_router(router)

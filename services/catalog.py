# ========================================================
# services/catalog.py
# Public book catalogue
# ========================================================
from typing import Optional

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from helpers import StorefrontError, parse_uuid
from models import Book

SORT_COLUMNS = {
    "createdAt": Book.created_at,
    "updatedAt": Book.updated_at,
    "title": Book.title,
    "author": Book.author,
    "price": Book.price,
    "category": Book.category,
}
MAX_PAGE_SIZE = 100


def serialize_book(book: Book) -> dict:
    return {
        "id": book.id,
        "title": book.title,
        "author": book.author,
        "authorId": book.author_id,
        "description": book.description,
        "excerpt": book.excerpt,
        "price": book.price,
        "coverImage": book.cover_image,
        "status": book.status,
        "category": book.category,
        "tags": book.tags or [],
        "stock": book.stock,
        "isAvailable": book.is_available,
        "isbn": book.isbn,
        "language": book.language,
        "salesCount": book.sales_count,
        "publishedAt": book.published_at,
        "createdAt": book.created_at,
    }


async def list_books(
    session: AsyncSession,
    category: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
) -> dict:
    """Published, available books with search/category filters and page pagination."""
    page = max(page, 1)
    limit = max(1, min(limit, MAX_PAGE_SIZE))

    conditions = [Book.status == "published", Book.is_available.is_(True)]
    if category and category != "All Books":
        conditions.append(Book.category == category)
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(Book.title.ilike(pattern), Book.description.ilike(pattern), Book.author.ilike(pattern)))

    column = SORT_COLUMNS.get(sort_by, Book.created_at)
    ordering = column.asc() if sort_order == "asc" else column.desc()

    total = await session.scalar(select(func.count()).select_from(Book).where(*conditions))
    result = await session.execute(
        select(Book).where(*conditions).order_by(ordering).limit(limit).offset((page - 1) * limit)
    )
    books = [serialize_book(b) for b in result.scalars().all()]

    pages = (total + limit - 1) // limit if total else 0
    return {
        "books": books,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": pages,
            "hasNext": page < pages,
            "hasPrev": page > 1,
        },
    }


async def get_book(session: AsyncSession, book_id) -> dict:
    book = await session.get(Book, parse_uuid(book_id, "Book not found"))
    if book is None or book.status != "published":
        raise StorefrontError(404, "Book not found")
    return serialize_book(book)

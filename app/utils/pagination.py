"""Pagination utilities for list endpoints."""

from sqlalchemy.orm import Query as SQLAlchemyQuery

# Pagination limits
DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


def page_offset(page: int, per_page: int) -> int:
    return (page - 1) * per_page


def total_pages(total: int, per_page: int) -> int:
    """Number of pages needed for `total` items (0 when empty)."""
    return (total + per_page - 1) // per_page if per_page > 0 else 0


def paginate_query(query: SQLAlchemyQuery, page: int, per_page: int) -> list:
    """Apply offset/limit for a 1-indexed page to a SQLAlchemy query."""
    return query.offset(page_offset(page, per_page)).limit(per_page).all()

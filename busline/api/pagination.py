from typing import Any, Callable

from sqlalchemy.orm import Query


def paginate(q: Query, page: int, page_size: int, serialize: Callable[[Any], Any]) -> dict:
    """Slice a query into the {items, total, page, page_size, pages} envelope."""
    total = q.count()
    rows = q.offset((page - 1) * page_size).limit(page_size).all()
    return {
        "items": [serialize(r) for r in rows],
        "total": total,
        "page": page,
        "page_size": page_size,
        "pages": (total + page_size - 1) // page_size if total else 1,
    }

# Overview: Offset pagination shared by tenant-scoped listings.

from __future__ import annotations

from flask import current_app


def paginate(query, page: int | None, page_size: int | None) -> dict:
    """
    Run ``query`` for one page.

    page_size falls back to DEFAULT_PAGE_SIZE and is capped at MAX_PAGE_SIZE.
    Items are model instances; routes serialize them.
    """
    max_size = current_app.config.get("MAX_PAGE_SIZE", 100)
    page_size = min(page_size or current_app.config.get("DEFAULT_PAGE_SIZE", 20), max_size)
    page = max(page or 1, 1)

    total = query.count()
    total_pages = (total + page_size - 1) // page_size if total > 0 else 1
    rows = query.offset((page - 1) * page_size).limit(page_size).all()

    return {
        "items": rows,
        "count": len(rows),
        "pagination": {
            "page": page,
            "page_size": page_size,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }

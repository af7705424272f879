import math

from sqlalchemy.orm import Query

from app.core.config import settings
from app.core.errors import ValidationError


def normalize_page(page: int | None, limit: int | None) -> tuple[int, int]:
    page = 1 if page is None else int(page)
    limit = settings.DEFAULT_PAGE_SIZE if limit is None else int(limit)
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1 or limit > settings.MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {settings.MAX_PAGE_SIZE}")
    return page, limit


def paginate(query: Query, page: int | None, limit: int | None) -> dict:
    """Offset pagination. `total` comes from a second COUNT query over the same filter,
    so under concurrent writes it can disagree with the returned page."""
    page, limit = normalize_page(page, limit)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit) if total else 0,
    }

from flask import request, current_app

from utils.errors import ValidationError


def page_args():
    """Reads ?page=&limit= from the query string, clamped to MAX_PAGE_SIZE."""
    default_limit = current_app.config.get("DEFAULT_PAGE_SIZE", 10)
    max_limit = current_app.config.get("MAX_PAGE_SIZE", 100)
    try:
        page = int(request.args.get("page", 1))
        limit = int(request.args.get("limit", default_limit))
    except (TypeError, ValueError):
        raise ValidationError("page and limit must be integers")
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    return page, min(limit, max_limit)


def pagination_meta(page: int, limit: int, total: int, total_key: str):
    return {
        "currentPage": page,
        "totalPages": (total + limit - 1) // limit,
        total_key: total,
        "limit": limit,
    }

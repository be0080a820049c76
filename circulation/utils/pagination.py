import math

SORT_ORDERS = ("ASC", "DESC")


def _to_int(x, default: int) -> int:
    try:
        return int(x)
    except (TypeError, ValueError):
        return default


def normalize_page(page, limit, default_limit: int = 10, max_limit: int = 100):
    page = max(1, _to_int(page, 1))
    limit = min(max_limit, max(1, _to_int(limit, default_limit)))
    return page, limit


def normalize_sort(sort_by, sort_order, allowed, default_field, default_order="DESC"):
    field = sort_by if sort_by in allowed else default_field
    order = str(sort_order or "").upper()
    if order not in SORT_ORDERS:
        order = default_order
    return field, order


def paginate(query, page: int, limit: int):
    """Returns (rows, pagination dict) for an already ordered query."""
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }

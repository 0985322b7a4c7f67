from typing import Callable, Optional, Sequence


def paginate(
    *,
    items: Sequence,
    page: int = 1,
    limit: int = 10,
    serialize: Optional[Callable] = None,
):
    if page < 1:
        page = 1

    if limit < 1:
        limit = 10

    offset = (page - 1) * limit
    total = len(items)

    results = list(items[offset:offset + limit])
    if serialize:
        results = [serialize(item) for item in results]

    return {
        "total_items": total,
        "total_pages": (total + limit - 1) // limit,
        "current_page": page,
        "limit": limit,
        "results": results,
    }

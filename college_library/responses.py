"""
JSON envelopes shared by every route.

    {"success": true, "message": "...", "data": ...}
    {"success": true, "message": "...", "data": [...], "meta": {...}}
"""

import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Query

from college_library.config import settings


@dataclass
class Page:
    items: List[Any]
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def first_item(self) -> Optional[int]:
        if not self.items:
            return None
        return (self.page - 1) * self.per_page + 1

    @property
    def last_item(self) -> Optional[int]:
        if not self.items:
            return None
        return (self.page - 1) * self.per_page + len(self.items)

    def meta(self) -> Dict[str, Any]:
        return {
            "current_page": self.page,
            "last_page": self.last_page,
            "per_page": self.per_page,
            "total": self.total,
            "from": self.first_item,
            "to": self.last_item,
        }


def clamp_per_page(per_page: Optional[int]) -> int:
    if not per_page:
        return settings.PER_PAGE
    return max(1, min(per_page, settings.MAX_PER_PAGE))


def paginate(query: Query, page: int = 1, per_page: Optional[int] = None) -> Page:
    per_page = clamp_per_page(per_page)
    page = max(1, page)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * per_page).limit(per_page).all()
    return Page(items=items, total=total, page=page, per_page=per_page)


def success(data: Any = None, message: str = "OK") -> Dict[str, Any]:
    return {"success": True, "message": message, "data": data}


def paginated(page: Page, message: str, serializer: Callable[[Any], Any]) -> Dict[str, Any]:
    return {
        "success": True,
        "message": message,
        "data": [serializer(item) for item in page.items],
        "meta": page.meta(),
    }

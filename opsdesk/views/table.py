from __future__ import annotations

from typing import Any, Dict, List

from opsdesk.services.conversations import DEFAULT_PAGE_SIZE, ORDER_FIELDS

TABLE_FILTERS = ("phone", "jobType", "type", "currentStatus")


class ConversationTable:
    """Filter form, sort header and pager of the conversation list."""

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE):
        self.filters: Dict[str, str] = {name: "" for name in TABLE_FILTERS}
        self.order_by = {"field": "createdAt", "direction": "desc"}
        self.rows: List[Dict[str, Any]] = []
        self.pagination = {
            "page": 1,
            "pageSize": page_size,
            "totalCount": 0,
            "totalPages": 0,
            "hasNextPage": False,
            "hasPreviousPage": False,
        }

    def set_filter(self, name: str, value: str) -> None:
        if name not in self.filters:
            raise KeyError(name)
        self.filters[name] = value

    def toggle_sort(self, field: str) -> None:
        if field not in ORDER_FIELDS:
            raise KeyError(field)
        if self.order_by["field"] == field and self.order_by["direction"] == "asc":
            direction = "desc"
        else:
            direction = "asc"
        self.order_by = {"field": field, "direction": direction}

    def request_body(self, page: int = 1) -> Dict[str, Any]:
        return {
            "page": page,
            "pageSize": self.pagination["pageSize"],
            "orderBy": dict(self.order_by),
            "filters": {k: v for k, v in self.filters.items() if v != ""},
        }

    def apply_response(self, body: Dict[str, Any]) -> None:
        if not body.get("success"):
            raise ValueError(body.get("error") or "API returned error")
        self.rows = body["data"]
        self.pagination = body["pagination"]

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from opsdesk.errors import NotFoundError, ValidationError
from opsdesk.models import Conversation, ConversationType, Message, MessageAction, Status
from opsdesk.utils.dates import DateRange

# API field name -> column
ORDER_FIELDS = {
    "id": Conversation.id,
    "phone": Conversation.phone,
    "jobType": Conversation.job_type,
    "urgency": Conversation.urgency,
    "type": Conversation.type,
    "currentStatus": Conversation.current_status,
    "currentReason": Conversation.current_reason,
    "createdAt": Conversation.created_at,
    "updatedAt": Conversation.updated_at,
}

SUBSTRING_FILTERS = {
    "phone": Conversation.phone,
    "jobType": Conversation.job_type,
    "currentReason": Conversation.current_reason,
}

RANGE_FILTERS = {
    "createdAt": Conversation.created_at,
    "updatedAt": Conversation.updated_at,
}

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _with_history():
    return selectinload(Conversation.messages).selectinload(Message.actions)


def _int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    return value


@dataclass
class ConversationQuery:
    filters: Dict[str, Any] = field(default_factory=dict)
    order_field: str = "createdAt"
    order_direction: str = "desc"
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    ranges: Dict[str, DateRange] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, body: Optional[Dict[str, Any]]) -> "ConversationQuery":
        if body is None:
            body = {}
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")

        order_by = body.get("orderBy") or {}
        if not isinstance(order_by, dict):
            raise ValidationError("orderBy must be an object with field and direction")
        order_field = order_by.get("field", "createdAt")
        direction = order_by.get("direction", "desc")
        if not isinstance(order_field, str) or order_field not in ORDER_FIELDS:
            raise ValidationError(f"Invalid order field. Must be one of: {', '.join(ORDER_FIELDS)}")
        if direction not in ("asc", "desc"):
            raise ValidationError("Invalid order direction. Must be one of: asc, desc")

        page = body.get("page", 1)
        page_size = body.get("pageSize", DEFAULT_PAGE_SIZE)
        page = _int(page, "page")
        page_size = _int(page_size, "pageSize")
        if page < 1 or page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise ValidationError(f"Page must be >= 1 and pageSize must be between 1 and {MAX_PAGE_SIZE}")

        query = cls(order_field=order_field, order_direction=direction, page=page, page_size=page_size)
        query._parse_filters(body.get("filters") or {})
        return query

    def _parse_filters(self, raw: Dict[str, Any]) -> None:
        if not isinstance(raw, dict):
            raise ValidationError("filters must be an object")

        for name in SUBSTRING_FILTERS:
            value = raw.get(name)
            if value in (None, ""):
                continue
            if not isinstance(value, str):
                raise ValidationError(f"filters.{name} must be a string")
            self.filters[name] = value

        if raw.get("urgency") is not None:
            self.filters["urgency"] = _int(raw["urgency"], "filters.urgency")

        if raw.get("type"):
            if not isinstance(raw["type"], str) or raw["type"] not in {t.value for t in ConversationType}:
                raise ValidationError(f"filters.type must be one of: {', '.join(t.value for t in ConversationType)}")
            self.filters["type"] = raw["type"]

        if raw.get("currentStatus"):
            if not isinstance(raw["currentStatus"], str) or raw["currentStatus"] not in {s.value for s in Status}:
                raise ValidationError(f"filters.currentStatus must be one of: {', '.join(s.value for s in Status)}")
            self.filters["currentStatus"] = raw["currentStatus"]

        for name in RANGE_FILTERS:
            bounds = raw.get(name)
            if not bounds:
                continue
            if not isinstance(bounds, dict):
                raise ValidationError(f"filters.{name} must be an object with gte and/or lte")
            date_range = DateRange.parse(bounds.get("gte"), bounds.get("lte"), field=f"filters.{name}")
            if not date_range.is_open:
                self.filters[name] = {k: bounds[k] for k in ("gte", "lte") if bounds.get(k)}
                self.ranges[name] = date_range

    def where(self) -> list:
        clauses = []
        for name, column in SUBSTRING_FILTERS.items():
            if name in self.filters:
                clauses.append(column.contains(self.filters[name], autoescape=True))
        if "urgency" in self.filters:
            clauses.append(Conversation.urgency == self.filters["urgency"])
        if "type" in self.filters:
            clauses.append(Conversation.type == self.filters["type"])
        if "currentStatus" in self.filters:
            clauses.append(Conversation.current_status == self.filters["currentStatus"])
        for name, date_range in self.ranges.items():
            clauses.extend(date_range.clauses(RANGE_FILTERS[name]))
        return clauses

    def order_by(self) -> list:
        column = ORDER_FIELDS[self.order_field]
        if self.order_direction == "asc":
            return [column.asc(), Conversation.id.asc()]
        return [column.desc(), Conversation.id.desc()]

    def order_dict(self) -> dict:
        return {"field": self.order_field, "direction": self.order_direction}


@dataclass
class ConversationPage:
    items: List[Conversation]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size)

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1

    def pagination(self) -> dict:
        return {
            "page": self.page,
            "pageSize": self.page_size,
            "totalCount": self.total_count,
            "totalPages": self.total_pages,
            "hasNextPage": self.has_next_page,
            "hasPreviousPage": self.has_previous_page,
        }


def search_conversations(db: Session, query: ConversationQuery) -> ConversationPage:
    where = query.where()
    total = db.scalar(select(func.count()).select_from(Conversation).where(*where))

    stmt = (
        select(Conversation)
        .where(*where)
        .order_by(*query.order_by())
        .offset((query.page - 1) * query.page_size)
        .limit(query.page_size)
        .options(_with_history())
    )
    items = list(db.scalars(stmt))
    return ConversationPage(items=items, total_count=total or 0, page=query.page, page_size=query.page_size)


def get_conversation(db: Session, conversation_id: str) -> Conversation:
    conv = db.scalar(
        select(Conversation).where(Conversation.id == conversation_id).options(_with_history())
    )
    if conv is None:
        raise NotFoundError(f"Conversation {conversation_id} not found")
    return conv


def action_center_queue(db: Session) -> List[Conversation]:
    """Conversations blocked on a human, most urgent first."""
    stmt = (
        select(Conversation)
        .where(Conversation.current_status == Status.BLOCKED_NEEDS_HUMAN.value)
        .order_by(Conversation.urgency.desc(), Conversation.updated_at.asc())
        .options(_with_history())
    )
    return list(db.scalars(stmt))


def dashboard_stats(db: Session) -> dict:
    return {
        "conversations": db.scalar(select(func.count()).select_from(Conversation)) or 0,
        "blocked": db.scalar(
            select(func.count())
            .select_from(Conversation)
            .where(Conversation.current_status == Status.BLOCKED_NEEDS_HUMAN.value)
        ) or 0,
        "messages": db.scalar(select(func.count()).select_from(Message)) or 0,
        "actions": db.scalar(select(func.count()).select_from(MessageAction)) or 0,
    }

from __future__ import annotations

from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload, selectinload

from opsdesk.models import Conversation, Message, MessageAction
from opsdesk.utils.dates import DateRange, day_key


def list_messages(db: Session, date_range: DateRange) -> List[Message]:
    stmt = (
        select(Message)
        .where(*date_range.clauses(Message.timestamp))
        .order_by(Message.created_at.desc(), Message.timestamp.desc(), Message.id)
        .options(joinedload(Message.conversation), selectinload(Message.actions))
    )
    return list(db.scalars(stmt))


def list_actions(db: Session, date_range: DateRange) -> List[MessageAction]:
    # actions carry no timestamp of their own; the window applies to their message
    stmt = (
        select(MessageAction)
        .join(MessageAction.message)
        .where(*date_range.clauses(Message.timestamp))
        .order_by(MessageAction.created_at.desc(), Message.timestamp.desc(), MessageAction.id)
        .options(joinedload(MessageAction.message).joinedload(Message.conversation))
    )
    return list(db.scalars(stmt))


def _series(pairs: Iterable[Tuple[str, str]]) -> dict:
    """
    (day, key) pairs -> {labels: [day...], series: {key: [count per day]}}
    Keys keep first-seen order, days are sorted.
    """
    by_day: Dict[str, Counter] = defaultdict(Counter)
    keys: Dict[str, None] = {}
    for day, key in pairs:
        by_day[day][key] += 1
        keys.setdefault(key)
    labels = sorted(by_day)
    return {
        "labels": labels,
        "series": {key: [by_day[d][key] for d in labels] for key in keys},
    }


def _per_day(days: Iterable[str]) -> List[dict]:
    counts = Counter(days)
    return [{"date": d, "count": counts[d]} for d in sorted(counts)]


def summarize_messages(db: Session, date_range: DateRange) -> dict:
    rows = db.execute(
        select(Message.timestamp, Message.sender_type, Message.status, Conversation.job_type)
        .select_from(Message)
        .join(Message.conversation)
        .where(*date_range.clauses(Message.timestamp))
    ).all()

    return {
        "totalMessages": len(rows),
        "byDay": _per_day(day_key(r.timestamp) for r in rows),
        "bySenderType": dict(Counter(r.sender_type for r in rows)),
        "byStatus": dict(Counter(r.status for r in rows)),
        "byJobType": dict(Counter(r.job_type for r in rows)),
    }


def summarize_actions(db: Session, date_range: DateRange) -> dict:
    rows = db.execute(
        select(Message.timestamp, MessageAction.action_type, MessageAction.result)
        .select_from(MessageAction)
        .join(MessageAction.message)
        .where(*date_range.clauses(Message.timestamp))
    ).all()

    return {
        "totalActions": len(rows),
        "byDay": _per_day(day_key(r.timestamp) for r in rows),
        "byType": dict(Counter(r.action_type for r in rows)),
        "byResult": dict(Counter(r.result for r in rows)),
        "typesByDay": _series((day_key(r.timestamp), r.action_type) for r in rows),
        "resultsByDay": _series((day_key(r.timestamp), r.result) for r in rows),
    }

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from loguru import logger
from sqlalchemy import delete, insert
from sqlalchemy.orm import Session

from opsdesk.importer.source import EventSource, ImportEvent
from opsdesk.models import Conversation, Message, MessageAction, Status, new_id, utcnow


@dataclass(frozen=True)
class ImportSummary:
    conversation_count: int
    message_count: int
    action_count: int

    def as_dict(self) -> dict:
        return {
            "conversationCount": self.conversation_count,
            "messageCount": self.message_count,
            "actionCount": self.action_count,
        }


def _status(event: ImportEvent) -> str:
    status = Status.coerce(event.status)
    if status is Status.OTHER and event.status != Status.OTHER.value:
        logger.warning(f"Unknown status {event.status!r} for {event.phone}, stored as 'other'")
    return status.value


class BulkImporter:
    """
    Replaces the store's contents with the events of a source.

    The wipe is committed on its own before anything is read, so a failure
    while importing leaves the tables empty rather than half-restored.
    """

    def __init__(self, session: Session):
        self.session = session

    def wipe(self) -> None:
        # children first, foreign keys point upwards
        self.session.execute(delete(MessageAction))
        self.session.execute(delete(Message))
        self.session.execute(delete(Conversation))
        self.session.commit()
        logger.info("Cleared conversations, messages and actions")

    @staticmethod
    def build_conversations(events: List[ImportEvent]) -> Dict[str, dict]:
        seeds: Dict[str, dict] = {}
        conflicts = set()
        for ev in events:
            seed = seeds.get(ev.phone)
            if seed is None:
                seeds[ev.phone] = {
                    "phone": ev.phone,
                    "type": ev.conversation_type.value,
                    "job_type": ev.job_type or "unknown",
                    "urgency": ev.urgency,
                    "current_status": Status.coerce(ev.status).value,
                    "current_reason": ev.reason,
                    "is_active": True,
                }
                continue

            # first folder wins; a phone under both calls/ and texts/ keeps its first type
            if seed["type"] != ev.conversation_type.value and ev.phone not in conflicts:
                conflicts.add(ev.phone)
                logger.warning(
                    f"Phone {ev.phone} appears as both {seed['type']} and "
                    f"{ev.conversation_type.value}; keeping {seed['type']}"
                )
            seed["current_status"] = Status.coerce(ev.status).value
            seed["current_reason"] = ev.reason
            seed["job_type"] = ev.job_type or seed["job_type"]
            seed["urgency"] = max(seed["urgency"], ev.urgency)
        return seeds

    def run(self, source: EventSource) -> ImportSummary:
        self.wipe()

        try:
            events = list(source.events())
            seeds = self.build_conversations(events)
            summary = self._write(events, seeds)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(
            f"Imported {summary.conversation_count} conversations, "
            f"{summary.message_count} messages, {summary.action_count} actions"
        )
        return summary

    def _write(self, events: List[ImportEvent], seeds: Dict[str, dict]) -> ImportSummary:
        if not events:
            return ImportSummary(0, 0, 0)

        now = utcnow()
        conv_rows = [dict(seed, id=new_id(), created_at=now, updated_at=now) for seed in seeds.values()]
        inserted = self.session.execute(
            insert(Conversation).returning(Conversation.id, Conversation.phone, sort_by_parameter_order=True),
            conv_rows,
        ).all()
        phone_to_id = {row.phone: row.id for row in inserted}

        message_rows = [
            {
                "id": new_id(),
                "conversation_id": phone_to_id[ev.phone],
                "timestamp": ev.timestamp,
                "sender_type": ev.sender_type,
                "content": ev.content,
                "status": _status(ev),
                "reason": ev.reason,
                "operator_id": ev.operator_id,
                "is_active": True,
                "created_at": now,
            }
            for ev in events
        ]
        message_ids = self.session.scalars(
            insert(Message).returning(Message.id, sort_by_parameter_order=True),
            message_rows,
        ).all()

        # message_ids line up with events, so each event's actions get its message id
        action_rows = [
            {
                "id": new_id(),
                "message_id": message_id,
                "action_type": act.type,
                "result": act.result,
                "error": act.error,
                "created_at": now,
            }
            for ev, message_id in zip(events, message_ids)
            for act in ev.actions
        ]
        if action_rows:
            self.session.execute(insert(MessageAction), action_rows)

        return ImportSummary(len(conv_rows), len(message_rows), len(action_rows))

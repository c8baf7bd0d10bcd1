from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from loguru import logger
from sqlalchemy.orm import Session

from opsdesk.errors import NotFoundError, ValidationError
from opsdesk.models import Conversation, Message, SenderType, Status, utcnow
from opsdesk.utils.dates import parse_timestamp


def _required_text(body: Dict[str, Any], key: str) -> str:
    value = body.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} is required")
    return value


@dataclass(frozen=True)
class NewMessage:
    conversation_id: str
    sender_type: str
    content: str
    status: str
    reason: str
    timestamp: datetime
    operator_id: Optional[str] = None

    @classmethod
    def from_payload(cls, body: Optional[Dict[str, Any]]) -> "NewMessage":
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")

        conversation_id = _required_text(body, "conversationId")
        content = _required_text(body, "content")
        status = _required_text(body, "status")
        reason = _required_text(body, "reason")

        sender_type = body.get("senderType")
        if not isinstance(sender_type, str) or sender_type not in {s.value for s in SenderType}:
            raise ValidationError(f"senderType must be one of: {', '.join(s.value for s in SenderType)}")
        if status not in {s.value for s in Status}:
            raise ValidationError(f"status must be one of: {', '.join(s.value for s in Status)}")

        operator_id = body.get("operatorId")
        if operator_id is not None and not isinstance(operator_id, str):
            raise ValidationError("operatorId must be a string or null")

        raw_ts = body.get("timestamp")
        timestamp = parse_timestamp(raw_ts, "timestamp") if raw_ts else utcnow()

        return cls(
            conversation_id=conversation_id,
            sender_type=sender_type,
            content=content,
            status=status,
            reason=reason,
            timestamp=timestamp,
            operator_id=operator_id or None,
        )


def record_message(db: Session, new: NewMessage) -> Tuple[Message, Conversation]:
    """
    Append a message and move the conversation to the message's status/reason,
    in one transaction.
    """
    conv = db.get(Conversation, new.conversation_id)
    if conv is None:
        raise NotFoundError(f"Conversation {new.conversation_id} not found")

    msg = Message(
        conversation_id=conv.id,
        timestamp=new.timestamp,
        sender_type=new.sender_type,
        content=new.content,
        status=new.status,
        reason=new.reason,
        operator_id=new.operator_id,
        is_active=True,
    )
    db.add(msg)

    conv.current_status = new.status
    conv.current_reason = new.reason
    conv.updated_at = utcnow()
    db.commit()
    db.refresh(msg)
    db.refresh(conv)

    logger.info(f"Recorded {new.sender_type} message on {conv.id}; status now {conv.current_status}")
    return msg, conv

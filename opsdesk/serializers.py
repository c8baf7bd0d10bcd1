from datetime import datetime
from typing import Optional

from opsdesk.models import Conversation, Message, MessageAction
from opsdesk.utils.dates import as_utc


def _iso(value: Optional[datetime]) -> Optional[str]:
    return as_utc(value).isoformat() if value is not None else None


def conversation_summary(conv: Conversation) -> dict:
    return {
        "id": conv.id,
        "phone": conv.phone,
        "type": conv.type,
        "jobType": conv.job_type,
        "urgency": conv.urgency,
        "currentStatus": conv.current_status,
        "currentReason": conv.current_reason,
        "isActive": conv.is_active,
        "createdAt": _iso(conv.created_at),
        "updatedAt": _iso(conv.updated_at),
    }


def action_dict(action: MessageAction) -> dict:
    return {
        "id": action.id,
        "messageId": action.message_id,
        "actionType": action.action_type,
        "result": action.result,
        "error": action.error,
        "createdAt": _iso(action.created_at),
    }


def message_dict(msg: Message, with_actions: bool = True) -> dict:
    out = {
        "id": msg.id,
        "conversationId": msg.conversation_id,
        "timestamp": _iso(msg.timestamp),
        "senderType": msg.sender_type,
        "content": msg.content,
        "status": msg.status,
        "reason": msg.reason,
        "operatorId": msg.operator_id,
        "isActive": msg.is_active,
        "createdAt": _iso(msg.created_at),
    }
    if with_actions:
        out["actions"] = [action_dict(a) for a in msg.actions]
    return out


def conversation_dict(conv: Conversation) -> dict:
    """Conversation with its messages (chronological) and their actions."""
    out = conversation_summary(conv)
    out["messages"] = [message_dict(m) for m in conv.messages]
    return out


def analytics_message_dict(msg: Message) -> dict:
    out = message_dict(msg)
    out["conversation"] = conversation_summary(msg.conversation)
    return out


def analytics_action_dict(action: MessageAction) -> dict:
    out = action_dict(action)
    message = message_dict(action.message, with_actions=False)
    message["conversation"] = conversation_summary(action.message.conversation)
    out["message"] = message
    return out

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from opsdesk.models import SenderType, Status


class ConversationQueue:
    """
    Local state of the Action Center carousel: the fetched conversations
    (serialized dicts) and the position of the one on screen.
    """

    def __init__(self, conversations: List[Dict[str, Any]]):
        self.conversations = [dict(conv) for conv in conversations]
        self.position = 0

    def __len__(self):
        return len(self.conversations)

    @property
    def current(self) -> Optional[Dict[str, Any]]:
        if not self.conversations:
            return None
        return self.conversations[self.position]

    @property
    def indicator(self) -> str:
        if not self.conversations:
            return "0 of 0"
        return f"{self.position + 1} of {len(self.conversations)}"

    def next(self) -> None:
        if self.position < len(self.conversations) - 1:
            self.position += 1

    def previous(self) -> None:
        if self.position > 0:
            self.position -= 1

    def can_resolve(self) -> bool:
        conv = self.current
        return conv is not None and conv["currentStatus"] != Status.BLOCKED_NEEDS_HUMAN.value

    def resolve(self) -> Optional[Dict[str, Any]]:
        """Drop the current conversation from the queue once it is no longer blocked."""
        if not self.can_resolve():
            return None
        removed = self.conversations.pop(self.position)
        if self.position >= len(self.conversations):
            self.position = max(0, len(self.conversations) - 1)
        return removed

    def apply_recorded(self, result: Dict[str, Any]) -> None:
        """Merge a record-message response ({message, conversation}) into local state."""
        summary = result["conversation"]
        for conv in self.conversations:
            if conv["id"] == summary["id"]:
                conv["currentStatus"] = summary["currentStatus"]
                conv["currentReason"] = summary["currentReason"]
                conv["messages"] = list(conv.get("messages", [])) + [result["message"]]
                return


@dataclass
class MessageDraft:
    content: str = ""
    status: str = ""
    reason: str = ""

    def is_complete(self) -> bool:
        return bool(self.content.strip() and self.status and self.reason.strip())

    def to_payload(self, conversation_id: str, now: datetime) -> Dict[str, Any]:
        return {
            "conversationId": conversation_id,
            "senderType": SenderType.OPERATOR.value,
            "content": self.content,
            "status": self.status,
            "reason": self.reason,
            "timestamp": now.isoformat(),
            "operatorId": None,
        }

    def clear(self) -> None:
        self.content = ""
        self.status = ""
        self.reason = ""

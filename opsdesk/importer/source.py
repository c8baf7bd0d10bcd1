from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from opsdesk.errors import ImportDataError
from opsdesk.models import ConversationType, SenderType
from opsdesk.utils.dates import parse_timestamp

# top-level folder -> conversation type
FOLDERS = {
    "calls": ConversationType.CALL,
    "texts": ConversationType.TEXT,
}


@dataclass
class ImportAction:
    type: str
    result: str
    error: Optional[str] = None


@dataclass
class ImportEvent:
    """One line of an event file: a single message plus the actions behind it."""

    conversation_type: ConversationType
    timestamp: datetime
    phone: str
    sender_type: str
    content: str
    status: str
    urgency: int
    reason: Optional[str] = None
    job_type: Optional[str] = None
    operator_id: Optional[str] = None
    actions: List[ImportAction] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: Dict[str, Any], conversation_type: ConversationType) -> "ImportEvent":
        if not isinstance(record, dict):
            raise ValueError("line is not a JSON object")

        missing = [k for k in ("timestamp", "phone", "sender_type", "content", "status", "urgency") if k not in record]
        if missing:
            raise ValueError(f"missing fields: {', '.join(missing)}")

        sender = record["sender_type"]
        if sender not in {s.value for s in SenderType}:
            raise ValueError(f"unknown sender_type {sender!r}")

        urgency = record["urgency"]
        if isinstance(urgency, bool) or not isinstance(urgency, int):
            raise ValueError(f"urgency must be an integer, got {urgency!r}")

        # ValidationError is a ValueError, reported with the file position below
        timestamp = parse_timestamp(record["timestamp"], "timestamp")

        actions = []
        for raw in record.get("actions") or []:
            if not isinstance(raw, dict) or "type" not in raw or "result" not in raw:
                raise ValueError(f"malformed action {raw!r}")
            actions.append(ImportAction(type=str(raw["type"]), result=str(raw["result"]), error=raw.get("error")))

        return cls(
            conversation_type=conversation_type,
            timestamp=timestamp,
            # phones are sometimes written as bare numbers
            phone=str(record["phone"]),
            sender_type=sender,
            content=record["content"],
            status=record["status"],
            urgency=urgency,
            reason=record.get("reason"),
            job_type=record.get("job_type") or None,
            operator_id=record.get("operator_id"),
            actions=actions,
        )


class EventSource(ABC):
    @abstractmethod
    def events(self) -> Iterator[ImportEvent]:
        ...


class JsonlDirectorySource(EventSource):
    """
    Reads <root>/{calls,texts}/<date>/*.jsonl.

    Entries are visited in name order; hidden entries, non-directories at the
    date level and files without the .jsonl suffix are skipped.
    """

    def __init__(self, root: str):
        self.root = root

    @staticmethod
    def _visible(names: List[str]) -> List[str]:
        return sorted(n for n in names if not n.startswith("."))

    def files(self) -> Iterator[tuple[str, ConversationType]]:
        for folder, conv_type in FOLDERS.items():
            folder_path = os.path.join(self.root, folder)
            if not os.path.isdir(folder_path):
                continue

            for date in self._visible(os.listdir(folder_path)):
                date_path = os.path.join(folder_path, date)
                if not os.path.isdir(date_path):
                    continue

                for name in self._visible(os.listdir(date_path)):
                    if name.endswith(".jsonl"):
                        yield os.path.join(date_path, name), conv_type

    def events(self) -> Iterator[ImportEvent]:
        for path, conv_type in self.files():
            with open(path, "r", encoding="utf-8") as f:
                for line_no, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        yield ImportEvent.from_record(json.loads(line), conv_type)
                    except ValueError as e:
                        # json.JSONDecodeError is a ValueError too
                        raise ImportDataError(path, line_no, str(e)) from e

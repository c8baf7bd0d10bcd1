import itertools
import json
from datetime import datetime, timedelta, timezone

import pytest

from opsdesk.config import Settings
from opsdesk.db import init_db
from opsdesk.models import Conversation, Message, MessageAction
from opsdesk.server import create_app

UTC = timezone.utc


@pytest.fixture
def data_root(tmp_path):
    root = tmp_path / "conversations"
    root.mkdir()
    return root


@pytest.fixture
def app(data_root):
    app = create_app(Settings(database_url="sqlite:///:memory:", data_root=str(data_root), log_level="DEBUG"))
    app.config["TESTING"] = True
    init_db(app.extensions["opsdesk"]["engine"])
    return app


@pytest.fixture
def client(app):
    """Test client for API endpoints"""
    return app.test_client()


@pytest.fixture
def session(app):
    db = app.extensions["opsdesk"]["sessions"]()
    yield db
    db.close()


@pytest.fixture
def make_conversation(session):
    """
    Insert a conversation (and optional messages) and return it.

    messages: list of dicts with timestamp, sender_type, content, status,
    reason and actions [(type, result)].
    """
    counter = itertools.count(1)

    def _make(messages=(), **overrides):
        n = next(counter)
        created = datetime(2024, 1, 1, tzinfo=UTC) + timedelta(hours=n)
        fields = {
            "phone": f"770656{n:04d}",
            "type": "call",
            "job_type": "plumbing",
            "urgency": 1,
            "current_status": "active",
            "current_reason": "in progress",
            "is_active": True,
            "created_at": created,
            "updated_at": created,
        }
        fields.update(overrides)
        conv = Conversation(**fields)
        session.add(conv)
        session.flush()

        for m in messages:
            msg = Message(
                conversation_id=conv.id,
                timestamp=m["timestamp"],
                sender_type=m.get("sender_type", "agent"),
                content=m.get("content", "hello"),
                status=m.get("status", conv.current_status),
                reason=m.get("reason"),
                created_at=m.get("created_at", m["timestamp"]),
            )
            session.add(msg)
            session.flush()
            for action_type, result in m.get("actions", ()):
                session.add(MessageAction(message_id=msg.id, action_type=action_type, result=result))

        session.commit()
        return conv

    return _make


@pytest.fixture
def write_events(data_root):
    """Write JSON lines to <root>/<folder>/<date>/<name>."""

    def _write(folder, date, name, events):
        directory = data_root / folder / date
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text("\n".join(json.dumps(e) for e in events) + "\n", encoding="utf-8")
        return path

    return _write


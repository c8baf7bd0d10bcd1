from datetime import datetime, timezone

import pytest

from opsdesk.utils.display import format_phone, status_label
from opsdesk.views import ConversationQueue, ConversationTable, MessageDraft


def _conv(cid, status="blocked_needs_human"):
    return {"id": cid, "currentStatus": status, "currentReason": "waiting", "messages": []}


def test_queue_navigation_is_bounded():
    queue = ConversationQueue([_conv("a"), _conv("b"), _conv("c")])

    assert queue.indicator == "1 of 3"
    queue.previous()
    assert queue.position == 0
    queue.next()
    queue.next()
    queue.next()
    assert queue.current["id"] == "c"
    assert queue.indicator == "3 of 3"


def test_blocked_conversation_cannot_be_resolved():
    queue = ConversationQueue([_conv("a")])

    assert not queue.can_resolve()
    assert queue.resolve() is None
    assert len(queue) == 1


def test_resolving_last_item_moves_back():
    queue = ConversationQueue([_conv("a"), _conv("b", status="booked")])
    queue.next()

    removed = queue.resolve()

    assert removed["id"] == "b"
    assert queue.position == 0
    assert queue.current["id"] == "a"


def test_resolving_middle_item_keeps_position():
    queue = ConversationQueue([_conv("a"), _conv("b", status="booked"), _conv("c")])
    queue.next()

    queue.resolve()

    assert queue.current["id"] == "c"
    assert queue.indicator == "2 of 2"


def test_empty_queue():
    queue = ConversationQueue([])
    assert queue.current is None
    assert queue.indicator == "0 of 0"
    assert not queue.can_resolve()


def test_apply_recorded_then_resolve():
    queue = ConversationQueue([_conv("a")])
    result = {
        "message": {"id": "m1", "status": "booked", "reason": "confirmed"},
        "conversation": {"id": "a", "currentStatus": "booked", "currentReason": "confirmed"},
    }

    queue.apply_recorded(result)

    assert queue.current["currentStatus"] == "booked"
    assert queue.current["messages"] == [result["message"]]
    assert queue.can_resolve()
    queue.resolve()
    assert len(queue) == 0


def test_apply_recorded_leaves_caller_dicts_alone():
    fetched = [_conv("a")]
    queue = ConversationQueue(fetched)

    queue.apply_recorded({
        "message": {"id": "m1"},
        "conversation": {"id": "a", "currentStatus": "booked", "currentReason": "confirmed"},
    })

    assert queue.current["currentStatus"] == "booked"
    assert fetched[0]["currentStatus"] == "blocked_needs_human"
    assert fetched[0]["messages"] == []


def test_message_draft():
    draft = MessageDraft(content="On my way", status="booked")
    assert not draft.is_complete()

    draft.reason = "confirmed"
    assert draft.is_complete()

    now = datetime(2024, 1, 2, 10, tzinfo=timezone.utc)
    payload = draft.to_payload("conv-1", now)
    assert payload["senderType"] == "operator"
    assert payload["timestamp"] == "2024-01-02T10:00:00+00:00"
    assert payload["operatorId"] is None

    draft.clear()
    assert draft == MessageDraft()


def test_table_sort_toggle():
    table = ConversationTable()

    table.toggle_sort("urgency")
    assert table.order_by == {"field": "urgency", "direction": "asc"}
    table.toggle_sort("urgency")
    assert table.order_by == {"field": "urgency", "direction": "desc"}
    table.toggle_sort("urgency")
    assert table.order_by == {"field": "urgency", "direction": "asc"}

    with pytest.raises(KeyError):
        table.toggle_sort("password")


def test_table_request_body_drops_empty_filters():
    table = ConversationTable()
    table.set_filter("phone", "770")

    body = table.request_body(page=2)

    assert body == {
        "page": 2,
        "pageSize": 20,
        "orderBy": {"field": "createdAt", "direction": "desc"},
        "filters": {"phone": "770"},
    }


def test_table_round_trip_through_api(client, make_conversation):
    for _ in range(3):
        make_conversation(job_type="hvac")
    make_conversation(job_type="plumbing")
    table = ConversationTable(page_size=2)
    table.set_filter("jobType", "hvac")

    table.apply_response(client.post("/conversations", json=table.request_body()).get_json())

    assert len(table.rows) == 2
    assert table.pagination["totalCount"] == 3
    assert table.pagination["hasNextPage"] is True


def test_table_rejects_error_response():
    with pytest.raises(ValueError, match="Invalid order field"):
        ConversationTable().apply_response({"success": False, "error": "Invalid order field"})


@pytest.mark.parametrize("raw, expected", [
    ("7706561244", "(770) 656-1244"),
    ("770-656-1244", "(770) 656-1244"),
    ("+17706561244", "+17706561244"),
    ("12345", "12345"),
])
def test_format_phone(raw, expected):
    assert format_phone(raw) == expected


def test_status_label():
    assert status_label("blocked_needs_human") == "Blocked Needs Human"
    assert status_label("booked") == "Booked"

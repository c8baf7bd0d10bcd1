from datetime import datetime, timezone

import pytest

from opsdesk.errors import ValidationError
from opsdesk.utils.dates import DateRange

UTC = timezone.utc


@pytest.fixture
def history(make_conversation):
    make_conversation(job_type="plumbing", messages=[
        {"timestamp": datetime(2023, 12, 31, 23, 59, tzinfo=UTC), "content": "before",
         "actions": [("lookup_customer", "success")]},
        {"timestamp": datetime(2024, 1, 1, 0, 0, tzinfo=UTC), "content": "start", "sender_type": "customer",
         "actions": [("lookup_customer", "success"), ("check_calendar", "error")]},
    ])
    make_conversation(job_type="hvac", messages=[
        {"timestamp": datetime(2024, 1, 31, 23, 30, tzinfo=UTC), "content": "end", "status": "booked",
         "actions": [("book_job", "success")]},
        {"timestamp": datetime(2024, 2, 1, 0, 0, tzinfo=UTC), "content": "after",
         "actions": [("send_sms", "success")]},
    ])


def test_messages_in_inclusive_range(client, history):
    body = client.get("/messages?startDate=2024-01-01&endDate=2024-01-31").get_json()

    assert body["success"] is True
    assert body["dateRange"] == {"startDate": "2024-01-01", "endDate": "2024-01-31"}
    assert body["totalMessages"] == 2
    assert sorted(m["content"] for m in body["messages"]) == ["end", "start"]
    start = next(m for m in body["messages"] if m["content"] == "start")
    assert start["conversation"]["jobType"] == "plumbing"
    assert len(start["actions"]) == 2


def test_messages_without_bounds_returns_everything(client, history):
    body = client.get("/messages").get_json()

    assert body["dateRange"] == {"startDate": None, "endDate": None}
    assert body["totalMessages"] == 4
    # newest first
    assert [m["content"] for m in body["messages"]] == ["after", "end", "start", "before"]


def test_actions_filtered_by_message_timestamp(client, history):
    body = client.get("/actions?startDate=2024-01-01&endDate=2024-01-31").get_json()

    assert body["totalActions"] == 3
    assert sorted(a["actionType"] for a in body["actions"]) == ["book_job", "check_calendar", "lookup_customer"]
    assert all(a["message"]["timestamp"][:7] == "2024-01" for a in body["actions"])
    assert {a["message"]["conversation"]["jobType"] for a in body["actions"]} == {"plumbing", "hvac"}


def test_actions_without_bounds(client, history):
    assert client.get("/actions").get_json()["totalActions"] == 5


def test_only_start_bound(client, history):
    body = client.get("/messages?startDate=2024-02-01").get_json()
    assert [m["content"] for m in body["messages"]] == ["after"]


def test_invalid_range_is_rejected(client, history):
    assert client.get("/messages?startDate=2024-02-01&endDate=2024-01-01").status_code == 400
    assert client.get("/actions?startDate=someday").status_code == 400


def test_message_buckets(client, history):
    body = client.get("/analytics/messages?startDate=2024-01-01&endDate=2024-01-31").get_json()

    assert body["totalMessages"] == 2
    assert body["byDay"] == [{"date": "2024-01-01", "count": 1}, {"date": "2024-01-31", "count": 1}]
    assert body["bySenderType"] == {"customer": 1, "agent": 1}
    assert body["byJobType"] == {"plumbing": 1, "hvac": 1}
    assert sum(body["byStatus"].values()) == 2


def test_action_buckets(client, history):
    body = client.get("/analytics/actions").get_json()

    assert body["totalActions"] == 5
    assert body["byType"]["lookup_customer"] == 2
    assert body["byResult"] == {"success": 4, "error": 1}
    types = body["typesByDay"]
    assert types["labels"] == ["2023-12-31", "2024-01-01", "2024-01-31", "2024-02-01"]
    assert types["series"]["lookup_customer"] == [1, 1, 0, 0]
    assert body["resultsByDay"]["series"]["error"] == [0, 1, 0, 0]


def test_date_range_end_of_day():
    rng = DateRange.parse("2024-01-01", "2024-01-31")
    assert rng.contains(datetime(2024, 1, 31, 23, 59, 59, tzinfo=UTC))
    assert not rng.contains(datetime(2024, 2, 1, tzinfo=UTC))
    assert rng.contains(datetime(2024, 1, 1, tzinfo=UTC))
    assert not rng.contains(datetime(2023, 12, 31, 23, 59, tzinfo=UTC))


def test_date_range_with_times_is_inclusive():
    rng = DateRange.parse("2024-01-01T08:00:00Z", "2024-01-01T09:00:00Z")
    assert rng.contains(datetime(2024, 1, 1, 9, tzinfo=UTC))
    assert not rng.contains(datetime(2024, 1, 1, 9, 0, 1, tzinfo=UTC))


def test_same_day_range_is_valid():
    rng = DateRange.parse("2024-01-31", "2024-01-31")
    assert rng.contains(datetime(2024, 1, 31, 12, tzinfo=UTC))


def test_reversed_range_raises():
    with pytest.raises(ValidationError):
        DateRange.parse("2024-01-02", "2024-01-01")

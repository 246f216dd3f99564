"""Unit tests for the persisted pending message queue."""

import json

from legalchat.history import PendingQueue
from legalchat.local_storage import PENDING_MESSAGES_KEY
from legalchat.models import Message, PendingMessage


def _entry(content: str, session_id: str = "remote-1") -> PendingMessage:
    return PendingMessage(message=Message(type="user", content=content), session_id=session_id)


def test_empty_queue(local_storage):
    assert PendingQueue(local_storage).load() == []


def test_append_and_load(local_storage):
    queue = PendingQueue(local_storage)
    first, second = _entry("one"), _entry("two", "remote-2")

    queue.append(first)
    queue.append(second)

    assert [entry.message.id for entry in queue.load()] == [first.message.id, second.message.id]


def test_append_replaces_same_message(local_storage):
    queue = PendingQueue(local_storage)
    entry = _entry("one")
    queue.append(entry)

    queue.append(entry.model_copy(update={"timestamp": entry.timestamp + 1000}))

    loaded = queue.load()
    assert len(loaded) == 1
    assert loaded[0].timestamp == entry.timestamp + 1000


def test_stored_in_camel_case(local_storage):
    PendingQueue(local_storage).save([_entry("one")])

    payload = json.loads(local_storage.get_item(PENDING_MESSAGES_KEY))

    assert payload[0]["sessionId"] == "remote-1"
    assert payload[0]["message"]["content"] == "one"


def test_corrupt_queue_ignored(local_storage, caplog):
    local_storage.set_item(PENDING_MESSAGES_KEY, "not json")

    assert PendingQueue(local_storage).load() == []
    assert "unreadable pending message queue" in caplog.text


def test_malformed_entries_skipped(local_storage):
    valid = _entry("valid")
    raw = json.dumps(
        [
            {"message": {"id": "msg-x"}, "sessionId": "remote-1", "timestamp": 1},
            valid.model_dump(mode="json", by_alias=True),
        ]
    )
    local_storage.set_item(PENDING_MESSAGES_KEY, raw)

    assert [entry.message.id for entry in PendingQueue(local_storage).load()] == [
        valid.message.id
    ]

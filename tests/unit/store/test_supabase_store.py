"""Unit tests for the Supabase (PostgREST) chat store."""

from __future__ import annotations

import json

import httpx
import pytest

from legalchat.models import LegalReference
from legalchat.store import (
    ChatStoreError,
    DuplicateRecordError,
    NewMessageRecord,
    SupabaseChatStore,
)

SESSION_ROW = {
    "id": "11111111-1111-1111-1111-111111111111",
    "user_id": "user-1",
    "title": "New Chat",
    "created_at": "2024-05-01T10:00:00+00:00",
    "updated_at": "2024-05-01T10:05:00+00:00",
}

MESSAGE_ROW = {
    "id": "msg-1",
    "session_id": SESSION_ROW["id"],
    "type": "ai",
    "content": "Hello",
    "timestamp": "2024-05-01T10:00:01+00:00",
    "legal_references": [{"section": "Article 21", "description": "Life"}],
    "action_steps": None,
    "contact_info": None,
}


def _make_store(handler) -> tuple[SupabaseChatStore, list[httpx.Request]]:
    requests: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    client = httpx.AsyncClient(
        base_url="https://project.supabase.co/rest/v1",
        transport=httpx.MockTransport(_record),
    )
    store = SupabaseChatStore(
        "https://project.supabase.co",
        "anon-key",
        access_token="user-jwt",
        client=client,
    )
    return store, requests


def test_requires_url_and_key():
    with pytest.raises(ValueError, match="URL"):
        SupabaseChatStore("", "key")
    with pytest.raises(ValueError, match="key"):
        SupabaseChatStore("https://project.supabase.co", "")


@pytest.mark.asyncio
async def test_create_session_posts_and_returns_row():
    store, requests = _make_store(lambda request: httpx.Response(201, json=[SESSION_ROW]))

    record = await store.create_session("user-1", "New Chat")

    assert record.id == SESSION_ROW["id"]
    request = requests[0]
    assert request.method == "POST"
    assert request.url.path == "/rest/v1/chat_sessions"
    assert request.headers["Prefer"] == "return=representation"
    assert request.headers["apikey"] == "anon-key"
    assert request.headers["Authorization"] == "Bearer user-jwt"
    assert json.loads(request.content) == {"user_id": "user-1", "title": "New Chat"}


@pytest.mark.asyncio
async def test_list_sessions_filters_by_user_newest_first():
    store, requests = _make_store(lambda request: httpx.Response(200, json=[SESSION_ROW]))

    records = await store.list_sessions("user-1")

    assert [record.title for record in records] == ["New Chat"]
    params = requests[0].url.params
    assert params["user_id"] == "eq.user-1"
    assert params["order"] == "updated_at.desc"


@pytest.mark.asyncio
async def test_update_session_patches_title_and_updated_at():
    renamed = {**SESSION_ROW, "title": "Deposit dispute"}
    store, requests = _make_store(lambda request: httpx.Response(200, json=[renamed]))

    record = await store.update_session(SESSION_ROW["id"], title="Deposit dispute")

    assert record.title == "Deposit dispute"
    body = json.loads(requests[0].content)
    assert body["title"] == "Deposit dispute"
    assert "updated_at" in body
    assert requests[0].url.params["id"] == f"eq.{SESSION_ROW['id']}"


@pytest.mark.asyncio
async def test_create_message_sends_metadata_and_timestamp():
    store, requests = _make_store(lambda request: httpx.Response(201, json=[MESSAGE_ROW]))

    record = await store.create_message(
        NewMessageRecord(
            id="msg-1",
            session_id=SESSION_ROW["id"],
            type="ai",
            content="Hello",
            legal_references=[LegalReference(section="Article 21", description="Life")],
        )
    )

    assert record.legal_references[0].section == "Article 21"
    body = json.loads(requests[0].content)
    assert body["id"] == "msg-1"
    assert body["legal_references"] == [{"section": "Article 21", "description": "Life"}]
    assert "action_steps" not in body
    assert "timestamp" in body


@pytest.mark.asyncio
async def test_list_messages_ordered_oldest_first():
    store, requests = _make_store(lambda request: httpx.Response(200, json=[MESSAGE_ROW]))

    records = await store.list_messages(SESSION_ROW["id"])

    assert records[0].id == "msg-1"
    assert requests[0].url.params["order"] == "timestamp.asc"


@pytest.mark.asyncio
async def test_update_message_requires_a_field():
    store, requests = _make_store(lambda request: httpx.Response(200, json=[MESSAGE_ROW]))

    with pytest.raises(ValueError, match="at least one field"):
        await store.update_message("msg-1")
    assert requests == []


@pytest.mark.asyncio
async def test_update_message_patches_content():
    store, requests = _make_store(
        lambda request: httpx.Response(200, json=[{**MESSAGE_ROW, "content": "Edited"}])
    )

    record = await store.update_message("msg-1", content="Edited")

    assert record.content == "Edited"
    assert json.loads(requests[0].content) == {"content": "Edited"}


@pytest.mark.asyncio
async def test_delete_operations_use_eq_filters():
    store, requests = _make_store(lambda request: httpx.Response(204))

    await store.delete_session("s1")
    await store.delete_messages("s1")

    assert [request.method for request in requests] == ["DELETE", "DELETE"]
    assert requests[0].url.params["id"] == "eq.s1"
    assert requests[1].url.params["session_id"] == "eq.s1"


@pytest.mark.asyncio
async def test_http_error_raises_chat_store_error():
    store, _ = _make_store(lambda request: httpx.Response(401, json={"message": "JWT expired"}))

    with pytest.raises(ChatStoreError) as exc_info:
        await store.list_sessions("user-1")

    assert exc_info.value.operation == "list_sessions"
    assert "401" in exc_info.value.message


@pytest.mark.asyncio
async def test_transport_error_raises_chat_store_error():
    def _fail(request):
        raise httpx.ConnectError("connection refused", request=request)

    store, _ = _make_store(_fail)

    with pytest.raises(ChatStoreError, match="ConnectError"):
        await store.create_session("user-1", "New Chat")


@pytest.mark.asyncio
async def test_conflict_raises_duplicate_record_error():
    store, _ = _make_store(
        lambda request: httpx.Response(
            409, json={"code": "23505", "message": "duplicate key value violates unique constraint"}
        )
    )

    with pytest.raises(DuplicateRecordError) as exc_info:
        await store.create_message(
            NewMessageRecord(id="msg-1", session_id="s1", type="user", content="Hi")
        )

    assert exc_info.value.operation == "create_message"


@pytest.mark.asyncio
async def test_non_json_success_body_raises_chat_store_error():
    store, _ = _make_store(lambda request: httpx.Response(200, text="<html>gateway</html>"))

    with pytest.raises(ChatStoreError, match="Invalid JSON response"):
        await store.list_sessions("user-1")


@pytest.mark.asyncio
async def test_unexpected_row_shape_raises_chat_store_error():
    store, _ = _make_store(lambda request: httpx.Response(201, json=[{"id": "msg-1"}]))

    with pytest.raises(ChatStoreError) as exc_info:
        await store.create_message(
            NewMessageRecord(id="msg-1", session_id="s1", type="user", content="Hi")
        )

    assert exc_info.value.operation == "create_message"
    assert not isinstance(exc_info.value, DuplicateRecordError)


@pytest.mark.asyncio
async def test_empty_representation_raises():
    store, _ = _make_store(lambda request: httpx.Response(201, json=[]))

    with pytest.raises(ChatStoreError, match="No row returned"):
        await store.create_session("user-1", "New Chat")


@pytest.mark.asyncio
async def test_close_closes_client():
    store, _ = _make_store(lambda request: httpx.Response(200, json=[]))

    await store.close()

    assert store.client.is_closed

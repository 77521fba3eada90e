"""HttpChatApi against a FastAPI stand-in of the REST collaborator."""
from __future__ import annotations

from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from chat_client.application.dto.message import AttachmentDTO, SendMessageDTO
from chat_client.application.exceptions import ApiError
from chat_client.domain.value_objects.enums import DisappearingDuration, ReactionKind
from chat_client.infrastructure.http.client import HttpChatApi
from tests.conftest import ME, PEER


def _message(message_id: str, content: str = "hi", **extra: Any) -> dict[str, Any]:
    return {
        "id": message_id,
        "senderId": PEER,
        "receiverId": ME,
        "content": content,
        "imageUrl": None,
        "isRead": False,
        "createdAt": "2026-10-18T12:00:00.000Z",
        **extra,
    }


def create_stand_in() -> tuple[FastAPI, dict[str, Any]]:
    app = FastAPI()
    state: dict[str, Any] = {"received": [], "archived": [], "disappearing": {}}

    @app.get("/api/messages/threads")
    async def threads():
        return [{
            "user": {"id": PEER, "firstName": "Ada", "lastName": "L", "profileImageUrl": None},
            "lastMessage": _message("msg_2", "latest"),
            "unreadCount": 3,
        }]

    @app.get("/api/messages/unread-count")
    async def unread():
        return {"count": 3}

    @app.get("/api/messages/{peer_id}")
    async def history(peer_id: str):
        if peer_id == "ghost":
            return JSONResponse({"message": "Failed to fetch messages"}, status_code=500)
        if peer_id == "garbled":
            return [{"id": "msg_1"}]
        return [_message("msg_1"), _message("msg_2", "latest")]

    @app.post("/api/messages")
    async def send(request: Request):
        body = await request.json()
        state["received"].append(body)
        if body["receiverId"] == "blocked":
            return JSONResponse({"message": "You cannot message this user"}, status_code=403)
        return JSONResponse(
            _message("msg_42", body["content"], senderId=ME, receiverId=body["receiverId"]),
            status_code=201,
        )

    @app.post("/api/messages/with-attachment")
    async def send_with_attachment(request: Request):
        form = await request.form()
        upload = form["attachment"]
        state["upload"] = (upload.filename, await upload.read(), upload.content_type)
        return JSONResponse(
            _message(
                "msg_43", form.get("content") or "[Image]",
                senderId=ME, receiverId=form["receiverId"], imageUrl="https://cdn.test/cat.png",
            ),
            status_code=201,
        )

    @app.delete("/api/messages/{message_id}")
    async def delete(message_id: str):
        return {"success": True}

    @app.get("/api/messages/{message_id}/reactions")
    async def reactions(message_id: str):
        return [
            {"id": "r1", "messageId": message_id, "userId": PEER, "emoji": "heart"},
            {"id": "r2", "messageId": message_id, "userId": ME, "reaction": "laugh"},
        ]

    @app.post("/api/messages/{message_id}/reactions")
    async def add_reaction(message_id: str, request: Request):
        body = await request.json()
        return {"id": "r3", "messageId": message_id, "userId": ME, "emoji": body["reaction"]}

    @app.delete("/api/messages/{message_id}/reactions")
    async def remove_reaction(message_id: str):
        return {"success": True}

    @app.get("/api/conversations/archived")
    async def archived():
        return [{"otherUserId": peer} for peer in state["archived"]]

    @app.post("/api/conversations/{peer_id}/archive")
    async def archive(peer_id: str):
        state["archived"].append(peer_id)
        return {"success": True}

    @app.delete("/api/conversations/{peer_id}/archive")
    async def unarchive(peer_id: str):
        state["archived"].remove(peer_id)
        return {"success": True}

    @app.post("/api/conversations/{peer_id}/read")
    async def mark_read(peer_id: str):
        state["read"] = peer_id
        return {"success": True}

    @app.get("/api/conversations/{peer_id}/disappearing")
    async def get_disappearing(peer_id: str):
        duration = state["disappearing"].get(peer_id, 0)
        return {"isEnabled": duration > 0, "duration": duration}

    @app.post("/api/conversations/{peer_id}/disappearing")
    async def set_disappearing(peer_id: str, request: Request):
        state["disappearing"][peer_id] = (await request.json())["duration"]
        return {"success": True}

    @app.get("/api/auth/ws-token")
    async def ws_token(request: Request):
        if request.headers.get("authorization") != "Bearer session-token":
            return JSONResponse({"message": "Unauthorized"}, status_code=401)
        return {"token": "ws-token-1"}

    return app, state


@pytest.fixture
def stand_in():
    return create_stand_in()


@pytest_asyncio.fixture
async def api(stand_in):
    app, _ = stand_in
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
        headers={"Authorization": "Bearer session-token"},
    ) as client:
        yield HttpChatApi("http://testserver", client=client)


@pytest.mark.asyncio
async def test_list_threads(api):
    threads = await api.list_threads()

    assert len(threads) == 1
    assert threads[0].user.display_name == "Ada L"
    assert threads[0].unread_count == 3
    assert threads[0].last_message.content == "latest"


@pytest.mark.asyncio
async def test_list_messages(api):
    messages = await api.list_messages(PEER)

    assert [m.id for m in messages] == ["msg_1", "msg_2"]
    assert messages[0].created_at.utcoffset().total_seconds() == 0


@pytest.mark.asyncio
async def test_server_error_message_becomes_api_error(api):
    with pytest.raises(ApiError) as exc_info:
        await api.list_messages("ghost")

    assert exc_info.value.status_code == 500
    assert exc_info.value.detail == "Failed to fetch messages"


@pytest.mark.asyncio
async def test_malformed_payload_becomes_api_error(api):
    with pytest.raises(ApiError):
        await api.list_messages("garbled")


@pytest.mark.asyncio
async def test_send_message_posts_camel_case(api, stand_in):
    _, state = stand_in

    message = await api.send_message(SendMessageDTO(receiver_id=PEER, content="Meet at 5?", product_id="p1"))

    assert message.id == "msg_42"
    assert message.sender_id == ME
    assert state["received"] == [{"receiverId": PEER, "content": "Meet at 5?", "productId": "p1"}]


@pytest.mark.asyncio
async def test_send_message_rejected(api):
    with pytest.raises(ApiError) as exc_info:
        await api.send_message(SendMessageDTO(receiver_id="blocked", content="hi"))

    assert exc_info.value.status_code == 403
    assert exc_info.value.detail == "You cannot message this user"


@pytest.mark.asyncio
async def test_send_attachment_is_multipart(api, stand_in):
    _, state = stand_in

    message = await api.send_attachment(
        SendMessageDTO(receiver_id=PEER, content=""),
        AttachmentDTO(filename="cat.png", data=b"\x89PNG", content_type="image/png"),
    )

    assert message.image_url == "https://cdn.test/cat.png"
    assert state["upload"] == ("cat.png", b"\x89PNG", "image/png")


@pytest.mark.asyncio
async def test_reactions_accept_both_field_names(api):
    reactions = await api.list_reactions("msg_1")
    assert [r.reaction for r in reactions] == [ReactionKind.HEART, ReactionKind.LAUGH]

    added = await api.add_reaction("msg_1", ReactionKind.SAD)
    assert added.reaction is ReactionKind.SAD

    await api.remove_reaction("msg_1")
    await api.delete_message("msg_1")


@pytest.mark.asyncio
async def test_conversation_settings(api, stand_in):
    _, state = stand_in

    await api.archive(PEER)
    assert await api.list_archived() == [PEER]
    await api.unarchive(PEER)
    assert await api.list_archived() == []

    await api.mark_read(PEER)
    assert state["read"] == PEER

    assert await api.get_disappearing(PEER) is DisappearingDuration.OFF
    await api.set_disappearing(PEER, DisappearingDuration.NINETY_DAYS)
    assert await api.get_disappearing(PEER) is DisappearingDuration.NINETY_DAYS
    assert await api.unread_count() == 3


@pytest.mark.asyncio
async def test_fetch_ws_token(api):
    assert await api.fetch_ws_token() == "ws-token-1"


@pytest.mark.asyncio
async def test_transport_failure_has_no_status():
    def _refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(_refuse), base_url="http://testserver") as client:
        api = HttpChatApi("http://testserver", client=client)
        with pytest.raises(ApiError) as exc_info:
            await api.unread_count()

    assert exc_info.value.status_code is None

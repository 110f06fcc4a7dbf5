"""
Test suite for WebSocket message handlers.

Tests handler flows and sender validation using mock WebSockets.

Run with: pytest test_handlers.py -v
"""

import pytest

from handlers import (
    HANDLERS,
    ConnectionContext,
    handle_create_room,
    handle_join_room,
    handle_ready_update,
    handle_request_room_list,
    handle_send_action,
)
from models.messages import parse_client_message
from room import Connection, RoomManager


# =============================================================================
# Mock helpers
# =============================================================================

class MockWebSocket:
    """Mock WebSocket that collects sent messages."""

    def __init__(self):
        self.messages: list[dict] = []

    async def send_json(self, data: dict):
        self.messages.append(data)


def make_ctx() -> ConnectionContext:
    return ConnectionContext(connection=Connection(websocket=MockWebSocket()))


def drain(ctx: ConnectionContext) -> list[dict]:
    messages = []
    outbox = ctx.connection.outbox
    while not outbox.empty():
        message = outbox.get_nowait()
        if message is not None:
            messages.append(message)
    return messages


def messages_of_type(messages: list[dict], msg_type: str) -> list[dict]:
    return [m for m in messages if m.get("type") == msg_type]


def msg(data: dict):
    return parse_client_message(data)


def player(player_id: str, name: str) -> dict:
    return {"id": player_id, "display_name": name}


async def seated_room(rm: RoomManager, count: int = 2) -> list[ConnectionContext]:
    """Room ABCD hosted by p0 with `count` joined players."""
    host = make_ctx()
    await handle_create_room(msg({"type": "create_room", "room_code": "ABCD", "host": player("p0", "Player 0")}), host, room_manager=rm)
    contexts = [host] + [make_ctx() for _ in range(count - 1)]
    for i, ctx in enumerate(contexts):
        await handle_join_room(msg({"type": "join_room", "room_code": "ABCD", "player": player(f"p{i}", f"Player {i}")}), ctx, room_manager=rm)
    for ctx in contexts:
        drain(ctx)
    return contexts


# =============================================================================
# Lobby handlers
# =============================================================================

class TestLobbyHandlers:

    @pytest.mark.asyncio
    async def test_create_and_join(self):
        rm = RoomManager()
        host, guest = await seated_room(rm, 2)
        room = rm.get_room("ABCD")
        assert set(room.players) == {"p0", "p1"}
        assert host.player_id == "p0"
        assert guest.room_code == "ABCD"

    @pytest.mark.asyncio
    async def test_create_existing_code_is_ignored(self):
        rm = RoomManager()
        await seated_room(rm, 1)
        other = make_ctx()
        await handle_create_room(msg({"type": "create_room", "room_code": "ABCD", "host": player("x", "X")}), other, room_manager=rm)
        assert rm.get_room("ABCD").host_id == "p0"

    @pytest.mark.asyncio
    async def test_creator_hosts_when_named_host_never_joins(self):
        rm = RoomManager()
        creator = make_ctx()
        await handle_create_room(msg({"type": "create_room", "room_code": "ABCD", "host": player("nobody", "Nobody")}), creator, room_manager=rm)
        await handle_join_room(msg({"type": "join_room", "room_code": "ABCD", "player": player("p0", "Player 0")}), creator, room_manager=rm)
        guest = make_ctx()
        await handle_join_room(msg({"type": "join_room", "room_code": "ABCD", "player": player("p1", "Player 1")}), guest, room_manager=rm)
        drain(creator)

        await handle_send_action(msg({
            "type": "send_action",
            "room_code": "ABCD",
            "player_id": "p0",
            "action": {"type": "start_round"},
        }), creator, room_manager=rm)

        assert rm.get_room("ABCD").host_id == "p0"
        assert rm.get_room("ABCD").state.started

    @pytest.mark.asyncio
    async def test_join_missing_room(self):
        rm = RoomManager()
        ctx = make_ctx()
        await handle_join_room(msg({"type": "join_room", "room_code": "NOPE", "player": player("p1", "Bob")}), ctx, room_manager=rm)
        errors = messages_of_type(drain(ctx), "error")
        assert errors == [{"type": "error", "message": "Room NOPE does not exist."}]

    @pytest.mark.asyncio
    async def test_joining_another_room_leaves_the_first(self):
        rm = RoomManager()
        host, guest = await seated_room(rm, 2)
        await handle_create_room(msg({"type": "create_room", "room_code": "WXYZ", "host": player("p1", "Player 1")}), guest, room_manager=rm)
        await handle_join_room(msg({"type": "join_room", "room_code": "WXYZ", "player": player("p1", "Player 1")}), guest, room_manager=rm)

        assert "p1" not in rm.get_room("ABCD").players
        assert "p1" in rm.get_room("WXYZ").players
        assert guest.room_code == "WXYZ"

    @pytest.mark.asyncio
    async def test_request_room_list(self):
        rm = RoomManager()
        await seated_room(rm, 2)
        ctx = make_ctx()
        await handle_request_room_list(msg({"type": "request_room_list"}), ctx, room_manager=rm)
        (listing,) = drain(ctx)
        assert listing["type"] == "room_list"
        assert listing["rooms"] == [{"room_code": "ABCD", "host_name": "Player 0", "player_count": 2, "is_public": True}]

    @pytest.mark.asyncio
    async def test_ready_update(self):
        rm = RoomManager()
        host, guest = await seated_room(rm, 2)
        await handle_ready_update(msg({"type": "ready_update", "room_code": "ABCD", "player_id": "p1", "is_ready": True}), guest, room_manager=rm)
        snapshots = messages_of_type(drain(host), "ready_snapshot")
        assert snapshots[-1]["player_ids"] == ["p1"]

    @pytest.mark.asyncio
    async def test_ready_update_for_someone_else_dropped(self):
        rm = RoomManager()
        host, guest = await seated_room(rm, 2)
        await handle_ready_update(msg({"type": "ready_update", "room_code": "ABCD", "player_id": "p0", "is_ready": True}), guest, room_manager=rm)
        assert rm.get_room("ABCD").ready_players == set()


# =============================================================================
# Game action handler
# =============================================================================

class TestSendAction:

    @pytest.mark.asyncio
    async def test_host_starts_round(self):
        rm = RoomManager()
        host, guest = await seated_room(rm, 2)
        await handle_send_action(msg({
            "type": "send_action",
            "room_code": "ABCD",
            "player_id": "p0",
            "action": {"type": "start_round"},
        }), host, room_manager=rm)

        assert rm.get_room("ABCD").state.started
        update = messages_of_type(drain(guest), "state_updated")[-1]
        assert update["state"]["started"] is True

    @pytest.mark.asyncio
    async def test_spoofed_player_id_dropped(self):
        rm = RoomManager()
        host, guest = await seated_room(rm, 2)
        await handle_send_action(msg({
            "type": "send_action",
            "room_code": "ABCD",
            "player_id": "p0",
            "action": {"type": "start_round"},
        }), guest, room_manager=rm)

        assert not rm.get_room("ABCD").state.started
        assert drain(host) == []

    @pytest.mark.asyncio
    async def test_wrong_room_dropped(self):
        rm = RoomManager()
        host, _ = await seated_room(rm, 2)
        await handle_send_action(msg({
            "type": "send_action",
            "room_code": "WXYZ",
            "player_id": "p0",
            "action": {"type": "start_round"},
        }), host, room_manager=rm)
        assert not rm.get_room("ABCD").state.started

    @pytest.mark.asyncio
    async def test_undecodable_action_dropped(self):
        rm = RoomManager()
        host, guest = await seated_room(rm, 2)
        await handle_send_action(msg({
            "type": "send_action",
            "room_code": "ABCD",
            "player_id": "p0",
            "action": {"type": "launch_rocket"},
        }), host, room_manager=rm)
        assert drain(guest) == []

    @pytest.mark.asyncio
    async def test_leave_unbinds_connection(self):
        rm = RoomManager()
        host, guest = await seated_room(rm, 2)
        await handle_send_action(msg({
            "type": "send_action",
            "room_code": "ABCD",
            "player_id": "p1",
            "action": {"type": "leave", "player_id": "p1"},
        }), guest, room_manager=rm)
        assert guest.room_code is None
        assert "p1" not in rm.get_room("ABCD").players


def test_dispatch_table_covers_client_messages():
    assert set(HANDLERS) == {"create_room", "join_room", "send_action", "request_room_list", "ready_update"}

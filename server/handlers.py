"""WebSocket message handlers for the Crazy Eights room server.

Each handler corresponds to a single client message type. Handlers are
dispatched via the HANDLERS dict in main.py after the message has been
validated by models.messages.parse_client_message().

Every handler takes RoomManager.lock around its room operations and never
awaits socket I/O itself; replies go through the connection's outbox.
"""

import logging
from dataclasses import dataclass

from logging_config import bind_context
from models.actions import Leave, action_from_dict
from models.messages import (
    CreateRoomMessage,
    JoinRoomMessage,
    ReadyUpdateMessage,
    RequestRoomListMessage,
    RoomListMessage,
    SendActionMessage,
)
from room import Connection, RoomManager

logger = logging.getLogger(__name__)


@dataclass
class ConnectionContext:
    """State tracked per WebSocket connection."""

    connection: Connection

    @property
    def connection_id(self) -> str:
        return self.connection.connection_id

    @property
    def player_id(self):
        return self.connection.player_id

    @property
    def room_code(self):
        return self.connection.room_code


# ---------------------------------------------------------------------------
# Lobby / Room handlers
# ---------------------------------------------------------------------------

async def handle_create_room(msg: CreateRoomMessage, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    async with room_manager.lock:
        room = room_manager.create_room(msg.room_code, msg.host, msg.is_public)
    if room is None:
        logger.debug(f"create_room ignored, {msg.room_code} exists")


async def handle_join_room(msg: JoinRoomMessage, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    async with room_manager.lock:
        # One seat per connection: leave whatever this socket joined before
        old_code, old_player = ctx.room_code, ctx.player_id
        if old_code is not None and (old_code != msg.room_code or old_player != msg.player.id):
            room_manager.apply_action(old_code, old_player, Leave(player_id=old_player))

        room = room_manager.join_room(msg.room_code, msg.player, ctx.connection)
    if room is not None:
        bind_context(ctx.connection_id, ctx.room_code, ctx.player_id)


async def handle_request_room_list(msg: RequestRoomListMessage, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    async with room_manager.lock:
        rooms = room_manager.room_list()
    ctx.connection.send(RoomListMessage(rooms=rooms))


async def handle_ready_update(msg: ReadyUpdateMessage, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    if msg.player_id != ctx.player_id or msg.room_code != ctx.room_code:
        logger.debug(f"Dropped ready_update for {msg.player_id} from another connection")
        return
    async with room_manager.lock:
        room_manager.update_ready(msg.room_code, msg.player_id, msg.is_ready)


# ---------------------------------------------------------------------------
# Game action handler
# ---------------------------------------------------------------------------

async def handle_send_action(msg: SendActionMessage, ctx: ConnectionContext, *, room_manager: RoomManager, **kw) -> None:
    # A connection may only act as the player it joined as
    if msg.player_id != ctx.player_id or msg.room_code != ctx.room_code:
        logger.debug(f"Dropped send_action claiming {msg.player_id} in {msg.room_code}")
        return

    try:
        action = action_from_dict(msg.action)
    except ValueError as e:
        logger.debug(f"Dropped undecodable action: {e}")
        return

    async with room_manager.lock:
        room_manager.apply_action(msg.room_code, msg.player_id, action)

    if isinstance(action, Leave) and ctx.room_code is None:
        bind_context(ctx.connection_id)


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

HANDLERS = {
    "create_room": handle_create_room,
    "join_room": handle_join_room,
    "send_action": handle_send_action,
    "request_room_list": handle_request_room_list,
    "ready_update": handle_ready_update,
}

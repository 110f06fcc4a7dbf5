"""
Room management for multiplayer Crazy Eights games.

This module handles room creation, membership, action authorization and
WebSocket fan-out for the relay server. The server is the authoritative
host for every room it holds: each accepted action runs through
game.reduce(is_host=True) and the resulting snapshot is broadcast.

A Room contains:
    - A client-chosen room code
    - Connected peers keyed by player id
    - The authoritative GameState and the room's Settings
    - Ready flags for the lobby

Concurrency:
    RoomManager.lock serializes all message handling across rooms. Nothing
    under the lock awaits I/O; outbound messages are queued on each
    Connection and written by that connection's pump task, so every peer
    receives snapshots in the order actions were applied.
"""

import asyncio
import logging
import random
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from fastapi import WebSocket
from pydantic import BaseModel

from config import config
from constants import OUTBOX_MAX_MESSAGES
from game import GameState, Player, initial_state, reduce
from models.actions import (
    Action,
    AdmitPlayer,
    BlindPlayRandom,
    CallUno,
    HOST_ONLY_ACTIONS,
    IntentDraw,
    IntentPlay,
    Leave,
    StartRound,
    SwapHand,
    referenced_player_ids,
)
from models.messages import (
    ErrorMessage,
    PlayerSnapshot,
    ReadySnapshotMessage,
    RoomJoinedMessage,
    RoomSummary,
    StateUpdatedMessage,
)
from models.settings import Settings
from session import ResultLedger

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Connection:
    """
    One WebSocket connection with an ordered outbox.

    Attributes:
        websocket: The underlying socket.
        connection_id: Unique id for log correlation.
        player_id: Player this connection joined as (None before join_room).
        room_code: Room this connection joined (None before join_room).
        closed: Set once the socket failed or disconnected.
    """

    websocket: WebSocket
    connection_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    player_id: Optional[str] = None
    room_code: Optional[str] = None
    closed: bool = False
    outbox: asyncio.Queue = field(
        default_factory=lambda: asyncio.Queue(maxsize=OUTBOX_MAX_MESSAGES)
    )

    def send(self, message: Any) -> None:
        """Queue a message for delivery. Never blocks; a full outbox closes the connection."""
        if self.closed:
            return
        if isinstance(message, BaseModel):
            message = message.model_dump(mode="json")
        try:
            self.outbox.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(f"Outbox full on {self.connection_id}, dropping connection")
            self._discard_backlog()
            self.close()

    async def pump(self) -> None:
        """Write queued messages to the socket until closed."""
        while True:
            message = await self.outbox.get()
            if message is None:
                break
            try:
                await self.websocket.send_json(message)
            except Exception as e:
                logger.debug(f"Send failed on {self.connection_id}: {e}")
                self.closed = True
                break

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.outbox.full():
            self._discard_backlog()
        self.outbox.put_nowait(None)

    def _discard_backlog(self) -> None:
        while not self.outbox.empty():
            self.outbox.get_nowait()


@dataclass
class ConnectedPeer:
    """A room member: public snapshot plus its live connection."""

    snapshot: PlayerSnapshot
    connection: Connection


@dataclass
class Room:
    """
    A game room hosted by the server.

    Attributes:
        code: Room code chosen by the creator.
        players: Connected peers keyed by player id.
        state: Authoritative game state.
        settings: House rules; kept equal to state.config after every action.
        ready_players: Player ids flagged ready in the lobby.
        is_public: Whether the room appears in room lists.
        host_snapshot: The peer allowed to start rounds and change settings.
    """

    code: str
    players: dict[str, ConnectedPeer] = field(default_factory=dict)
    state: GameState = field(default_factory=GameState)
    settings: Settings = field(default_factory=Settings)
    ready_players: set[str] = field(default_factory=set)
    is_public: bool = True
    host_snapshot: Optional[PlayerSnapshot] = None

    @property
    def host_id(self) -> Optional[str]:
        return self.host_snapshot.id if self.host_snapshot else None

    def is_empty(self) -> bool:
        return len(self.players) == 0

    def player_snapshots(self) -> list[PlayerSnapshot]:
        return [peer.snapshot for peer in self.players.values()]

    def summary(self) -> RoomSummary:
        return RoomSummary(
            room_code=self.code,
            host_name=self.host_snapshot.display_name if self.host_snapshot else "Host",
            player_count=len(self.players),
            is_public=self.is_public,
        )


def _default_settings() -> Settings:
    return Settings.from_dict(config.game_defaults.to_settings_dict())


class RoomManager:
    """
    Manages all rooms held by this server.

    Methods are synchronous and must be called with ``lock`` held; the
    WebSocket handlers take the lock around each inbound message.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        max_players: Optional[int] = None,
    ) -> None:
        self.rooms: dict[str, Room] = {}
        self.lock = asyncio.Lock()
        self.rng = rng if rng is not None else random.Random()
        self.max_players = max_players or config.MAX_PLAYERS_PER_ROOM
        self.results = ResultLedger()

    def get_room(self, code: str) -> Optional[Room]:
        return self.rooms.get(code)

    def create_room(
        self,
        code: str,
        host: PlayerSnapshot,
        is_public: bool = True,
    ) -> Optional[Room]:
        """
        Create a room with a chosen code.

        Returns:
            The new Room, or None if the code is already taken.
        """
        if code in self.rooms:
            logger.debug(f"Room {code} already exists")
            return None
        settings = _default_settings()
        room = Room(
            code=code,
            is_public=is_public,
            host_snapshot=host,
            settings=settings,
            state=initial_state([], settings),
        )
        self.rooms[code] = room
        logger.info(f"Created room {code} host={host.display_name}")
        return room

    def join_room(
        self,
        code: str,
        player: PlayerSnapshot,
        connection: Connection,
    ) -> Optional[Room]:
        """
        Add a peer to a room and broadcast the roster.

        Sends an error to the joiner if the room does not exist or is full.
        Before a round starts the pre-game state is rebuilt so it lists every
        member; during a round the joiner is dealt in when join-in-progress
        is enabled and otherwise watches.
        """
        room = self.rooms.get(code)
        if room is None:
            connection.send(ErrorMessage(message=f"Room {code} does not exist."))
            logger.info(f"Join failed: {code} not found for {player.display_name}")
            return None

        if player.id not in room.players and len(room.players) >= self.max_players:
            connection.send(ErrorMessage(message=f"Room {code} is full."))
            return None

        room.players[player.id] = ConnectedPeer(snapshot=player, connection=connection)
        connection.player_id = player.id
        connection.room_code = code
        if room.host_id not in room.players:
            # The named host never joined; the first member to arrive hosts
            room.host_snapshot = player
        room.ready_players.discard(player.id)

        if not room.state.started:
            room.settings = replace(room.state.config)
            room.state = self._roster_state(room)
        elif room.state.index_of(player.id) is None:
            admitted = reduce(
                room.state,
                AdmitPlayer(player_id=player.id, name=player.display_name),
                is_host=True,
                rng=self.rng,
            )
            if admitted is not room.state:
                logger.info(f"{player.display_name} dealt into running round in {code}")
            room.state = admitted

        logger.info(f"{player.display_name} joined {code}. Players={len(room.players)}")
        self._broadcast(room, RoomJoinedMessage(
            room_code=code,
            players=room.player_snapshots(),
            state=room.state.to_dict(),
        ))
        self._broadcast_ready(room)
        return room

    def _roster_state(self, room: Room) -> GameState:
        """Fresh pre-game state seating every member by (display name, id)."""
        snapshots = sorted(room.player_snapshots(), key=lambda s: (s.display_name, s.id))
        state = initial_state(
            [Player(id=s.id, name=s.display_name) for s in snapshots],
            room.settings,
        )
        if room.host_id is not None and state.index_of(room.host_id) is not None:
            state.host_id = room.host_id
        return state

    def authorize(self, room: Room, sender_id: str, action: Action) -> bool:
        """
        Basic authorization for an inbound action.

        The sender and every player the action names must be members,
        host-only actions must come from the room host, and actions taken
        on a player's behalf must come from that player.
        """
        if sender_id not in room.players:
            return False
        if any(pid not in room.players for pid in referenced_player_ids(action)):
            return False
        if isinstance(action, HOST_ONLY_ACTIONS) and sender_id != room.host_id:
            return False
        if isinstance(action, (IntentDraw, CallUno, BlindPlayRandom, Leave)):
            return action.player_id == sender_id
        if isinstance(action, (IntentPlay, SwapHand)):
            return room.state.current_player_id == sender_id
        return True

    def apply_action(self, code: str, sender_id: str, action: Action) -> bool:
        """
        Run an action through the authoritative reducer and broadcast.

        The resulting snapshot is broadcast even when the reducer rejected
        the action, so optimistic peers roll back.

        Returns:
            True if the action changed the state.
        """
        room = self.rooms.get(code)
        if room is None:
            return False
        if not self.authorize(room, sender_id, action):
            logger.debug(f"Dropped {action.type.value} from {sender_id} in {code}")
            return False

        working = room.state
        if isinstance(action, StartRound) and not working.started:
            working = self._roster_state(room)

        new_state = reduce(working, action, is_host=True, rng=self.rng)
        applied = new_state is not working
        room.state = new_state
        room.settings = replace(new_state.config)

        if self.results.credit(new_state):
            winner = room.players.get(new_state.winner_id)
            name = winner.snapshot.display_name if winner else new_state.winner_id
            logger.info(f"Round {new_state.round_id} in {code} won by {name}")

        self._broadcast(room, StateUpdatedMessage(state=new_state.to_dict()))

        if isinstance(action, Leave) and self._remove_peer(room, action.player_id):
            self._broadcast_ready(room)
        return applied

    def update_ready(self, code: str, player_id: str, is_ready: bool) -> bool:
        room = self.rooms.get(code)
        if room is None or player_id not in room.players:
            return False
        if is_ready:
            room.ready_players.add(player_id)
        else:
            room.ready_players.discard(player_id)
        self._broadcast_ready(room)
        return True

    def room_list(self) -> list[RoomSummary]:
        """Public, non-empty rooms."""
        return [
            room.summary()
            for room in sorted(self.rooms.values(), key=lambda r: r.code)
            if room.is_public and not room.is_empty()
        ]

    def handle_disconnect(self, connection: Connection) -> None:
        """
        Drop a closed connection's peer and let the others converge.

        Nothing happens if a broadcast already pruned the peer or a newer
        connection took over its seat.
        """
        connection.close()
        room = self.rooms.get(connection.room_code) if connection.room_code else None
        if room is None:
            return
        peer = room.players.get(connection.player_id)
        if peer is None or peer.connection is not connection:
            return
        logger.info(f"{peer.snapshot.display_name} disconnected from {room.code}")
        self._drop_peer(room, connection.player_id)

    def _drop_peer(self, room: Room, player_id: str) -> None:
        """
        Remove a peer whose connection is gone.

        The departure runs through the reducer as a Leave so the remaining
        peers get a consistent table, then the host is reassigned if needed.
        """
        room.state = reduce(room.state, Leave(player_id=player_id), is_host=True, rng=self.rng)
        room.settings = replace(room.state.config)
        if self._remove_peer(room, player_id):
            self._broadcast(room, StateUpdatedMessage(state=room.state.to_dict()))
            self._broadcast_ready(room)

    def _remove_peer(self, room: Room, player_id: str) -> bool:
        """
        Remove a member, reassigning the host or deleting the room.

        Returns:
            True if the room still exists afterwards.
        """
        peer = room.players.pop(player_id, None)
        room.ready_players.discard(player_id)
        if peer is not None and peer.connection.player_id == player_id:
            peer.connection.room_code = None

        if room.is_empty():
            self._delete_room(room)
            return False

        if room.host_id == player_id:
            room.host_snapshot = next(iter(room.players.values())).snapshot
            room.state = replace(room.state, host_id=room.host_id)
            logger.info(f"Host left {room.code}; new host={room.host_snapshot.display_name}")

        logger.info(f"{player_id} left {room.code}. Players={len(room.players)}")
        return True

    def _delete_room(self, room: Room) -> None:
        if self.rooms.get(room.code) is room:
            del self.rooms[room.code]
            logger.info(f"Room {room.code} emptied, deleting")

    def _broadcast(self, room: Room, message: BaseModel) -> None:
        """Queue a message for every open connection, then drop closed ones."""
        payload = message.model_dump(mode="json")
        closed = []
        for player_id, peer in list(room.players.items()):
            if peer.connection.closed:
                closed.append(player_id)
                continue
            peer.connection.send(payload)
        for player_id in closed:
            peer = room.players.get(player_id)
            if peer is not None and peer.connection.closed:
                logger.info(f"Pruning closed connection for {player_id} in {room.code}")
                self._drop_peer(room, player_id)

    def _broadcast_ready(self, room: Room) -> None:
        self._broadcast(room, ReadySnapshotMessage(player_ids=sorted(room.ready_players)))

    def metrics(self) -> dict:
        return {
            "active_rooms": len(self.rooms),
            "total_players": sum(len(r.players) for r in self.rooms.values()),
            "rounds_in_progress": sum(1 for r in self.rooms.values() if r.state.started),
        }

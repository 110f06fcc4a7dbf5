"""
Transport capability used by peer sessions.

A GameTransport moves two kinds of payloads between the peers of one room:
actions (guest -> host) and state snapshots (host -> everyone). Sessions
only talk to this interface, so the same GameSession runs in-process over
a LoopbackHub or across machines over the Redis relay.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from stores.pubsub import GameRelay, MessageType, RelayMessage

if TYPE_CHECKING:
    from game import GameState
    from models.actions import Action

logger = logging.getLogger(__name__)


class PayloadKind(str, Enum):
    ACTION = "action"
    STATE = "state"


@dataclass
class TransportMessage:
    """
    A payload delivered by a transport.

    Attributes:
        kind: Whether payload is an encoded action or a state snapshot.
        payload: The JSON-ready document.
        sender_id: Peer that sent it, when known.
    """

    kind: PayloadKind
    payload: dict
    sender_id: Optional[str] = None


MessageHandler = Callable[[TransportMessage], Awaitable[None]]
PeerHandler = Callable[[str], Awaitable[None]]


class GameTransport(ABC):
    """Abstract peer transport with handler registration."""

    def __init__(self) -> None:
        self._message_handlers: list[MessageHandler] = []
        self._connected_handlers: list[PeerHandler] = []
        self._disconnected_handlers: list[PeerHandler] = []

    @abstractmethod
    async def send(self, action: "Action") -> None:
        """Deliver an action toward the host."""

    @abstractmethod
    async def broadcast(self, state: "GameState") -> None:
        """Deliver a state snapshot to every other peer."""

    def on_message(self, handler: MessageHandler) -> None:
        self._message_handlers.append(handler)

    def on_peer_connected(self, handler: PeerHandler) -> None:
        self._connected_handlers.append(handler)

    def on_peer_disconnected(self, handler: PeerHandler) -> None:
        self._disconnected_handlers.append(handler)

    async def _dispatch_message(self, message: TransportMessage) -> None:
        for handler in list(self._message_handlers):
            await handler(message)

    async def _dispatch_connected(self, peer_id: str) -> None:
        for handler in list(self._connected_handlers):
            await handler(peer_id)

    async def _dispatch_disconnected(self, peer_id: str) -> None:
        for handler in list(self._disconnected_handlers):
            await handler(peer_id)


class LoopbackHub:
    """
    In-process room for local play and tests.

    Delivery is immediate and in call order, so every guest sees snapshots
    in the order the host produced them.
    """

    def __init__(self) -> None:
        self.peers: dict[str, "LoopbackTransport"] = {}
        self.host_id: Optional[str] = None

    async def connect(self, peer_id: str, is_host: bool = False) -> "LoopbackTransport":
        transport = LoopbackTransport(self, peer_id)
        if is_host:
            self.host_id = peer_id
        existing = list(self.peers.values())
        self.peers[peer_id] = transport
        for other in existing:
            await other._dispatch_connected(peer_id)
        return transport

    async def disconnect(self, peer_id: str) -> None:
        if self.peers.pop(peer_id, None) is None:
            return
        if self.host_id == peer_id:
            self.host_id = None
        for other in list(self.peers.values()):
            await other._dispatch_disconnected(peer_id)


class LoopbackTransport(GameTransport):
    """One peer's endpoint on a LoopbackHub."""

    def __init__(self, hub: LoopbackHub, peer_id: str) -> None:
        super().__init__()
        self.hub = hub
        self.peer_id = peer_id

    async def send(self, action: "Action") -> None:
        host = self.hub.peers.get(self.hub.host_id) if self.hub.host_id else None
        if host is None:
            logger.debug(f"No host to receive {action.type.value} from {self.peer_id}")
            return
        await host._dispatch_message(TransportMessage(
            kind=PayloadKind.ACTION,
            payload=action.to_dict(),
            sender_id=self.peer_id,
        ))

    async def broadcast(self, state: "GameState") -> None:
        snapshot = state.to_dict()
        for peer_id, peer in list(self.hub.peers.items()):
            if peer_id == self.peer_id:
                continue
            await peer._dispatch_message(TransportMessage(
                kind=PayloadKind.STATE,
                payload=snapshot,
                sender_id=self.peer_id,
            ))

    async def close(self) -> None:
        await self.hub.disconnect(self.peer_id)


class RelayTransport(GameTransport):
    """
    GameTransport over the Redis room relay.

    Actions are only delivered to the host's transport and snapshots only
    to guests, so a peer never reacts to traffic meant for the other role.
    """

    def __init__(
        self,
        relay: GameRelay,
        room_code: str,
        peer_id: str,
        is_host: bool = False,
    ) -> None:
        super().__init__()
        self.relay = relay
        self.room_code = room_code
        self.peer_id = peer_id
        self.is_host = is_host

    async def start(self) -> None:
        await self.relay.subscribe(self.room_code, self._on_relay_message)
        await self._publish(MessageType.PEER_JOINED, {"peer_id": self.peer_id})

    async def close(self) -> None:
        await self._publish(MessageType.PEER_LEFT, {"peer_id": self.peer_id})
        await self.relay.remove_handler(self.room_code, self._on_relay_message)

    async def send(self, action: "Action") -> None:
        await self._publish(MessageType.ACTION, {"action": action.to_dict()})

    async def broadcast(self, state: "GameState") -> None:
        await self._publish(MessageType.STATE, {"state": state.to_dict()})

    async def _publish(self, message_type: MessageType, data: dict) -> None:
        await self.relay.publish(RelayMessage(
            type=message_type,
            room_code=self.room_code,
            data=data,
            sender_id=self.peer_id,
        ))

    async def _on_relay_message(self, message: RelayMessage) -> None:
        if message.sender_id == self.peer_id:
            return

        if message.type == MessageType.ACTION:
            if self.is_host and isinstance(message.data.get("action"), dict):
                await self._dispatch_message(TransportMessage(
                    kind=PayloadKind.ACTION,
                    payload=message.data["action"],
                    sender_id=message.sender_id,
                ))
        elif message.type == MessageType.STATE:
            if not self.is_host and isinstance(message.data.get("state"), dict):
                await self._dispatch_message(TransportMessage(
                    kind=PayloadKind.STATE,
                    payload=message.data["state"],
                    sender_id=message.sender_id,
                ))
        elif message.type == MessageType.PEER_JOINED:
            await self._dispatch_connected(str(message.data.get("peer_id", message.sender_id)))
        elif message.type == MessageType.PEER_LEFT:
            await self._dispatch_disconnected(str(message.data.get("peer_id", message.sender_id)))

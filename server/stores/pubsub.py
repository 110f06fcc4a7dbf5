"""
Redis pub/sub relay for peer-hosted Crazy Eights rooms.

When a room is hosted by one of its peers instead of by this server, the
peers still need a way to reach each other. Each room gets its own Redis
channel; guests publish actions on it, the host publishes state snapshots,
and presence changes are announced so the host can re-broadcast.

This module provides:
- One channel per room for targeted relaying
- Message types for actions, state snapshots and presence
- Async listener loop dispatching to per-room handlers
- Echo suppression by sender id

Usage:
    relay = GameRelay(redis_client)
    await relay.start()

    async def handle_message(msg: RelayMessage):
        print(f"Received: {msg.type} for room {msg.room_code}")

    await relay.subscribe("ABCD", handle_message)

    await relay.publish(RelayMessage(
        type=MessageType.STATE,
        room_code="ABCD",
        data={"state": {...}},
    ))

    await relay.stop()
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

import redis.asyncio as redis

from constants import RELAY_CHANNEL_PREFIX

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    """Types of messages carried on a room channel."""

    # Guest -> host: an action to apply
    ACTION = "action"

    # Host -> guests: authoritative state snapshot
    STATE = "state"

    # Presence
    PEER_JOINED = "peer_joined"
    PEER_LEFT = "peer_left"


@dataclass
class RelayMessage:
    """
    Message sent via Redis pub/sub.

    Attributes:
        type: Message type (determines how handlers process it).
        room_code: Room this message is for.
        data: Message payload (type-specific).
        sender_id: Id of the publisher, used to drop our own echoes.
    """

    type: MessageType
    room_code: str
    data: dict
    sender_id: Optional[str] = None

    def to_json(self) -> str:
        """Serialize to JSON for Redis."""
        return json.dumps({
            "type": self.type.value,
            "room_code": self.room_code,
            "data": self.data,
            "sender_id": self.sender_id,
        })

    @classmethod
    def from_json(cls, raw: str) -> "RelayMessage":
        """
        Deserialize from JSON.

        Raises:
            ValueError: If the payload is not a relay message.
        """
        d = json.loads(raw)
        try:
            return cls(
                type=MessageType(d["type"]),
                room_code=d["room_code"],
                data=d.get("data") or {},
                sender_id=d.get("sender_id"),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed relay message: {e}") from e


# Type alias for message handlers
MessageHandler = Callable[[RelayMessage], Awaitable[None]]


class GameRelay:
    """
    Redis pub/sub relay for room channels.

    Manages subscriptions to room channels and dispatches incoming
    messages to registered handlers.
    """

    CHANNEL_PREFIX = RELAY_CHANNEL_PREFIX

    def __init__(
        self,
        redis_client: redis.Redis,
        server_id: str = "default",
    ):
        """
        Initialize the relay with a Redis client.

        Args:
            redis_client: Async Redis client.
            server_id: Default sender id for messages published without one.
        """
        self.redis = redis_client
        self.server_id = server_id
        self.pubsub = redis_client.pubsub()
        self._handlers: dict[str, list[MessageHandler]] = {}
        self._running = False
        self._task: Optional[asyncio.Task] = None

    def _channel(self, room_code: str) -> str:
        """Get Redis channel name for a room."""
        return f"{self.CHANNEL_PREFIX}{room_code}"

    async def subscribe(self, room_code: str, handler: MessageHandler) -> None:
        """
        Subscribe to a room channel.

        Args:
            room_code: Room to subscribe to.
            handler: Async function to call on each message.
        """
        channel = self._channel(room_code)
        if channel not in self._handlers:
            self._handlers[channel] = []
            await self.pubsub.subscribe(channel)
            logger.debug(f"Subscribed to channel {channel}")
        self._handlers[channel].append(handler)

    async def unsubscribe(self, room_code: str) -> None:
        channel = self._channel(room_code)
        if channel in self._handlers:
            del self._handlers[channel]
            await self.pubsub.unsubscribe(channel)
            logger.debug(f"Unsubscribed from channel {channel}")

    async def remove_handler(self, room_code: str, handler: MessageHandler) -> None:
        """
        Remove one handler, unsubscribing when none remain.

        Args:
            room_code: Room the handler was registered for.
            handler: Handler to remove.
        """
        channel = self._channel(room_code)
        if channel in self._handlers:
            handlers = self._handlers[channel]
            if handler in handlers:
                handlers.remove(handler)
            if not handlers:
                await self.unsubscribe(room_code)

    async def publish(self, message: RelayMessage) -> int:
        """
        Publish a message to a room's channel.

        Returns:
            Number of subscribers that received the message.
        """
        if message.sender_id is None:
            message.sender_id = self.server_id
        channel = self._channel(message.room_code)
        count = await self.redis.publish(channel, message.to_json())
        logger.debug(f"Published {message.type.value} to {channel} ({count} receivers)")
        return count

    async def start(self) -> None:
        """Start listening for messages."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._listen())
        logger.info("GameRelay listener started")

    async def stop(self) -> None:
        """Stop listening and clean up."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        await self.pubsub.close()
        self._handlers.clear()
        logger.info("GameRelay listener stopped")

    async def _listen(self) -> None:
        """Main listener loop."""
        while self._running:
            try:
                message = await self.pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=1.0,
                )
                if message and message["type"] == "message":
                    await self._handle_message(message)

            except asyncio.CancelledError:
                break
            except redis.ConnectionError as e:
                logger.error(f"Relay connection error: {e}")
                await asyncio.sleep(1)
            except Exception as e:
                logger.error(f"Relay listener error: {e}", exc_info=True)
                await asyncio.sleep(1)

    async def _handle_message(self, raw_message: dict) -> None:
        """Handle an incoming Redis message."""
        try:
            channel = raw_message["channel"]
            if isinstance(channel, bytes):
                channel = channel.decode()

            data = raw_message["data"]
            if isinstance(data, bytes):
                data = data.decode()

            msg = RelayMessage.from_json(data)

            # Skip messages from ourselves
            if msg.sender_id == self.server_id:
                return

            for handler in list(self._handlers.get(channel, [])):
                try:
                    await handler(msg)
                except Exception as e:
                    logger.error(f"Error in relay handler: {e}", exc_info=True)

        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            logger.warning(f"Invalid relay message: {e}")

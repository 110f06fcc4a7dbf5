"""Stores package for the Crazy Eights relay."""

from .pubsub import GameRelay, RelayMessage, MessageType

__all__ = [
    "GameRelay",
    "RelayMessage",
    "MessageType",
]

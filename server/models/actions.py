"""
Player intents understood by the Crazy Eights engine.

Actions are plain immutable records. Peers send them toward the host, the
host feeds them to game.reduce(), and only the resulting state is broadcast
back. Every action round-trips through to_dict()/action_from_dict() so it
can ride inside a send_action wire message or a relay payload.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from cards import Card, Color

from .settings import Settings


class ActionType(str, Enum):
    """All action types accepted by the reducer."""

    START_ROUND = "start_round"
    UPDATE_SETTINGS = "update_settings"
    INTENT_DRAW = "intent_draw"
    INTENT_PLAY = "intent_play"
    CALL_UNO = "call_uno"
    SWAP_HAND = "swap_hand"
    BLIND_PLAY_RANDOM = "blind_play_random"
    LEAVE = "leave"
    ADMIT_PLAYER = "admit_player"


@dataclass(frozen=True)
class StartRound:
    """Host deals a fresh round."""

    type = ActionType.START_ROUND

    def to_dict(self) -> dict:
        return {"type": self.type.value}


@dataclass(frozen=True)
class UpdateSettings:
    """Host replaces the active settings snapshot."""

    settings: Settings
    type = ActionType.UPDATE_SETTINGS

    def to_dict(self) -> dict:
        return {"type": self.type.value, "settings": self.settings.to_dict()}


@dataclass(frozen=True)
class IntentDraw:
    player_id: str
    type = ActionType.INTENT_DRAW

    def to_dict(self) -> dict:
        return {"type": self.type.value, "player_id": self.player_id}


@dataclass(frozen=True)
class IntentPlay:
    """
    The current player plays a card.

    Attributes:
        card: The card to play (must be in the current player's hand).
        chosen_color: Color called for a wild card.
        target_id: Shot-caller target for wilds, or fog target.
    """

    card: Card
    chosen_color: Optional[Color] = None
    target_id: Optional[str] = None
    type = ActionType.INTENT_PLAY

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "card": self.card.to_dict(),
            "chosen_color": self.chosen_color.value if self.chosen_color else None,
            "target_id": self.target_id,
        }


@dataclass(frozen=True)
class CallUno:
    player_id: str
    type = ActionType.CALL_UNO

    def to_dict(self) -> dict:
        return {"type": self.type.value, "player_id": self.player_id}


@dataclass(frozen=True)
class SwapHand:
    """Resolve a pending seven-rule swap against target_id."""

    target_id: str
    type = ActionType.SWAP_HAND

    def to_dict(self) -> dict:
        return {"type": self.type.value, "target_id": self.target_id}


@dataclass(frozen=True)
class BlindPlayRandom:
    player_id: str
    type = ActionType.BLIND_PLAY_RANDOM

    def to_dict(self) -> dict:
        return {"type": self.type.value, "player_id": self.player_id}


@dataclass(frozen=True)
class Leave:
    player_id: str
    type = ActionType.LEAVE

    def to_dict(self) -> dict:
        return {"type": self.type.value, "player_id": self.player_id}


@dataclass(frozen=True)
class AdmitPlayer:
    """Seat a late joiner into a running round (join-in-progress)."""

    player_id: str
    name: str
    type = ActionType.ADMIT_PLAYER

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "player": {"id": self.player_id, "name": self.name},
        }


Action = Union[
    StartRound,
    UpdateSettings,
    IntentDraw,
    IntentPlay,
    CallUno,
    SwapHand,
    BlindPlayRandom,
    Leave,
    AdmitPlayer,
]

# Actions the room server only accepts from the room host
HOST_ONLY_ACTIONS = (StartRound, UpdateSettings, AdmitPlayer)


def _require_id(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"{key} is required")
    return value


def action_from_dict(data: dict) -> Action:
    """
    Decode an action from its wire form.

    Raises:
        ValueError: If the type is unknown or a field is malformed.
    """
    if not isinstance(data, dict):
        raise ValueError("Action must be an object")

    action_type = ActionType(data.get("type"))

    if action_type == ActionType.START_ROUND:
        return StartRound()
    if action_type == ActionType.UPDATE_SETTINGS:
        return UpdateSettings(settings=Settings.from_dict(data.get("settings")))
    if action_type == ActionType.INTENT_DRAW:
        return IntentDraw(player_id=_require_id(data, "player_id"))
    if action_type == ActionType.INTENT_PLAY:
        chosen = data.get("chosen_color")
        target = data.get("target_id")
        if target is not None and not isinstance(target, str):
            raise ValueError("target_id must be a string")
        return IntentPlay(
            card=Card.from_dict(data.get("card")),
            chosen_color=Color(chosen) if chosen is not None else None,
            target_id=target,
        )
    if action_type == ActionType.CALL_UNO:
        return CallUno(player_id=_require_id(data, "player_id"))
    if action_type == ActionType.SWAP_HAND:
        return SwapHand(target_id=_require_id(data, "target_id"))
    if action_type == ActionType.BLIND_PLAY_RANDOM:
        return BlindPlayRandom(player_id=_require_id(data, "player_id"))
    if action_type == ActionType.LEAVE:
        return Leave(player_id=_require_id(data, "player_id"))

    player = data.get("player")
    if not isinstance(player, dict):
        raise ValueError("player is required")
    name = player.get("name")
    if not isinstance(name, str):
        raise ValueError("player name is required")
    return AdmitPlayer(player_id=_require_id(player, "id"), name=name)


def referenced_player_ids(action: Action) -> list[str]:
    """
    Player ids an action carries, for roster membership checks.

    AdmitPlayer is excluded: it names a player who is not seated yet.
    """
    if isinstance(action, (IntentDraw, CallUno, BlindPlayRandom, Leave)):
        return [action.player_id]
    if isinstance(action, IntentPlay):
        return [action.target_id] if action.target_id is not None else []
    if isinstance(action, SwapHand):
        return [action.target_id]
    return []

"""Models package for the Crazy Eights server."""

from .settings import Settings
from .actions import (
    Action,
    ActionType,
    AdmitPlayer,
    BlindPlayRandom,
    CallUno,
    HOST_ONLY_ACTIONS,
    IntentDraw,
    IntentPlay,
    Leave,
    StartRound,
    SwapHand,
    UpdateSettings,
    action_from_dict,
    referenced_player_ids,
)
from .messages import (
    ClientMessage,
    PlayerSnapshot,
    RoomSummary,
    parse_client_message,
)

__all__ = [
    "Settings",
    # Actions
    "Action",
    "ActionType",
    "AdmitPlayer",
    "BlindPlayRandom",
    "CallUno",
    "HOST_ONLY_ACTIONS",
    "IntentDraw",
    "IntentPlay",
    "Leave",
    "StartRound",
    "SwapHand",
    "UpdateSettings",
    "action_from_dict",
    "referenced_player_ids",
    # Wire messages
    "ClientMessage",
    "PlayerSnapshot",
    "RoomSummary",
    "parse_client_message",
]

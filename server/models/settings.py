"""
Per-room house rule settings for Crazy Eights.

Settings are a flat record of plain scalars so they can travel over the
wire unchanged. The host may replace them at any time; the engine reads
the snapshot bound to the current GameState on every legality check.
"""

from dataclasses import asdict, dataclass, fields
from typing import Any

from constants import SETTINGS_BOUNDS


@dataclass
class Settings:
    """
    Configuration options for deck composition and house rules.

    All house rules default to off for a classic game.
    """

    settings_version: int = 1

    starting_hand_count: int = 7
    """Cards dealt to each player at round start."""

    # --- Draw stacking ---
    allow_stack_draws: bool = True
    """A +2 may answer a +2 (and a +4 a +4) instead of drawing."""

    allow_mixed_draw_stacking: bool = False
    """With stacking on, +2 and +4 may also answer each other."""

    # --- Fog of War ---
    fog_enabled: bool = False
    fog_card_count: int = 4
    fog_blind_turns: int = 1

    # --- Card distribution ---
    skip_per_color: int = 10
    reverse_per_color: int = 10
    draw2_per_color: int = 10
    wild_count: int = 12
    wild_draw4_count: int = 12

    # --- Shot Caller: a wild also names a target who must match the color ---
    shot_caller_enabled: bool = False

    # --- The Bomb: one hidden card detonates when played ---
    bomb_enabled: bool = False
    bomb_draw_count: int = 15
    debug_all_numbers_are_bombs: bool = False

    # --- House rules ---
    allow_seven_zero_rule: bool = False
    """Playing a 0 rotates every hand; playing a 7 swaps hands with a chosen player."""

    allow_join_in_progress: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        """
        Build Settings from client data, clamping numbers into bounds.

        Unknown keys are ignored and missing keys keep their defaults.

        Raises:
            ValueError: If data is not a mapping or a value has the wrong type.
        """
        if not isinstance(data, dict):
            raise ValueError("Settings must be an object")

        defaults = cls()
        values: dict[str, Any] = {}
        for f in fields(cls):
            if f.name not in data:
                continue
            raw = data[f.name]
            default = getattr(defaults, f.name)
            if isinstance(default, bool):
                if not isinstance(raw, bool):
                    raise ValueError(f"{f.name} must be a boolean")
                values[f.name] = raw
            else:
                if isinstance(raw, bool) or not isinstance(raw, int):
                    raise ValueError(f"{f.name} must be an integer")
                low, high = SETTINGS_BOUNDS.get(f.name, (raw, raw))
                values[f.name] = max(low, min(high, raw))
        return cls(**values)

"""
Game limits and defaults for Crazy Eights.

This module is the single source of truth for table sizes and the bounds
applied to client-supplied house rule settings. Settings.from_dict()
clamps every value into the ranges below.

Deck composition (per color):
    - One extra "0" plus four copies each of 0-7 and 9 (there is no 8)
    - Configurable skip / reverse / draw-two counts
Colorless cards:
    - Wild, Wild Draw 4 and (fog of war only) Fog cards
"""

# =============================================================================
# Table Size
# =============================================================================

MIN_PLAYERS = 2
MAX_PLAYERS = 8

# =============================================================================
# Deck Composition
# =============================================================================

# Number cards present in every color. 8 is intentionally absent.
NUMBER_VALUES: tuple[int, ...] = (0, 1, 2, 3, 4, 5, 6, 7, 9)
COPIES_PER_NUMBER = 4

# =============================================================================
# Settings Bounds (inclusive)
# =============================================================================

SETTINGS_BOUNDS: dict[str, tuple[int, int]] = {
    "starting_hand_count": (1, 50),
    "skip_per_color": (0, 50),
    "reverse_per_color": (0, 50),
    "draw2_per_color": (0, 50),
    "wild_count": (0, 50),
    "wild_draw4_count": (0, 50),
    "fog_card_count": (0, 50),
    "fog_blind_turns": (1, 10),
    "bomb_draw_count": (1, 50),
}

# =============================================================================
# Rule Amounts
# =============================================================================

DRAW_TWO_PENALTY = 2
WILD_DRAW_FOUR_PENALTY = 4

# =============================================================================
# Networking
# =============================================================================

GAME_ID = "crazy_eights"
RELAY_CHANNEL_PREFIX = "crazy8:room:"

# Queued outbound messages per connection before a slow reader is dropped.
OUTBOX_MAX_MESSAGES = 256

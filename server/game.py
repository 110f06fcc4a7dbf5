"""
Game logic for Crazy Eights.

This module implements the rules engine: the game state document, the turn
clock, the legality predicate, and a reducer that turns one action into the
next state.

Crazy Eights Rules Summary:
    - Match the top discard by color or value, or play a wild
    - Skip, Reverse, +2 and Wild+4 work as in UNO; +2/+4 may stack
    - First player to empty their hand wins the round

House Rules:
    - Shot Caller: a wild names a target who must match the called color
    - The Bomb: one hidden card makes every opponent draw when played
    - Fog of War: a fog card blinds a target for a number of turns
    - Seven-Zero: a 0 rotates every hand, a 7 swaps hands with a chosen player

Authority:
    reduce() is the only function that changes a GameState. Every action
    except Leave is ignored unless the caller is the host, so only the host's
    copy of the state is ever authoritative. Rejected actions return the
    input state object unchanged.
"""

import random
import uuid
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from cards import Card, Color, PLAYABLE_COLORS, ValueKind, build_deck, new_card_id
from constants import DRAW_TWO_PENALTY, MAX_PLAYERS, WILD_DRAW_FOUR_PENALTY
from models.actions import (
    Action,
    AdmitPlayer,
    BlindPlayRandom,
    CallUno,
    IntentDraw,
    IntentPlay,
    Leave,
    StartRound,
    SwapHand,
    UpdateSettings,
)
from models.settings import Settings


def _new_round_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class BombEvent:
    """
    Record of the last bomb detonation (for the UI).

    Attributes:
        trigger_id: Player who played the bomb.
        victim_ids: Every other player, each of whom drew the penalty.
        card_id: The card that detonated.
    """

    trigger_id: str
    victim_ids: tuple[str, ...]
    card_id: str

    def to_dict(self) -> dict:
        return {
            "trigger_id": self.trigger_id,
            "victim_ids": list(self.victim_ids),
            "card_id": self.card_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BombEvent":
        return cls(
            trigger_id=str(data["trigger_id"]),
            victim_ids=tuple(str(v) for v in data.get("victim_ids", [])),
            card_id=str(data["card_id"]),
        )


@dataclass
class Player:
    """
    A seated player.

    Attributes:
        id: Unique identifier for the player.
        name: Display name.
        hand: Cards held. Only the reducer changes it.
    """

    id: str
    name: str
    hand: list[Card] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "hand": [c.to_dict() for c in self.hand],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Player":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            hand=[Card.from_dict(c) for c in data.get("hand", [])],
        )


@dataclass
class GameState:
    """
    The authoritative game document for one room.

    Attributes:
        players: Seated players in seat order.
        host_id: Player whose reducer calls are authoritative.
        round_id: Regenerated every deal; keys idempotent result crediting.
        turn_index: Seat index of the player to act.
        clockwise: Direction of play.
        started: True while a round is in progress.
        discard_pile: Played cards; the last element is the top card.
        draw_pile: Undealt cards; draws pop from the end.
        pending_draw: Accumulated +2/+4 debt.
        chosen_wild_color: Color bound to the most recent wild-colored play.
        uno_called: Players who declared UNO (informational only).
        shot_caller_target_id: Player currently forced to match a color.
        shot_caller_demands: Per-player FIFO of forced colors.
        bomb_card_id: Id of the hidden bomb card.
        bomb_event: Last detonation record.
        blinded_player_id: Player under fog of war.
        blinded_turns_remaining: Turns left on the blind.
        pending_swap_player_id: Player who must resolve a seven swap.
        winner_id: Round winner; set together with result_credited.
        result_credited: True once the round has a result.
        config: Settings snapshot used for every rule check.
    """

    players: list[Player] = field(default_factory=list)
    host_id: Optional[str] = None
    round_id: str = field(default_factory=_new_round_id)

    # Flow
    turn_index: int = 0
    clockwise: bool = True
    started: bool = False

    # Piles
    discard_pile: list[Card] = field(default_factory=list)
    draw_pile: list[Card] = field(default_factory=list)

    # Rule accumulators
    pending_draw: int = 0
    chosen_wild_color: Optional[Color] = None

    # Rule state
    uno_called: set[str] = field(default_factory=set)
    shot_caller_target_id: Optional[str] = None
    shot_caller_demands: dict[str, list[Color]] = field(default_factory=dict)
    bomb_card_id: Optional[str] = None
    bomb_event: Optional[BombEvent] = None
    blinded_player_id: Optional[str] = None
    blinded_turns_remaining: int = 0
    pending_swap_player_id: Optional[str] = None

    # End of round
    winner_id: Optional[str] = None
    result_credited: bool = False

    config: Settings = field(default_factory=Settings)

    @property
    def current_player_id(self) -> Optional[str]:
        if 0 <= self.turn_index < len(self.players):
            return self.players[self.turn_index].id
        return None

    @property
    def top_card(self) -> Optional[Card]:
        if self.discard_pile:
            return self.discard_pile[-1]
        return None

    def index_of(self, player_id: Optional[str]) -> Optional[int]:
        """Seat index of a player, or None if not seated."""
        for i, player in enumerate(self.players):
            if player.id == player_id:
                return i
        return None

    def get_player(self, player_id: str) -> Optional[Player]:
        idx = self.index_of(player_id)
        return self.players[idx] if idx is not None else None

    def is_blinded(self, player_id: Optional[str]) -> bool:
        return (
            player_id is not None
            and self.blinded_player_id == player_id
            and self.blinded_turns_remaining > 0
        )

    def card_count(self) -> int:
        """Total cards in play: draw pile, discard pile and every hand."""
        return (
            len(self.draw_pile)
            + len(self.discard_pile)
            + sum(len(p.hand) for p in self.players)
        )

    def all_cards(self) -> list[Card]:
        cards = list(self.draw_pile)
        for player in self.players:
            cards.extend(player.hand)
        cards.extend(self.discard_pile)
        return cards

    def clone(self) -> "GameState":
        """Independent copy. Cards are shared since they are immutable."""
        return replace(
            self,
            players=[replace(p, hand=list(p.hand)) for p in self.players],
            discard_pile=list(self.discard_pile),
            draw_pile=list(self.draw_pile),
            uno_called=set(self.uno_called),
            shot_caller_demands={k: list(v) for k, v in self.shot_caller_demands.items()},
            config=replace(self.config),
        )

    def to_dict(self) -> dict:
        """Full snapshot for broadcast to peers."""
        return {
            "players": [p.to_dict() for p in self.players],
            "host_id": self.host_id,
            "round_id": self.round_id,
            "turn_index": self.turn_index,
            "clockwise": self.clockwise,
            "started": self.started,
            "discard_pile": [c.to_dict() for c in self.discard_pile],
            "draw_pile": [c.to_dict() for c in self.draw_pile],
            "pending_draw": self.pending_draw,
            "chosen_wild_color": self.chosen_wild_color.value if self.chosen_wild_color else None,
            "uno_called": sorted(self.uno_called),
            "shot_caller_target_id": self.shot_caller_target_id,
            "shot_caller_demands": {
                pid: [c.value for c in colors]
                for pid, colors in self.shot_caller_demands.items()
            },
            "bomb_card_id": self.bomb_card_id,
            "bomb_event": self.bomb_event.to_dict() if self.bomb_event else None,
            "blinded_player_id": self.blinded_player_id,
            "blinded_turns_remaining": self.blinded_turns_remaining,
            "pending_swap_player_id": self.pending_swap_player_id,
            "winner_id": self.winner_id,
            "result_credited": self.result_credited,
            "config": self.config.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GameState":
        """
        Rebuild a state snapshot received from the host.

        Raises:
            ValueError: If the snapshot is malformed.
        """
        if not isinstance(data, dict):
            raise ValueError("State must be an object")
        try:
            chosen = data.get("chosen_wild_color")
            bomb_event = data.get("bomb_event")
            return cls(
                players=[Player.from_dict(p) for p in data.get("players", [])],
                host_id=data.get("host_id"),
                round_id=str(data.get("round_id") or _new_round_id()),
                turn_index=int(data.get("turn_index", 0)),
                clockwise=bool(data.get("clockwise", True)),
                started=bool(data.get("started", False)),
                discard_pile=[Card.from_dict(c) for c in data.get("discard_pile", [])],
                draw_pile=[Card.from_dict(c) for c in data.get("draw_pile", [])],
                pending_draw=max(0, int(data.get("pending_draw", 0))),
                chosen_wild_color=Color(chosen) if chosen else None,
                uno_called=set(data.get("uno_called", [])),
                shot_caller_target_id=data.get("shot_caller_target_id"),
                shot_caller_demands={
                    str(pid): [Color(c) for c in colors]
                    for pid, colors in data.get("shot_caller_demands", {}).items()
                },
                bomb_card_id=data.get("bomb_card_id"),
                bomb_event=BombEvent.from_dict(bomb_event) if bomb_event else None,
                blinded_player_id=data.get("blinded_player_id"),
                blinded_turns_remaining=max(0, int(data.get("blinded_turns_remaining", 0))),
                pending_swap_player_id=data.get("pending_swap_player_id"),
                winner_id=data.get("winner_id"),
                result_credited=bool(data.get("result_credited", False)),
                config=Settings.from_dict(data.get("config", {})),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Malformed state snapshot: {e}") from e


def initial_state(players: list[Player], settings: Settings) -> GameState:
    """
    Build a pre-game state for a roster.

    The first player in the list becomes the host.
    """
    return GameState(
        players=[Player(id=p.id, name=p.name) for p in players],
        host_id=players[0].id if players else None,
        config=replace(settings),
    )


def is_game_over(state: GameState) -> bool:
    return state.winner_id is not None


# =============================================================================
# Turn Clock
# =============================================================================

def advance_turn(state: GameState, skips: int) -> None:
    """
    Move the turn 1 + skips seats in the current direction.

    Args:
        state: State to update in place.
        skips: Extra seats to skip (skip cards, bombs, 2-player reverse).
    """
    count = len(state.players)
    if count == 0:
        return
    steps = 1 + skips
    if not state.clockwise:
        steps = -steps
    state.turn_index = (state.turn_index + steps) % count


def adjust_turn_index_after_removal(state: GameState, removed_index: int) -> None:
    """Keep turn_index on the same player (or a valid seat) after a seat is removed."""
    if not state.players:
        state.turn_index = 0
        return
    if removed_index < state.turn_index:
        state.turn_index -= 1
    if state.turn_index >= len(state.players):
        state.turn_index = 0


def advance_blind_timer(state: GameState, finished_player_id: Optional[str]) -> None:
    """Tick the fog-of-war counter when the blinded player finishes a turn."""
    if state.blinded_player_id is None or state.blinded_player_id != finished_player_id:
        return
    state.blinded_turns_remaining = max(0, state.blinded_turns_remaining - 1)
    if state.blinded_turns_remaining == 0:
        state.blinded_player_id = None


def _end_turn(state: GameState, player_id: str, skips: int = 0) -> None:
    advance_turn(state, skips)
    advance_blind_timer(state, player_id)


# =============================================================================
# Pile Management
# =============================================================================

def reshuffle_from_discard(state: GameState, rng: random.Random) -> None:
    """Shuffle everything under the top discard back into the draw pile."""
    if len(state.discard_pile) <= 1:
        return
    top = state.discard_pile.pop()
    pool = state.discard_pile
    rng.shuffle(pool)
    state.draw_pile = pool
    state.discard_pile = [top]


def draw_card(state: GameState, index: int, rng: random.Random) -> Optional[Card]:
    """
    Move the top draw-pile card into a player's hand.

    Reshuffles the discard pile first if the draw pile is empty.

    Returns:
        The drawn card, or None if no card was available.
    """
    if not state.draw_pile:
        reshuffle_from_discard(state, rng)
    if not state.draw_pile:
        return None
    card = state.draw_pile.pop()
    state.players[index].hand.append(card)
    return card


def randomize_bomb_card(
    state: GameState,
    rng: random.Random,
    exclude_card_id: Optional[str] = None,
) -> None:
    """
    Hide the bomb in a random card currently in play.

    Args:
        state: State to update in place.
        rng: Random generator.
        exclude_card_id: A card that may not be chosen (the one that just exploded).
    """
    if not state.config.bomb_enabled:
        state.bomb_card_id = None
        return
    pool = [c for c in state.all_cards() if c.id != exclude_card_id]
    state.bomb_card_id = rng.choice(pool).id if pool else None


def is_bomb_card(state: GameState, card: Card) -> bool:
    if not state.config.bomb_enabled:
        return False
    if state.config.debug_all_numbers_are_bombs and card.value.is_number():
        return True
    return state.bomb_card_id is not None and state.bomb_card_id == card.id


def rotate_hands(state: GameState) -> None:
    """Every player takes the hand of the next seat in list order."""
    count = len(state.players)
    if count <= 1:
        return
    hands = [p.hand for p in state.players]
    for idx, player in enumerate(state.players):
        player.hand = hands[(idx + 1) % count]


def swap_hands(state: GameState, a: int, b: int) -> None:
    first, second = state.players[a], state.players[b]
    first.hand, second.hand = second.hand, first.hand


def _random_color(rng: random.Random) -> Color:
    return rng.choice(PLAYABLE_COLORS)


def _random_opponent(state: GameState, player_id: str, rng: random.Random) -> Optional[str]:
    others = [p.id for p in state.players if p.id != player_id]
    return rng.choice(others) if others else None


# =============================================================================
# Legality
# =============================================================================

def can_play(state: GameState, card: Card) -> bool:
    """
    Check whether a card may legally go on the discard pile right now.

    Order of checks:
        1. Empty discard pile: anything goes.
        2. Outstanding draw debt: only a stacking response (if allowed).
        3. Active shot-caller demand on the current player: wild-colored
           cards or the demanded color.
        4. Wild, Wild+4 and Fog are always legal.
        5. Match the effective top color or the top value.
    """
    top = state.top_card
    if top is None:
        return True

    kind = card.value.kind

    if state.pending_draw > 0:
        if not state.config.allow_stack_draws:
            return False
        mixed = state.config.allow_mixed_draw_stacking
        if top.value.kind == ValueKind.DRAW2:
            return kind == ValueKind.DRAW2 or (kind == ValueKind.WILD_DRAW4 and mixed)
        if top.value.kind == ValueKind.WILD_DRAW4:
            return kind == ValueKind.WILD_DRAW4 or (kind == ValueKind.DRAW2 and mixed)
        return False

    target = state.shot_caller_target_id
    if target is not None and state.current_player_id == target:
        demands = state.shot_caller_demands.get(target)
        if demands:
            if card.color == Color.WILD or kind == ValueKind.WILD_DRAW4:
                return True
            return card.color == demands[0]

    if kind in (ValueKind.WILD, ValueKind.WILD_DRAW4, ValueKind.FOG):
        return True

    effective_color = top.color
    if top.color == Color.WILD and state.chosen_wild_color is not None:
        effective_color = state.chosen_wild_color

    return card.color == effective_color or card.value == top.value


# =============================================================================
# Shot Caller Demand Queue
# =============================================================================

def add_shot_caller_demand(state: GameState, target_id: str, color: Color) -> None:
    """Queue a forced color for target_id and elect an active target if needed."""
    state.shot_caller_demands.setdefault(target_id, []).append(color)
    if state.shot_caller_target_id is None:
        state.shot_caller_target_id = target_id
    elif not state.shot_caller_demands.get(state.shot_caller_target_id):
        state.shot_caller_target_id = _first_demand_holder(state)


def consume_shot_caller_demand(state: GameState, player_id: str) -> None:
    """Pop the front demand of a player who just finished their turn."""
    demands = state.shot_caller_demands.get(player_id)
    if not demands:
        return
    demands.pop(0)
    if not demands:
        del state.shot_caller_demands[player_id]
    if state.shot_caller_target_id is None or state.shot_caller_target_id == player_id:
        state.shot_caller_target_id = _first_demand_holder(state)


def _first_demand_holder(state: GameState) -> Optional[str]:
    for pid, colors in state.shot_caller_demands.items():
        if colors:
            return pid
    return None


# =============================================================================
# Round Lifecycle
# =============================================================================

def deal_new_round(state: GameState, rng: random.Random) -> None:
    """
    Reset round-scoped fields, build a fresh deck and deal.

    The starting discard is the first non-wild card from the bottom of the
    shuffled deck; wild-colored cards passed over stay in the draw pile.
    """
    state.winner_id = None
    state.result_credited = False
    state.round_id = new_card_id(rng)
    state.turn_index = 0
    state.clockwise = True
    state.pending_draw = 0
    state.chosen_wild_color = None
    state.shot_caller_target_id = None
    state.shot_caller_demands = {}
    state.bomb_event = None
    state.blinded_player_id = None
    state.blinded_turns_remaining = 0
    state.pending_swap_player_id = None
    state.uno_called = set()
    state.started = True

    deck = build_deck(state.config, rng)
    for player in state.players:
        player.hand = []

    start_index = next((i for i, c in enumerate(deck) if c.color != Color.WILD), None)
    if start_index is None:
        state.discard_pile = []
    else:
        state.discard_pile = [deck.pop(start_index)]
    state.draw_pile = deck

    for _ in range(max(1, state.config.starting_hand_count)):
        for i in range(len(state.players)):
            draw_card(state, i, rng)

    randomize_bomb_card(state, rng)


def _declare_winner(state: GameState, player_id: str) -> None:
    state.winner_id = player_id
    state.result_credited = True
    state.pending_draw = 0
    state.uno_called = set()
    state.started = False


def _forced_draw(state: GameState, index: int, rng: random.Random) -> None:
    """Blind fallback: draw the whole debt (or one card) and end the turn."""
    count = state.pending_draw if state.pending_draw > 0 else 1
    state.pending_draw = 0
    for _ in range(count):
        draw_card(state, index, rng)
    _end_turn(state, state.players[index].id)


def _detonate_bomb(state: GameState, index: int, card: Card, rng: random.Random) -> None:
    penalty = max(1, state.config.bomb_draw_count)
    for i in range(len(state.players)):
        if i == index:
            continue
        for _ in range(penalty):
            draw_card(state, i, rng)
    state.bomb_event = BombEvent(
        trigger_id=state.players[index].id,
        victim_ids=tuple(p.id for i, p in enumerate(state.players) if i != index),
        card_id=card.id,
    )
    state.clockwise = not state.clockwise
    randomize_bomb_card(state, rng, exclude_card_id=card.id)


def _resolve_play(
    state: GameState,
    index: int,
    card: Card,
    chosen_color: Optional[Color],
    target_id: Optional[str],
    blinded: bool,
    rng: random.Random,
) -> None:
    """
    Move a card from hand to discard and apply its effect.

    Effect order: card effect, bomb detection, win check, then turn advance
    (with blind tick and shot-caller demand pop) unless a seven swap is
    pending or someone won.
    """
    player = state.players[index]
    player.hand.remove(card)
    state.discard_pile.append(card)

    skips = 0
    swap_target_index: Optional[int] = None
    kind = card.value.kind

    if kind == ValueKind.REVERSE:
        state.clockwise = not state.clockwise
        if len(state.players) == 2:
            skips = 1
    elif kind == ValueKind.SKIP:
        skips = 1
    elif kind == ValueKind.DRAW2:
        state.pending_draw += DRAW_TWO_PENALTY
    elif kind in (ValueKind.WILD, ValueKind.WILD_DRAW4):
        if kind == ValueKind.WILD_DRAW4:
            state.pending_draw += WILD_DRAW_FOUR_PENALTY
        state.chosen_wild_color = chosen_color or Color.RED
        if state.config.shot_caller_enabled and target_id is not None:
            add_shot_caller_demand(state, target_id, state.chosen_wild_color)
    elif kind == ValueKind.NUMBER:
        if state.config.allow_seven_zero_rule:
            if card.value.number == 0:
                rotate_hands(state)
            elif card.value.number == 7 and len(state.players) > 1:
                if blinded:
                    other = _random_opponent(state, player.id, rng)
                    swap_target_index = state.index_of(other)
                    if swap_target_index is not None:
                        swap_hands(state, index, swap_target_index)
                else:
                    state.pending_swap_player_id = player.id
    elif kind == ValueKind.FOG:
        if state.config.fog_enabled and target_id is not None:
            turns = max(1, state.config.fog_blind_turns)
            if state.blinded_player_id == target_id:
                state.blinded_turns_remaining += turns
            else:
                state.blinded_player_id = target_id
                state.blinded_turns_remaining = turns
            state.chosen_wild_color = _random_color(rng)

    if is_bomb_card(state, card):
        _detonate_bomb(state, index, card, rng)
        skips += 1

    if state.pending_swap_player_id == player.id:
        return

    if not player.hand:
        _declare_winner(state, player.id)
        return
    if swap_target_index is not None and not state.players[swap_target_index].hand:
        _declare_winner(state, state.players[swap_target_index].id)
        return

    _end_turn(state, player.id, skips)
    consume_shot_caller_demand(state, player.id)


# =============================================================================
# Action Handlers
# =============================================================================
#
# Each handler mutates a working copy and returns True if the action was
# accepted. A False return means the reducer discards the copy.

def _start_round(state: GameState, action: StartRound, rng: random.Random) -> bool:
    deal_new_round(state, rng)
    return True


def _update_settings(state: GameState, action: UpdateSettings, rng: random.Random) -> bool:
    state.config = replace(action.settings)
    return True


def _round_active(state: GameState) -> bool:
    return state.started and state.winner_id is None


def _intent_draw(state: GameState, action: IntentDraw, rng: random.Random) -> bool:
    if not _round_active(state):
        return False
    current_id = state.current_player_id
    if current_id is None or current_id != action.player_id:
        return False
    if state.is_blinded(current_id):
        return False
    if state.pending_swap_player_id == current_id:
        return False

    index = state.turn_index
    if state.shot_caller_target_id == current_id and state.pending_draw == 0:
        # No drawing around a forced color while a legal play exists
        if any(can_play(state, c) for c in state.players[index].hand):
            return False
        draw_card(state, index, rng)
        return True

    owed = state.pending_draw
    if owed > 0:
        state.pending_draw -= 1
    draw_card(state, index, rng)
    if owed == 0 or state.pending_draw == 0:
        _end_turn(state, current_id)
    return True


def _intent_play(state: GameState, action: IntentPlay, rng: random.Random) -> bool:
    if not _round_active(state):
        return False
    current_id = state.current_player_id
    if current_id is None:
        return False
    index = state.turn_index
    card = action.card
    if card not in state.players[index].hand:
        return False

    blinded = state.is_blinded(current_id)
    playable = can_play(state, card)
    if not playable and not blinded:
        return False
    if state.pending_swap_player_id == current_id:
        return False

    kind = card.value.kind
    chosen = action.chosen_color if action.chosen_color != Color.WILD else None
    target = action.target_id if state.index_of(action.target_id) is not None else None
    shot_caller_wild = state.config.shot_caller_enabled and kind == ValueKind.WILD

    if shot_caller_wild and target is None and not blinded:
        return False
    if kind == ValueKind.FOG and (target is None or target == current_id or not state.config.fog_enabled):
        if not blinded:
            return False
        target = _random_opponent(state, current_id, rng)

    if blinded:
        if chosen is None:
            chosen = _random_color(rng)
        if shot_caller_wild and target is None:
            target = _random_opponent(state, current_id, rng)

    if kind == ValueKind.FOG and target is None:
        # Blinded with nobody to fog: one card, any debt stays pending
        draw_card(state, index, rng)
        _end_turn(state, current_id)
        return True
    if shot_caller_wild and target is None:
        return False

    if blinded and not playable:
        _forced_draw(state, index, rng)
        return True

    _resolve_play(state, index, card, chosen, target, blinded, rng)
    return True


def _call_uno(state: GameState, action: CallUno, rng: random.Random) -> bool:
    if not _round_active(state):
        return False
    state.uno_called.add(action.player_id)
    return True


def _blind_play_random(state: GameState, action: BlindPlayRandom, rng: random.Random) -> bool:
    if not _round_active(state):
        return False
    if not state.is_blinded(action.player_id) or state.current_player_id != action.player_id:
        return False
    if state.pending_swap_player_id == action.player_id:
        return False

    index = state.turn_index
    hand = state.players[index].hand
    if not hand:
        draw_card(state, index, rng)
        _end_turn(state, action.player_id)
        return True

    candidate = hand[rng.randrange(len(hand))]
    return _intent_play(state, IntentPlay(card=candidate), rng)


def _swap_hand(state: GameState, action: SwapHand, rng: random.Random) -> bool:
    if not _round_active(state) or not state.config.allow_seven_zero_rule:
        return False
    current_id = state.current_player_id
    if current_id is None or state.pending_swap_player_id != current_id:
        return False
    index = state.turn_index
    target_index = state.index_of(action.target_id)
    if target_index is None or target_index == index:
        return False
    top = state.top_card
    if top is None or not top.value.is_number(7):
        return False

    swap_hands(state, index, target_index)
    state.pending_swap_player_id = None

    if not state.players[index].hand:
        _declare_winner(state, current_id)
        return True
    if not state.players[target_index].hand:
        _declare_winner(state, state.players[target_index].id)
        return True

    _end_turn(state, current_id)
    consume_shot_caller_demand(state, current_id)
    return True


def _admit_player(state: GameState, action: AdmitPlayer, rng: random.Random) -> bool:
    if not _round_active(state) or not state.config.allow_join_in_progress:
        return False
    if state.index_of(action.player_id) is not None or len(state.players) >= MAX_PLAYERS:
        return False
    state.players.append(Player(id=action.player_id, name=action.name))
    index = len(state.players) - 1
    for _ in range(max(1, state.config.starting_hand_count)):
        draw_card(state, index, rng)
    return True


def _leave(state: GameState, action: Leave, rng: random.Random) -> GameState:
    """
    Remove a player (host side).

    The leaver's hand goes to the bottom of the draw pile so no card leaves
    play mid-round. Returns a fresh state if the table is now empty.
    """
    index = state.index_of(action.player_id)
    if index is None:
        return state

    working = state.clone()
    removed = working.players.pop(index)
    working.draw_pile[:0] = removed.hand
    working.uno_called.discard(removed.id)

    if working.blinded_player_id == removed.id:
        working.blinded_player_id = None
        working.blinded_turns_remaining = 0
    if working.pending_swap_player_id == removed.id:
        working.pending_swap_player_id = None
    working.shot_caller_demands.pop(removed.id, None)
    if working.shot_caller_target_id == removed.id:
        working.shot_caller_target_id = _first_demand_holder(working)

    if not working.players:
        return GameState()

    adjust_turn_index_after_removal(working, index)
    if working.started and len(working.players) == 1:
        deal_new_round(working, rng)
    return working


_HANDLERS: dict[type, Callable[[GameState, Action, random.Random], bool]] = {
    StartRound: _start_round,
    UpdateSettings: _update_settings,
    IntentDraw: _intent_draw,
    IntentPlay: _intent_play,
    CallUno: _call_uno,
    BlindPlayRandom: _blind_play_random,
    SwapHand: _swap_hand,
    AdmitPlayer: _admit_player,
}


# =============================================================================
# Reducer
# =============================================================================

def reduce(
    state: GameState,
    action: Action,
    is_host: bool,
    rng: Optional[random.Random] = None,
) -> GameState:
    """
    Apply one action and return the resulting state.

    Args:
        state: Current state. Never modified.
        action: The action to apply.
        is_host: Whether this invocation is the authoritative one. Guests
            only react to Leave (to notice their host leaving).
        rng: Source of all randomness; pass a seeded generator for replay.

    Returns:
        A new GameState, or the input state itself if the action was
        rejected or had no effect.
    """
    rng = rng if rng is not None else random.Random()

    if isinstance(action, Leave):
        if is_host:
            return _leave(state, action, rng)
        if action.player_id == state.host_id:
            return GameState()
        return state

    if not is_host:
        return state

    handler = _HANDLERS.get(type(action))
    if handler is None:
        return state

    working = state.clone()
    if not handler(working, action, rng):
        return state
    return working

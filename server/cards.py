"""
Card model and deck construction for Crazy Eights.

Cards are immutable value objects. Each one carries a UUID so two cards
with the same color and value remain distinguishable in hands, piles and
the hidden bomb selection.

Deck Layout (per color):
    - One extra 0, then four copies each of 0-7 and 9 (5 zeros total)
    - skip_per_color / reverse_per_color / draw2_per_color action cards
Colorless (color == WILD):
    - wild_count wild cards, wild_draw4_count wild draw fours
    - fog_card_count fog cards when fog of war is enabled
"""

import random
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from constants import COPIES_PER_NUMBER, NUMBER_VALUES

if TYPE_CHECKING:
    from models.settings import Settings


class Color(str, Enum):
    """Card colors. WILD marks the colorless wild, wild draw 4 and fog cards."""

    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"
    BLUE = "blue"
    WILD = "wild"


# Colors a wild can be called as (everything except WILD itself)
PLAYABLE_COLORS: tuple[Color, ...] = (Color.RED, Color.YELLOW, Color.GREEN, Color.BLUE)


class ValueKind(str, Enum):
    """Tag of a card value."""

    NUMBER = "number"
    SKIP = "skip"
    REVERSE = "reverse"
    DRAW2 = "draw2"
    WILD = "wild"
    WILD_DRAW4 = "wild_draw4"
    FOG = "fog"


@dataclass(frozen=True)
class CardValue:
    """
    Tagged card value: a number 0-9 or one of the special kinds.

    Attributes:
        kind: Which kind of value this is.
        number: Face number, only set when kind is NUMBER.
    """

    kind: ValueKind
    number: Optional[int] = None

    def __post_init__(self) -> None:
        if self.kind == ValueKind.NUMBER:
            if self.number is None or not (0 <= self.number <= 9):
                raise ValueError(f"Invalid number card value: {self.number}")
        elif self.number is not None:
            raise ValueError(f"{self.kind.value} cards carry no number")

    @classmethod
    def of_number(cls, n: int) -> "CardValue":
        return cls(ValueKind.NUMBER, n)

    def is_number(self, n: Optional[int] = None) -> bool:
        """True for number cards (optionally a specific number)."""
        if self.kind != ValueKind.NUMBER:
            return False
        return n is None or self.number == n

    def to_dict(self) -> dict:
        if self.kind == ValueKind.NUMBER:
            return {"kind": self.kind.value, "number": self.number}
        return {"kind": self.kind.value}

    @classmethod
    def from_dict(cls, data: dict) -> "CardValue":
        if not isinstance(data, dict):
            raise ValueError("Card value must be an object")
        kind = ValueKind(data.get("kind"))
        number = data.get("number") if kind == ValueKind.NUMBER else None
        if number is not None and (isinstance(number, bool) or not isinstance(number, int)):
            raise ValueError(f"Invalid number card value: {number!r}")
        return cls(kind, number)

    def __str__(self) -> str:
        if self.kind == ValueKind.NUMBER:
            return str(self.number)
        return {
            ValueKind.SKIP: "Skip",
            ValueKind.REVERSE: "Reverse",
            ValueKind.DRAW2: "+2",
            ValueKind.WILD: "Wild",
            ValueKind.WILD_DRAW4: "Wild+4",
            ValueKind.FOG: "Fog",
        }[self.kind]


SKIP = CardValue(ValueKind.SKIP)
REVERSE = CardValue(ValueKind.REVERSE)
DRAW2 = CardValue(ValueKind.DRAW2)
WILD = CardValue(ValueKind.WILD)
WILD_DRAW4 = CardValue(ValueKind.WILD_DRAW4)
FOG = CardValue(ValueKind.FOG)


def new_card_id(rng: random.Random) -> str:
    """Generate a UUID4 string from the given generator (reproducible when seeded)."""
    return str(uuid.UUID(int=rng.getrandbits(128), version=4))


@dataclass(frozen=True)
class Card:
    """
    A Crazy Eights card.

    Attributes:
        id: Unique card identity (UUID string).
        color: Card color, WILD for colorless cards.
        value: Number or special kind.
    """

    id: str
    color: Color
    value: CardValue

    @classmethod
    def create(cls, color: Color, value: CardValue, rng: Optional[random.Random] = None) -> "Card":
        """Create a card with a fresh id."""
        card_id = new_card_id(rng) if rng is not None else str(uuid.uuid4())
        return cls(id=card_id, color=color, value=value)

    @property
    def is_wild_colored(self) -> bool:
        return self.color == Color.WILD

    def to_dict(self) -> dict:
        """Convert card to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "color": self.color.value,
            "value": self.value.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Card":
        """
        Rebuild a card from its wire form.

        Raises:
            ValueError: If any field is missing or malformed.
        """
        if not isinstance(data, dict):
            raise ValueError("Card must be an object")
        card_id = data.get("id")
        if not isinstance(card_id, str) or not card_id:
            raise ValueError("Card id is required")
        return cls(
            id=card_id,
            color=Color(data.get("color")),
            value=CardValue.from_dict(data.get("value")),
        )

    def __str__(self) -> str:
        if self.is_wild_colored:
            return str(self.value)
        return f"{self.color.value} {self.value}"


def build_deck(settings: "Settings", rng: random.Random) -> list[Card]:
    """
    Build and shuffle one deck for the given settings.

    Args:
        settings: House rule settings controlling card counts.
        rng: Generator used for card ids and the shuffle.

    Returns:
        The shuffled deck. The last element is the top of the pile.
    """
    deck: list[Card] = []

    for color in PLAYABLE_COLORS:
        # The extra zero gives five zeros per color; kept as the house deck has it.
        deck.append(Card.create(color, CardValue.of_number(0), rng))
        for n in NUMBER_VALUES:
            for _ in range(COPIES_PER_NUMBER):
                deck.append(Card.create(color, CardValue.of_number(n), rng))
        for _ in range(settings.skip_per_color):
            deck.append(Card.create(color, SKIP, rng))
        for _ in range(settings.reverse_per_color):
            deck.append(Card.create(color, REVERSE, rng))
        for _ in range(settings.draw2_per_color):
            deck.append(Card.create(color, DRAW2, rng))

    for _ in range(settings.wild_count):
        deck.append(Card.create(Color.WILD, WILD, rng))
    for _ in range(settings.wild_draw4_count):
        deck.append(Card.create(Color.WILD, WILD_DRAW4, rng))
    if settings.fog_enabled:
        for _ in range(max(0, settings.fog_card_count)):
            deck.append(Card.create(Color.WILD, FOG, rng))

    rng.shuffle(deck)
    return deck

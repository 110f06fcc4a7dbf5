"""
Registry of playable game modules.

A GameModule bundles everything needed to run one kind of game: catalog
metadata, player-count policy, the reducer, settings handling and state
factories. The registry is an explicit object built once at startup with
build_registry() and handed to whatever composes sessions.
"""

import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Optional

from constants import GAME_ID, MAX_PLAYERS, MIN_PLAYERS
from game import GameState, Player, initial_state, is_game_over, reduce
from models.settings import Settings
from session import GameSession, Reducer, RoundResultCallback
from transport import GameTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GameCatalogEntry:
    """Display metadata for a game picker."""

    id: str
    display_name: str
    max_players: int
    difficulty_level: str


@dataclass(frozen=True)
class GamePolicy:
    min_players: int
    max_players: int
    is_turn_based: bool = True
    allows_rejoin: bool = False
    supports_spectators: bool = False


@dataclass(frozen=True)
class GameModule:
    """
    Descriptor for one game.

    Attributes:
        id: Stable game identifier.
        catalog_entry: Display metadata.
        policy: Player-count and session policy.
        reducer: (state, action, is_host, rng) -> state.
        default_settings: Factory for default settings.
        make_initial_state: (players, settings) -> state.
        is_game_over: Predicate on state.
        decode_settings: Settings decoder; raises ValueError on bad data.
    """

    id: str
    catalog_entry: GameCatalogEntry
    policy: GamePolicy
    reducer: Reducer
    default_settings: Callable[[], Settings]
    make_initial_state: Callable[[list[Player], Settings], GameState]
    is_game_over: Callable[[GameState], bool]
    decode_settings: Callable[[Any], Settings]

    def can_decode_settings(self, data: Any) -> bool:
        try:
            self.decode_settings(data)
        except ValueError:
            return False
        return True


class GameRegistry:
    """Lookup of game modules by id."""

    def __init__(self) -> None:
        self._modules: dict[str, GameModule] = {}

    def register(self, module: GameModule) -> None:
        self._modules[module.id] = module
        logger.debug(f"Registered game module {module.id}")

    def descriptor(self, game_id: str) -> Optional[GameModule]:
        return self._modules.get(game_id)

    @property
    def all_descriptors(self) -> list[GameModule]:
        return list(self._modules.values())

    def make_session(
        self,
        game_id: str,
        players: list[Player],
        settings_data: Optional[dict],
        transport: GameTransport,
        is_host: bool,
        local_player_id: str,
        rng: Optional[random.Random] = None,
        on_round_result: Optional[RoundResultCallback] = None,
    ) -> Optional[GameSession]:
        """
        Build a session for a registered game.

        Settings that fail to decode fall back to the module defaults.

        Returns:
            The session, or None for an unknown game id.
        """
        module = self._modules.get(game_id)
        if module is None:
            return None

        settings = module.default_settings()
        if settings_data is not None:
            try:
                settings = module.decode_settings(settings_data)
            except ValueError as e:
                logger.warning(f"Ignoring bad settings for {game_id}: {e}")

        return GameSession(
            initial_state=module.make_initial_state(players, settings),
            transport=transport,
            reducer=module.reducer,
            is_host=is_host,
            local_player_id=local_player_id,
            rng=rng,
            on_round_result=on_round_result,
        )


CRAZY_EIGHTS = GameModule(
    id=GAME_ID,
    catalog_entry=GameCatalogEntry(
        id=GAME_ID,
        display_name="Crazy Eights",
        max_players=MAX_PLAYERS,
        difficulty_level="Easy",
    ),
    policy=GamePolicy(min_players=MIN_PLAYERS, max_players=MAX_PLAYERS),
    reducer=reduce,
    default_settings=Settings,
    make_initial_state=initial_state,
    is_game_over=is_game_over,
    decode_settings=Settings.from_dict,
)


def build_registry() -> GameRegistry:
    """Registry with every supported game."""
    registry = GameRegistry()
    registry.register(CRAZY_EIGHTS)
    return registry

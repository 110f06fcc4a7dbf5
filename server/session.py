"""
Peer-side game session.

A GameSession is what one participant holds: a local copy of the game
state, the transport to the other peers, and the reducer. Exactly one
session in a room is the host; it applies actions authoritatively and
broadcasts the result. Guests forward their actions and overwrite their
local copy with every snapshot they receive.
"""

import logging
import random
from typing import Callable, Optional

from game import GameState, reduce
from models.actions import Action, Leave, action_from_dict
from transport import GameTransport, PayloadKind, TransportMessage

logger = logging.getLogger(__name__)

Reducer = Callable[[GameState, Action, bool, Optional[random.Random]], GameState]
RoundResultCallback = Callable[[str, str], None]


class ResultLedger:
    """Credits each finished round exactly once, keyed by round_id."""

    def __init__(self) -> None:
        self._credited: set[str] = set()

    def credit(self, state: GameState) -> bool:
        """
        Record a finished round.

        Returns:
            True the first time a given round is seen with a winner.
        """
        if state.winner_id is None or not state.result_credited:
            return False
        if state.round_id in self._credited:
            return False
        self._credited.add(state.round_id)
        return True

    def __contains__(self, round_id: str) -> bool:
        return round_id in self._credited


class GameSession:
    """
    One peer's view of a game.

    Args:
        initial_state: Starting state.
        transport: Connection to the other peers.
        reducer: Reducer to run (game.reduce for Crazy Eights).
        is_host: Whether this peer is authoritative.
        local_player_id: The player this session acts for.
        allows_optimistic_ui: Guests run the reducer locally before sending.
        rng: Random generator for the host's reducer calls.
        on_round_result: Called with (round_id, winner_id) once per round.
    """

    def __init__(
        self,
        initial_state: GameState,
        transport: GameTransport,
        reducer: Reducer = reduce,
        is_host: bool = False,
        local_player_id: Optional[str] = None,
        allows_optimistic_ui: bool = True,
        rng: Optional[random.Random] = None,
        on_round_result: Optional[RoundResultCallback] = None,
    ):
        self.state = initial_state
        self.transport = transport
        self.reducer = reducer
        self.is_host = is_host
        self.local_player_id = local_player_id
        self.allows_optimistic_ui = allows_optimistic_ui
        self.rng = rng if rng is not None else random.Random()
        self.on_round_result = on_round_result
        self.results = ResultLedger()
        self.host_left = False

        transport.on_message(self._on_message)
        transport.on_peer_connected(self._on_peer_connected)
        transport.on_peer_disconnected(self._on_peer_disconnected)

    async def send(self, action: Action) -> None:
        """Act locally: apply as host, or forward (optionally optimistic) as guest."""
        if self.is_host:
            await self._apply_authoritative(action)
            return
        if self.allows_optimistic_ui:
            self._apply_guest(action)
        await self.transport.send(action)

    async def _apply_authoritative(self, action: Action) -> None:
        self._adopt(self.reducer(self.state, action, True, self.rng))
        await self.transport.broadcast(self.state)

    def _apply_guest(self, action: Action) -> None:
        host_id = self.state.host_id
        new_state = self.reducer(self.state, action, False, self.rng)
        if isinstance(action, Leave) and host_id is not None and action.player_id == host_id:
            self.host_left = True
        self._adopt(new_state)

    def _adopt(self, state: GameState) -> None:
        self.state = state
        if self.results.credit(state):
            logger.info(f"Round {state.round_id} won by {state.winner_id}")
            if self.on_round_result is not None:
                self.on_round_result(state.round_id, state.winner_id)

    async def _on_message(self, message: TransportMessage) -> None:
        if message.kind == PayloadKind.ACTION:
            if not self.is_host:
                return
            try:
                action = action_from_dict(message.payload)
            except ValueError as e:
                logger.debug(f"Dropping undecodable action from {message.sender_id}: {e}")
                return
            await self._apply_authoritative(action)
        elif message.kind == PayloadKind.STATE:
            if self.is_host:
                return
            try:
                state = GameState.from_dict(message.payload)
            except ValueError as e:
                logger.debug(f"Dropping undecodable snapshot: {e}")
                return
            self._adopt(state)

    async def _on_peer_connected(self, peer_id: str) -> None:
        if self.is_host:
            await self.transport.broadcast(self.state)

    async def _on_peer_disconnected(self, peer_id: str) -> None:
        if self.is_host:
            await self.transport.broadcast(self.state)
        elif peer_id == self.state.host_id:
            self._apply_guest(Leave(player_id=peer_id))

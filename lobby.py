"""
Lobby state machine shared by the relay server.

The lobby holds at most two registered connections. Its state is derived
from the roster and the started flag:

    EMPTY -> WAITING_FOR_SECOND -> READY_TO_START -> IN_PROGRESS

Game over and a disconnect during a match reset it straight back to EMPTY.
"""

import logging
import threading
from collections import namedtuple
from enum import Enum
from typing import List, Optional

from config import (
    CHARACTER_COUNT,
    GUEST_SLOT,
    HOST_SLOT,
    LOBBY_CAPACITY,
    MATCH_DURATION,
    NAME_MAX_LENGTH,
)
from models import LobbyPlayer

logger = logging.getLogger(__name__)


class LobbyError(Exception):
    """Base class for errors reported back to the requesting connection."""

    @property
    def code(self) -> str:
        return type(self).__name__

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(LobbyError):
    pass


class CapacityError(LobbyError):
    pass


class StateError(LobbyError):
    pass


class AuthorizationError(LobbyError):
    pass


class PreconditionError(LobbyError):
    pass


class LobbyState(Enum):
    EMPTY = 'empty'
    WAITING_FOR_SECOND = 'waiting_for_second'
    READY_TO_START = 'ready_to_start'
    IN_PROGRESS = 'in_progress'


# player: who left; opponent: who is still connected; forfeited: match was running
Departure = namedtuple('Departure', ['player', 'opponent', 'forfeited'])


class Lobby:
    def __init__(self, match_duration: int = MATCH_DURATION):
        self.match_duration = match_duration
        self.players: List[LobbyPlayer] = []
        self.game_started = False
        self._lock = threading.RLock()

    @property
    def state(self) -> LobbyState:
        with self._lock:
            if self.game_started:
                return LobbyState.IN_PROGRESS
            if not self.players:
                return LobbyState.EMPTY
            if len(self.players) < LOBBY_CAPACITY:
                return LobbyState.WAITING_FOR_SECOND
            return LobbyState.READY_TO_START

    def find(self, sid: str) -> Optional[LobbyPlayer]:
        with self._lock:
            return next((p for p in self.players if p.sid == sid), None)

    def opponent_of(self, sid: str) -> Optional[LobbyPlayer]:
        with self._lock:
            if self.find(sid) is None:
                return None
            return next((p for p in self.players if p.sid != sid), None)

    def roster(self):
        with self._lock:
            return [p.to_dict() for p in self.players]

    def register(self, sid: str, name, character) -> LobbyPlayer:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError('Name cannot be empty')
        name = name.strip()
        if len(name) > NAME_MAX_LENGTH:
            raise ValidationError(f'Name must be at most {NAME_MAX_LENGTH} characters')
        if (not isinstance(character, int) or isinstance(character, bool)
                or not 0 <= character < CHARACTER_COUNT):
            raise ValidationError('Please choose a spaceship')

        with self._lock:
            if len(self.players) >= LOBBY_CAPACITY:
                raise CapacityError('Lobby is full')
            if self.game_started:
                raise StateError('Game already in progress')
            if self.find(sid) is not None:
                raise StateError('Already registered')
            if any(p.character == character for p in self.players):
                raise ValidationError('Spaceship already taken')

            slot = HOST_SLOT if not self.players else GUEST_SLOT
            player = LobbyPlayer(sid=sid, name=name, slot=slot, character=character)
            self.players.append(player)

        logger.info('[REGISTER] %s joined as %s', name, slot)
        return player

    def start_game(self, sid: str):
        """Start the match on behalf of ``sid``; returns the gameStart payload."""
        with self._lock:
            player = self.find(sid)
            if player is None or player.slot != HOST_SLOT:
                raise AuthorizationError('Only Player 1 can start the game')
            if self.game_started:
                raise PreconditionError('Game already started')
            if len(self.players) != LOBBY_CAPACITY:
                raise PreconditionError('Need 2 players to start')

            self.game_started = True
            logger.info('[GAME] Game starting with players: %s',
                        ', '.join(p.name for p in self.players))
            return {'duration': self.match_duration, 'players': self.roster()}

    def remove(self, sid: str) -> Optional[Departure]:
        """Drop ``sid`` from the roster. A departure mid-match resets the lobby."""
        with self._lock:
            player = self.find(sid)
            if player is None:
                return None
            self.players.remove(player)
            opponent = self.players[0] if self.players else None
            logger.info('[DISCONNECT] %s (%s) left', player.name, player.slot)

            if self.game_started:
                self.reset()
                logger.info('[LOBBY] Lobby reset due to disconnect during game')
                return Departure(player, opponent, True)

            if opponent is not None and opponent.slot != HOST_SLOT:
                # The remaining player becomes host so a P1 always exists
                opponent.slot = HOST_SLOT
                logger.info('[LOBBY] %s promoted to %s', opponent.name, HOST_SLOT)
            return Departure(player, opponent, False)

    def play_again(self, sid: str) -> bool:
        with self._lock:
            if self.game_started:
                return False
            return self.remove(sid) is not None

    def reset(self):
        with self._lock:
            self.players = []
            self.game_started = False

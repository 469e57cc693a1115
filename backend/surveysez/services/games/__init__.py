"""Game domain services: rooms, turns, timers, scoring and category selection.

This package contains pure(ish) domain logic that should be imported by
HTTP routes and socket handlers, keeping transport concerns separated
from core game mechanics. Only ``registry``, ``persistence`` and
``scheduler`` know about Flask.
"""

from .records import Category, GameSettings, Player, Response, Team, TeamMember
from .room import Room
from .turn_engine import TurnEngine

__all__ = [
    'Category',
    'GameSettings',
    'Player',
    'Response',
    'Room',
    'Team',
    'TeamMember',
    'TurnEngine',
]

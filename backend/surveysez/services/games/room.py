"""Room membership, category pools and game lifecycle.

A Room lives for the whole process: games come and go inside it
(ONBOARDING -> GAMEPLAY -> GAME_OVER) while teams, players, custom
categories and the history of used categories carry over.
"""

import random
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from . import rules
from .identity import ConnectionMap
from .records import Category, GameSettings, Player, Team, TeamMember
from .timers import now_ms
from .turn_engine import TurnEngine


def custom_storage_key(room_id: str, user_id: str) -> str:
    return f"{room_id}{rules.ID_SEPARATOR}{user_id}"


class Room:

    def __init__(self, room_id: str, categories_data: Optional[Dict[str, Any]] = None,
                 settings: Optional[GameSettings] = None, clock: Callable[[], int] = now_ms,
                 rng: Optional[random.Random] = None):
        categories_data = categories_data or {}
        self.room_id = room_id
        self.clock = clock
        self.rng = rng or random.Random()
        self.teams: Dict[str, Team] = {}
        self.players: Dict[str, Player] = {}
        self.connections = ConnectionMap()
        self.shared_categories: List[Category] = [
            Category.from_dict(c) for c in categories_data.get('universal') or []
        ]
        self.custom_categories: Dict[str, List[Category]] = {}
        prefix = f"{room_id}{rules.ID_SEPARATOR}"
        for key, cats in (categories_data.get('custom') or {}).items():
            if key.startswith(prefix):
                self.custom_categories[key[len(prefix):]] = [Category.from_dict(c) for c in cats]
        self.used_category_ids: Set[str] = set()
        self.phase = rules.ONBOARDING
        self.settings = settings or GameSettings()
        self.current_game: Optional[TurnEngine] = None
        self.final_results: Optional[Dict[str, Any]] = None

    # -------------------- Players & connections -------------------- #

    def can_create_team(self) -> bool:
        return len(self.teams) < rules.MAX_TEAMS

    def team_names(self) -> List[str]:
        return list(self.teams)

    def add_player(self, connection_id: str, persistent_id: str, name: str, team: str) -> bool:
        """Register a setup (first join or rejoin) for ``persistent_id``.

        The player keeps their place in the team's rotation across
        reconnects; only a genuinely new member is appended. Returns False
        when the team would exceed the team cap, or when a player tries to
        switch teams while a game is running.
        """
        if not (connection_id and persistent_id and name and team):
            return False
        if team not in self.teams and not self.can_create_team():
            return False
        player = self.players.get(persistent_id)
        if player and player.team != team and self.phase == rules.GAMEPLAY:
            return False

        if team not in self.teams:
            self.teams[team] = Team(name=team)
        if player is None:
            player = Player(persistent_id=persistent_id, name=name, team=team)
            self.players[persistent_id] = player
        else:
            if player.team != team:
                old_team = self.teams.get(player.team)
                if old_team:
                    old_team.members = [m for m in old_team.members if m.persistent_id != persistent_id]
                player.team = team
            player.name = name
        player.last_connection_id = connection_id

        member = self.teams[team].find(persistent_id)
        if member is None:
            self.teams[team].members.append(TeamMember(persistent_id=persistent_id, display_name=name))
        else:
            member.display_name = name
        self.connections.connect(connection_id, persistent_id)
        return True

    def remove_connection(self, connection_id: str) -> Optional[str]:
        return self.connections.disconnect(connection_id)

    def player_for_connection(self, connection_id: str) -> Optional[Player]:
        persistent_id = self.connections.player_for(connection_id)
        return self.players.get(persistent_id) if persistent_id else None

    def is_connected(self, persistent_id: str) -> bool:
        return self.connections.is_connected(persistent_id)

    def toggle_ready(self, persistent_id: str) -> bool:
        player = self.players.get(persistent_id)
        if not player:
            return False
        player.is_ready = not player.is_ready
        return True

    # -------------------- Lifecycle -------------------- #

    def start_game_error(self) -> Optional[str]:
        if self.phase == rules.GAMEPLAY:
            return 'Game already in progress'
        if len(self.teams) < rules.MIN_TEAMS_TO_START:
            return f'Need at least {rules.MIN_TEAMS_TO_START} teams to start the game'
        if any(len(t.members) < rules.MIN_PLAYERS_PER_TEAM for t in self.teams.values()):
            return f'Each team needs at least {rules.MIN_PLAYERS_PER_TEAM} players'
        return None

    def start_game(self, settings: Optional[GameSettings] = None) -> bool:
        if self.start_game_error():
            return False
        if settings is not None:
            self.settings = settings
        self.phase = rules.GAMEPLAY
        self.final_results = None
        self.current_game = TurnEngine(self, clock=self.clock, rng=self.rng)
        return True

    def end_game(self) -> bool:
        game = self.current_game
        if game is None:
            return False
        self.absorb_used_categories(game.used_category_ids)
        self.final_results = {
            'team_scores': dict(game.team_scores),
            'turn_history': [dict(h) for h in game.turn_history],
            'turns_played': game.current_turn,
        }
        self.current_game = None
        self.phase = rules.GAME_OVER
        return True

    def reset_game(self) -> bool:
        """Full reset: back to onboarding and forget every used category."""
        self.current_game = None
        self.final_results = None
        self.used_category_ids.clear()
        self.phase = rules.ONBOARDING
        for player in self.players.values():
            player.is_ready = False
        return True

    def emergency_reset(self) -> bool:
        """Abort whatever is running but keep the used-category history."""
        if self.current_game is not None:
            self.absorb_used_categories(self.current_game.used_category_ids)
        self.current_game = None
        self.phase = rules.ONBOARDING
        for player in self.players.values():
            player.is_ready = False
        return True

    # -------------------- Categories -------------------- #

    def mark_category_used(self, category_id: str) -> None:
        self.used_category_ids.add(category_id)

    def absorb_used_categories(self, category_ids: Iterable[str]) -> None:
        self.used_category_ids.update(category_ids)

    def custom_pool_for(self, persistent_id: str) -> List[Category]:
        return self.custom_categories.get(persistent_id, [])

    def is_shared_category(self, category_id: str) -> bool:
        return any(c.id == category_id for c in self.shared_categories)

    def all_categories(self) -> List[Category]:
        cats = list(self.shared_categories)
        for pool in self.custom_categories.values():
            cats.extend(pool)
        return cats

    def add_custom_category(self, category: Category, user_id: str) -> bool:
        if any(c.id == category.id for c in self.all_categories()):
            return False
        self.custom_categories.setdefault(user_id, []).append(category)
        if self.current_game is not None:
            self.current_game.refresh_selection()
        return True

    def get_categories_for_user(self, user_id: str) -> Dict[str, List[Dict[str, Any]]]:
        return {
            'universal': [c.to_dict() for c in self.shared_categories],
            'user_custom': [c.to_dict() for c in self.custom_pool_for(user_id)],
        }

    # -------------------- Snapshots -------------------- #

    def get_state(self) -> Dict[str, Any]:
        players = {}
        for pid, player in self.players.items():
            pd = player.to_dict()
            pd['connected'] = self.is_connected(pid)
            players[pid] = pd
        return {
            'room_id': self.room_id,
            'players': players,
            'teams': {name: team.to_dict() for name, team in self.teams.items()},
            'game_state': self.phase,
            'game_settings': self.settings.to_dict(),
            'can_create_team': self.can_create_team(),
            'categories': {
                'universal': [c.to_dict() for c in self.shared_categories],
                'user_custom': {
                    custom_storage_key(self.room_id, uid): [c.to_dict() for c in cats]
                    for uid, cats in self.custom_categories.items()
                },
            },
            'used_category_ids': sorted(self.used_category_ids),
            'final_results': self.final_results,
            'current_game': self.current_game.get_state() if self.current_game else None,
        }

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            'room_id': self.room_id,
            'teams': [team.to_dict() for team in self.teams.values()],
            'players': [player.to_dict() for player in self.players.values()],
            'game_state': self.phase,
            'game_settings': self.settings.to_dict(),
            'used_category_ids': sorted(self.used_category_ids),
            'final_results': self.final_results,
            'current_game': self.current_game.to_snapshot() if self.current_game else None,
        }

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any], categories_data: Optional[Dict[str, Any]] = None,
                      clock: Callable[[], int] = now_ms, rng: Optional[random.Random] = None) -> 'Room':
        """Rebuild a room (and its running game, if any) from ``to_snapshot()`` output.

        Live connections are never restored; every player comes back offline
        until they set up again. Raises ValueError on inconsistent data.
        """
        room_id = data.get('room_id')
        if not room_id:
            raise ValueError("room snapshot has no room_id")
        phase = data.get('game_state') or rules.ONBOARDING
        if phase not in rules.PHASES:
            raise ValueError(f"unknown room phase {phase!r}")

        room = cls(room_id, categories_data, settings=GameSettings.from_dict(data.get('game_settings')),
                   clock=clock, rng=rng)
        for team_data in data.get('teams') or []:
            team = Team.from_dict(team_data)
            room.teams[team.name] = team
        if len(room.teams) > rules.MAX_TEAMS:
            raise ValueError(f"room {room_id} has {len(room.teams)} teams")
        for player_data in data.get('players') or []:
            player = Player.from_dict(player_data)
            if player.team not in room.teams:
                raise ValueError(f"player {player.persistent_id} is on unknown team {player.team!r}")
            room.players[player.persistent_id] = player
        for team in room.teams.values():
            for member in team.members:
                if member.persistent_id not in room.players:
                    raise ValueError(f"team {team.name!r} lists unknown player {member.persistent_id}")

        room.used_category_ids = set(data.get('used_category_ids') or [])
        room.final_results = data.get('final_results')
        room.phase = phase
        if phase == rules.GAMEPLAY:
            if data.get('current_game'):
                room.current_game = TurnEngine.from_snapshot(room, data['current_game'], clock=clock, rng=room.rng)
            else:
                room.phase = rules.ONBOARDING
        return room

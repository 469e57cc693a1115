"""Plain in-memory records owned by a Room and its TurnEngine."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from . import rules


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    entries: Tuple[str, ...] = ()
    created_by: Optional[Dict[str, str]] = field(default=None, compare=False, hash=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Category':
        created_by = data.get('created_by') or data.get('createdBy')
        return cls(
            id=str(data['id']),
            name=str(data.get('name') or data['id']),
            entries=tuple(data.get('entries') or ()),
            created_by=dict(created_by) if created_by else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'name': self.name,
            'entries': list(self.entries),
        }
        if self.created_by:
            data['created_by'] = dict(self.created_by)
        return data


@dataclass
class TeamMember:
    persistent_id: str
    display_name: str

    def to_dict(self) -> Dict[str, str]:
        return {'user_id': self.persistent_id, 'name': self.display_name}


@dataclass
class Team:
    name: str
    members: List[TeamMember] = field(default_factory=list)

    def member_ids(self) -> List[str]:
        return [m.persistent_id for m in self.members]

    def find(self, persistent_id: str) -> Optional[TeamMember]:
        for member in self.members:
            if member.persistent_id == persistent_id:
                return member
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'players': [m.to_dict() for m in self.members]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Team':
        members = []
        for m in data.get('players') or []:
            members.append(TeamMember(persistent_id=str(m['user_id']), display_name=str(m.get('name') or m['user_id'])))
        return cls(name=str(data['name']), members=members)


@dataclass
class Player:
    persistent_id: str
    name: str
    team: str
    last_connection_id: Optional[str] = None
    is_ready: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.persistent_id,
            'name': self.name,
            'team': self.team,
            'last_connection_id': self.last_connection_id,
            'is_ready': self.is_ready,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Player':
        return cls(
            persistent_id=str(data['user_id']),
            name=str(data['name']),
            team=str(data['team']),
            last_connection_id=data.get('last_connection_id'),
            is_ready=bool(data.get('is_ready', False)),
        )


@dataclass
class Response:
    text: str
    player: str
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {'text': self.text, 'player': self.player, 'timestamp': self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Response':
        return cls(text=str(data['text']), player=str(data.get('player') or ''), timestamp=int(data.get('timestamp') or 0))


@dataclass
class GameSettings:
    time_limit: int = rules.DEFAULT_TIME_LIMIT  # seconds
    turns_per_team: int = rules.DEFAULT_TURNS_PER_TEAM
    results_timeout_ms: int = rules.DEFAULT_RESULTS_TIMEOUT_MS
    continue_timeout_ms: int = rules.DEFAULT_CONTINUE_TIMEOUT_MS

    def to_dict(self) -> Dict[str, int]:
        return {
            'time_limit': self.time_limit,
            'turns_per_team': self.turns_per_team,
            'results_timeout_ms': self.results_timeout_ms,
            'continue_timeout_ms': self.continue_timeout_ms,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'GameSettings':
        data = data or {}
        defaults = cls()
        return cls(
            time_limit=int(data.get('time_limit') or defaults.time_limit),
            turns_per_team=int(data.get('turns_per_team') or defaults.turns_per_team),
            results_timeout_ms=int(data.get('results_timeout_ms') or defaults.results_timeout_ms),
            continue_timeout_ms=int(data.get('continue_timeout_ms') or defaults.continue_timeout_ms),
        )

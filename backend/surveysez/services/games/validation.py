"""Input checks applied by the transport before anything reaches a Room.

Each helper returns ``(value, error)``; exactly one of them is None.
"""

import re
from typing import Any, Dict, Optional, Tuple

from . import rules
from .records import Category
from .room import Room, custom_storage_key

SetupResult = Tuple[Optional[Dict[str, str]], Optional[str]]


def slugify(name: str) -> str:
    return re.sub(r'[^a-z0-9]', '-', name.lower())


def clean_entries(entries: Any) -> list:
    """Trim entries and drop blanks and case-insensitive duplicates, keeping first spelling."""
    if isinstance(entries, str):
        entries = entries.split(',')
    seen = set()
    cleaned = []
    for raw in entries or []:
        entry = str(raw).strip()
        key = entry.lower()
        if not entry or key in seen:
            continue
        seen.add(key)
        cleaned.append(entry)
    return cleaned


def validate_custom_category(data: Dict[str, Any], room: Room, user_id: str,
                             creator_name: Optional[str] = None) -> Tuple[Optional[Category], Optional[str]]:
    name = str((data or {}).get('name') or '').strip()
    if not (rules.MIN_CATEGORY_NAME_LENGTH <= len(name) <= rules.MAX_CATEGORY_NAME_LENGTH):
        return None, (f'Category name must be {rules.MIN_CATEGORY_NAME_LENGTH}-'
                      f'{rules.MAX_CATEGORY_NAME_LENGTH} characters')
    if any(c.name.strip().lower() == name.lower() for c in room.all_categories()):
        return None, 'A category with this name already exists'

    entries = clean_entries((data or {}).get('entries'))
    if len(entries) < rules.MIN_CATEGORY_ENTRIES:
        return None, f'Category needs at least {rules.MIN_CATEGORY_ENTRIES} entry'
    if len(entries) > rules.MAX_CATEGORY_ENTRIES:
        return None, f'Category can have at most {rules.MAX_CATEGORY_ENTRIES} entries'
    if any(len(e) > rules.MAX_ENTRY_LENGTH for e in entries):
        return None, f'Entries must be at most {rules.MAX_ENTRY_LENGTH} characters'

    category_id = f"{custom_storage_key(room.room_id, user_id)}{rules.ID_SEPARATOR}{slugify(name)}"
    if any(c.id == category_id for c in room.all_categories()):
        return None, 'A category with a similar name already exists; try a different name'

    category = Category(
        id=category_id,
        name=name,
        entries=tuple(entries),
        created_by={'user_id': user_id, 'name': creator_name or user_id},
    )
    return category, None


def validate_user_setup(data: Dict[str, Any], room: Room) -> SetupResult:
    """Resolve the name and team a player asked for.

    A new team name wins when the room still has room for another team;
    otherwise the player must pick one of the existing teams.
    """
    data = data or {}
    user_id = str(data.get('user_id') or '').strip()
    if not user_id:
        return None, 'user_id is required'
    if rules.ID_SEPARATOR in user_id:
        return None, f'user_id must not contain "{rules.ID_SEPARATOR}"'
    name = str(data.get('player_name') or '').strip()
    if not (rules.MIN_PLAYER_NAME_LENGTH <= len(name) <= rules.MAX_PLAYER_NAME_LENGTH):
        return None, (f'Player name must be {rules.MIN_PLAYER_NAME_LENGTH}-'
                      f'{rules.MAX_PLAYER_NAME_LENGTH} characters')

    new_team = str(data.get('new_team_name') or '').strip()
    existing_team = str(data.get('existing_team') or '').strip()
    if new_team and len(new_team) > rules.MAX_TEAM_NAME_LENGTH:
        return None, f'Team name must be at most {rules.MAX_TEAM_NAME_LENGTH} characters'
    if new_team and (new_team in room.teams or room.can_create_team()):
        team = new_team
    elif existing_team and existing_team in room.teams:
        team = existing_team
    else:
        return None, 'Invalid team selection'
    return {'user_id': user_id, 'name': name, 'team': team}, None

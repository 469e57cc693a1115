"""Static game rules shared by the room, the turn engine and the transport."""

from typing import Any, Dict

# Team configuration
MAX_TEAMS = 2
MIN_TEAMS_TO_START = 2
MIN_PLAYERS_PER_TEAM = 2

# Turn configuration
MAX_SKIPS_PER_TURN = 2
DEFAULT_TIME_LIMIT = 30  # seconds
DEFAULT_TURNS_PER_TEAM = 3
DEFAULT_RESULTS_TIMEOUT_MS = 15000
DEFAULT_CONTINUE_TIMEOUT_MS = 15000

# Room lifecycle
ONBOARDING = 'ONBOARDING'
GAMEPLAY = 'GAMEPLAY'
GAME_OVER = 'GAME_OVER'
PHASES = (ONBOARDING, GAMEPLAY, GAME_OVER)

# Turn phases
CATEGORY_SELECTION = 'CATEGORY_SELECTION'
ACTIVE_GUESSING = 'ACTIVE_GUESSING'
RESULTS = 'RESULTS'
TURN_SUMMARY = 'TURN_SUMMARY'
TURN_PHASES = (CATEGORY_SELECTION, ACTIVE_GUESSING, RESULTS, TURN_SUMMARY)

# Named timeouts
RESULTS_TIMEOUT = 'results-phase'
CONTINUE_TIMEOUT = 'continue-phase'

# Boundary validation
MIN_CATEGORY_NAME_LENGTH = 1
MAX_CATEGORY_NAME_LENGTH = 50
MIN_CATEGORY_ENTRIES = 1
MAX_CATEGORY_ENTRIES = 10
MAX_ENTRY_LENGTH = 50
MIN_PLAYER_NAME_LENGTH = 1
MAX_PLAYER_NAME_LENGTH = 20
MAX_TEAM_NAME_LENGTH = 30

# Joins room id, user id and slug in storage keys and custom category ids;
# room and user ids may not contain it
ID_SEPARATOR = ':'


def as_dict() -> Dict[str, Any]:
    return {
        'max_teams': MAX_TEAMS,
        'min_teams_to_start': MIN_TEAMS_TO_START,
        'min_players_per_team': MIN_PLAYERS_PER_TEAM,
        'max_skips_per_turn': MAX_SKIPS_PER_TURN,
        'default_time_limit': DEFAULT_TIME_LIMIT,
        'default_turns_per_team': DEFAULT_TURNS_PER_TEAM,
        'phases': list(PHASES),
        'turn_phases': list(TURN_PHASES),
        'validation': {
            'min_category_name_length': MIN_CATEGORY_NAME_LENGTH,
            'max_category_name_length': MAX_CATEGORY_NAME_LENGTH,
            'min_category_entries': MIN_CATEGORY_ENTRIES,
            'max_category_entries': MAX_CATEGORY_ENTRIES,
            'max_entry_length': MAX_ENTRY_LENGTH,
            'min_player_name_length': MIN_PLAYER_NAME_LENGTH,
            'max_player_name_length': MAX_PLAYER_NAME_LENGTH,
            'max_team_name_length': MAX_TEAM_NAME_LENGTH,
        },
    }

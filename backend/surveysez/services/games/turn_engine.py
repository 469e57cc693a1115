"""Turn-phase state machine for one game inside a Room.

A turn moves CATEGORY_SELECTION -> ACTIVE_GUESSING -> RESULTS ->
TURN_SUMMARY and then into the next turn's CATEGORY_SELECTION. Every
mutator returns a bool: ``False`` means the precondition did not hold and
nothing changed, so the caller must not broadcast. Role checks (is this the
announcer, is this the guessing team) belong to the caller.
"""

import random
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Set

from . import rules
from .records import Category, Response, TeamMember
from .scoring import entry_results, score_turn
from .selection import can_skip, select_category
from .timers import TimeoutRegistry, TurnTimer, now_ms

if TYPE_CHECKING:
    from .room import Room


class TurnEngine:

    def __init__(self, room: 'Room', clock: Callable[[], int] = now_ms,
                 rng: Optional[random.Random] = None, select_first: bool = True):
        self.room = room
        self.clock = clock
        self.rng = rng or random.Random()
        self.team_order: List[str] = list(room.teams)[:rules.MAX_TEAMS]
        self.current_turn = 0
        self.turns_completed = 0
        self.announcer_index: Dict[str, int] = {team: 0 for team in self.team_order}
        self.team_scores: Dict[str, int] = {team: 0 for team in self.team_order}
        self.turn_phase = rules.CATEGORY_SELECTION
        self.selected_category: Optional[Category] = None
        self.current_category: Optional[Category] = None
        self.responses: List[Response] = []
        self.marked_entries: Set[str] = set()
        self.skips_used = 0
        # Working copy of the room's history; flushed back by Room.end_game()
        self.used_category_ids: Set[str] = set(room.used_category_ids)
        self.turn_history: List[Dict[str, Any]] = []
        self.timer = TurnTimer(clock)
        self.timeouts = TimeoutRegistry(clock)
        if select_first:
            self.selected_category = self.select_category_for_announcer()

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def get_current_guessing_team(self) -> str:
        return self.team_order[self.current_turn % 2]

    def get_current_announcer_member(self) -> TeamMember:
        team_name = self.get_current_guessing_team()
        members = self.room.teams[team_name].members
        return members[self.announcer_index[team_name] % len(members)]

    def get_current_announcer(self) -> str:
        return self.get_current_announcer_member().persistent_id

    def is_announcer_offline(self) -> bool:
        return not self.room.is_connected(self.get_current_announcer())

    def is_game_complete(self) -> bool:
        return self.current_turn >= self.room.settings.turns_per_team * 2

    @property
    def is_paused(self) -> bool:
        return self.timer.paused

    # ------------------------------------------------------------------
    # Category selection
    # ------------------------------------------------------------------

    def select_category_for_announcer(self, exclude: Optional[str] = None) -> Optional[Category]:
        return select_category(
            self.room.custom_pool_for(self.get_current_announcer()),
            self.room.shared_categories,
            self.used_category_ids,
            exclude=exclude,
            rng=self.rng,
        )

    def refresh_selection(self) -> bool:
        """Retry selection after new content arrived while nothing was selectable."""
        if self.turn_phase != rules.CATEGORY_SELECTION or self.selected_category is not None:
            return False
        if self.is_game_complete():
            return False
        self.selected_category = self.select_category_for_announcer()
        return self.selected_category is not None

    def skip_category(self) -> bool:
        if self.turn_phase != rules.CATEGORY_SELECTION:
            return False
        if not can_skip(self.selected_category, self.room.shared_categories,
                        self.skips_used, rules.MAX_SKIPS_PER_TURN):
            return False
        replacement = self.select_category_for_announcer(exclude=self.selected_category.id)
        if replacement is None:
            return False
        self.selected_category = replacement
        self.skips_used += 1
        return True

    # ------------------------------------------------------------------
    # Turn flow
    # ------------------------------------------------------------------

    def begin_turn(self) -> bool:
        if self.turn_phase != rules.CATEGORY_SELECTION or self.selected_category is None:
            return False
        category = self.selected_category
        self.current_category = category
        self.selected_category = None
        self.responses = []
        self.marked_entries = set()
        self.used_category_ids.add(category.id)
        self.room.mark_category_used(category.id)
        self.timer.start(self.room.settings.time_limit * 1000)
        self.turn_phase = rules.ACTIVE_GUESSING
        return True

    def add_guess(self, text: str, player_name: str) -> bool:
        if self.turn_phase != rules.ACTIVE_GUESSING:
            return False
        text = (text or '').strip()
        if not text:
            return False
        self.responses.append(Response(text=text, player=player_name, timestamp=self.clock()))
        return True

    def toggle_entry(self, entry: str) -> bool:
        if not entry:
            return False
        if entry in self.marked_entries:
            self.marked_entries.discard(entry)
        else:
            self.marked_entries.add(entry)
        return True

    def end_guessing(self) -> bool:
        if self.turn_phase != rules.ACTIVE_GUESSING:
            return False
        self.timer.clear()
        self.turn_phase = rules.RESULTS
        self.timeouts.start(rules.RESULTS_TIMEOUT, self.room.settings.results_timeout_ms,
                            self.is_announcer_offline)
        return True

    def reveal_results(self) -> bool:
        if self.turn_phase != rules.RESULTS:
            return False
        self.timeouts.clear(rules.RESULTS_TIMEOUT)
        self.turn_phase = rules.TURN_SUMMARY
        self.timeouts.start(rules.CONTINUE_TIMEOUT, self.room.settings.continue_timeout_ms,
                            self.is_announcer_offline)
        return True

    def continue_turn(self) -> bool:
        """Commit this turn's score to the guessing team and move on.

        The score is added exactly once: after the first call the phase is
        no longer TURN_SUMMARY, so a repeated call is refused.
        """
        if self.turn_phase != rules.TURN_SUMMARY:
            return False
        team = self.get_current_guessing_team()
        score = self.get_current_turn_score()
        self.team_scores[team] += score
        self.turn_history.append({
            'turn': self.current_turn,
            'team': team,
            'announcer': self.get_current_announcer_member().display_name,
            'category': self.current_category.name if self.current_category else None,
            'score': score,
        })
        self.next_turn()
        if self.is_game_complete():
            self.room.end_game()
        return True

    def next_turn(self) -> bool:
        self.current_turn += 1
        if self.current_turn % 2 == 0:
            self.turns_completed += 1
            for team in self.team_order:
                self.announcer_index[team] += 1
        self._reset_turn_state()
        if not self.is_game_complete():
            self.selected_category = self.select_category_for_announcer()
        return True

    def skip_announcer(self) -> bool:
        if self.turn_phase not in (rules.CATEGORY_SELECTION, rules.ACTIVE_GUESSING):
            return False
        team = self.get_current_guessing_team()
        self.announcer_index[team] += 1
        self._reset_turn_state()
        self.selected_category = self.select_category_for_announcer()
        return True

    def pause_game(self) -> bool:
        if self.turn_phase != rules.ACTIVE_GUESSING:
            return False
        return self.timer.pause()

    def resume_game(self) -> bool:
        if self.turn_phase != rules.ACTIVE_GUESSING:
            return False
        return self.timer.resume()

    def _reset_turn_state(self) -> None:
        self.current_category = None
        self.selected_category = None
        self.responses = []
        self.marked_entries = set()
        self.skips_used = 0
        self.timer.clear()
        self.timeouts.clear_all()
        self.turn_phase = rules.CATEGORY_SELECTION

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_current_turn_score(self) -> int:
        if self.current_category is None:
            return 0
        return score_turn(self.current_category.entries,
                          [r.text for r in self.responses],
                          self.marked_entries)

    def get_timer_state(self) -> Optional[Dict[str, Any]]:
        if self.turn_phase != rules.ACTIVE_GUESSING:
            return None
        return self.timer.snapshot()

    def is_time_up(self) -> bool:
        return self.turn_phase == rules.ACTIVE_GUESSING and self.timer.is_expired()

    def can_all_players_reveal(self) -> bool:
        return self.turn_phase == rules.RESULTS and self.timeouts.has_elapsed(rules.RESULTS_TIMEOUT)

    def can_all_players_continue(self) -> bool:
        return self.turn_phase == rules.TURN_SUMMARY and self.timeouts.has_elapsed(rules.CONTINUE_TIMEOUT)

    def get_state(self) -> Dict[str, Any]:
        announcer = self.get_current_announcer_member()
        results = None
        if self.current_category is not None and self.turn_phase in (rules.RESULTS, rules.TURN_SUMMARY):
            results = entry_results(self.current_category.entries,
                                    [r.text for r in self.responses],
                                    self.marked_entries)
        return {
            'current_turn': self.current_turn,
            'turns_completed': self.turns_completed,
            'total_turns': self.room.settings.turns_per_team * 2,
            'team_order': list(self.team_order),
            'announcer_index': dict(self.announcer_index),
            'turn_phase': self.turn_phase,
            'current_guessing_team': self.get_current_guessing_team(),
            'current_announcer': announcer.persistent_id,
            'current_announcer_name': announcer.display_name,
            'announcer_connected': not self.is_announcer_offline(),
            'selected_category': self.selected_category.to_dict() if self.selected_category else None,
            'current_category': self.current_category.to_dict() if self.current_category else None,
            'responses': [r.to_dict() for r in self.responses],
            'marked_entries': sorted(self.marked_entries),
            'entry_results': results,
            'current_turn_score': self.get_current_turn_score(),
            'team_scores': dict(self.team_scores),
            'turn_history': [dict(h) for h in self.turn_history],
            'skips_used': self.skips_used,
            'skips_remaining': max(0, rules.MAX_SKIPS_PER_TURN - self.skips_used),
            'used_category_ids': sorted(self.used_category_ids),
            'is_paused': self.is_paused,
            'timer_state': self.get_timer_state(),
            'can_all_reveal': self.can_all_players_reveal(),
            'can_all_continue': self.can_all_players_continue(),
            'is_complete': self.is_game_complete(),
        }

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            'team_order': list(self.team_order),
            'current_turn': self.current_turn,
            'turns_completed': self.turns_completed,
            'announcer_index': dict(self.announcer_index),
            'team_scores': dict(self.team_scores),
            'turn_phase': self.turn_phase,
            'selected_category': self.selected_category.to_dict() if self.selected_category else None,
            'current_category': self.current_category.to_dict() if self.current_category else None,
            'responses': [r.to_dict() for r in self.responses],
            'marked_entries': sorted(self.marked_entries),
            'skips_used': self.skips_used,
            'used_category_ids': sorted(self.used_category_ids),
            'turn_history': [dict(h) for h in self.turn_history],
            'timer': self.timer.to_dict(),
            'timeouts': self.timeouts.to_dict(),
        }

    @classmethod
    def from_snapshot(cls, room: 'Room', data: Dict[str, Any], clock: Callable[[], int] = now_ms,
                      rng: Optional[random.Random] = None) -> 'TurnEngine':
        """Rebuild an engine for ``room`` from ``to_snapshot()`` output.

        Raises ValueError when the snapshot does not fit the room (unknown
        phase, teams that no longer exist, both categories populated).
        """
        team_order = list(data.get('team_order') or [])
        if len(team_order) != rules.MAX_TEAMS or any(t not in room.teams for t in team_order):
            raise ValueError(f"team order {team_order!r} does not match room {room.room_id}")
        if any(not room.teams[t].members for t in team_order):
            raise ValueError(f"room {room.room_id} has an empty team")
        phase = data.get('turn_phase')
        if phase not in rules.TURN_PHASES:
            raise ValueError(f"unknown turn phase {phase!r}")
        if data.get('selected_category') and data.get('current_category'):
            raise ValueError("snapshot has both a selected and a current category")

        engine = cls(room, clock=clock, rng=rng, select_first=False)
        engine.team_order = team_order
        engine.current_turn = int(data.get('current_turn') or 0)
        engine.turns_completed = int(data.get('turns_completed') or 0)
        engine.announcer_index = {t: int((data.get('announcer_index') or {}).get(t, 0)) for t in team_order}
        engine.team_scores = {t: int((data.get('team_scores') or {}).get(t, 0)) for t in team_order}
        engine.turn_phase = phase
        if data.get('selected_category'):
            engine.selected_category = Category.from_dict(data['selected_category'])
        if data.get('current_category'):
            engine.current_category = Category.from_dict(data['current_category'])
        engine.responses = [Response.from_dict(r) for r in data.get('responses') or []]
        engine.marked_entries = set(data.get('marked_entries') or [])
        engine.skips_used = int(data.get('skips_used') or 0)
        engine.used_category_ids = set(data.get('used_category_ids') or []) | set(room.used_category_ids)
        engine.turn_history = [dict(h) for h in data.get('turn_history') or []]
        engine.timer = TurnTimer.from_dict(data.get('timer'), clock)
        for key, t in (data.get('timeouts') or {}).items():
            engine.timeouts.restore(key, t['started_at'], t['duration'], engine.is_announcer_offline)
        return engine

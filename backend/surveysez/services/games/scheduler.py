import time
from typing import Dict, Set, Tuple

from surveysez import socketio
from . import rules
from .registry import get_registry, room_channel


_scheduled_expiry_keys: Set[Tuple[str, int, int]] = set()
_save_deadline: Dict[int, float] = {}


def broadcast_room(room) -> None:
    socketio.emit('game_state', room.get_state(), to=room_channel(room.room_id), namespace='/ws')


def schedule_turn_expiry(app, room_id: str) -> None:
    """Watch the running turn timer of a room and end guessing when it hits zero.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - One watcher per (room, turn, timer start)
    - The watcher only polls; every check and the final end_guessing() run
      under the room lock, so a pause, skip or manual end simply makes the
      watcher give up or keep waiting
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    registry = get_registry(app)
    room = registry.get(room_id)
    game = room.current_game if room else None
    if not game or game.turn_phase != rules.ACTIVE_GUESSING or game.timer.is_idle:
        return

    key = (room_id, game.current_turn, game.timer.started_at)
    if key in _scheduled_expiry_keys:
        app.logger.info(f"[timer-skip] room={room_id} turn={game.current_turn} already scheduled")
        return
    _scheduled_expiry_keys.add(key)
    app.logger.info(
        f"[timer-set] room={room_id} turn={game.current_turn} remaining={game.timer.remaining()}ms"
    )

    def _worker(rid: str, expected_turn: int, poll: float):
        while True:
            with app.app_context():
                with registry.lock_for(rid):
                    current = registry.get(rid)
                    g = current.current_game if current else None
                    if (not g or g.current_turn != expected_turn
                            or g.turn_phase != rules.ACTIVE_GUESSING or g.timer.is_idle):
                        app.logger.info(f"[timer-abort] room={rid} turn={expected_turn} state changed")
                        break
                    remaining = g.timer.remaining()
                    if g.is_time_up():
                        g.end_guessing()
                        app.logger.info(f"[timer-fire] room={rid} turn={expected_turn}")
                        broadcast_room(current)
                        schedule_save(app)
                        break
            wait = poll if g.is_paused else min(poll, max(remaining, 0) / 1000.0)
            time.sleep(max(wait, 0.05))
        _scheduled_expiry_keys.discard(key)

    poll = float(app.config.get('TIMER_POLL_SEC', 0.5))
    if app.config.get('TESTING'):
        _worker(room_id, game.current_turn, poll)
    else:
        socketio.start_background_task(_worker, room_id, game.current_turn, poll)


def schedule_save(app) -> None:
    """Debounced, fire-and-forget save of every room.

    In TESTING the save happens immediately so tests can assert on storage.
    """
    if app.config.get('TESTING'):
        save_now(app)
        return

    delay = float(app.config.get('SAVE_DEBOUNCE_SEC', 5))
    deadline = time.time() + delay
    _save_deadline[id(app)] = deadline

    def _runner(expected: float):
        sleep_for = max(0.0, expected - time.time())
        if sleep_for:
            time.sleep(sleep_for)
        if _save_deadline.get(id(app)) == expected:
            save_now(app)

    socketio.start_background_task(_runner, deadline)


def save_now(app) -> None:
    with app.app_context():
        try:
            get_registry(app).save_all()
        except Exception as exc:
            app.logger.error(f"[save-fail] error={exc}")

from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from typing import Any, Callable, Dict

from surveysez.services.games import rules
from surveysez.services.games.records import GameSettings
from surveysez.services.games.registry import get_registry, room_channel
from surveysez.services.games.room import custom_storage_key
from surveysez.services.games.scheduler import schedule_save, schedule_turn_expiry
from surveysez.services.games.validation import validate_custom_category, validate_user_setup


# sid -> {'room_id': ..., 'user_id': ...}
_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _broadcast(room) -> None:
    emit('game_state', room.get_state(), to=room_channel(room.room_id))


def _current():
    """Resolve (registry, room, player) for the calling socket; any may be None."""
    ctx = _sid_to_ctx.get(_get_sid())
    if not ctx:
        return None, None, None
    registry = get_registry()
    room = registry.get(ctx['room_id'])
    player = room.player_for_connection(_get_sid()) if room else None
    return registry, room, player


def _int_setting(value, default: int, low: int, high: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if low <= number <= high else default


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})


def _release_connection(room_id: str) -> None:
    """Drop the calling socket from a room; the player keeps team, turn and score."""
    registry = get_registry()
    room = registry.get(room_id)
    if not room:
        return
    with registry.lock_for(room_id):
        user_id = room.remove_connection(_get_sid())
        if user_id:
            current_app.logger.info(f"[disconnect] room={room_id} user={user_id}")
            _broadcast(room)
    if user_id:
        schedule_save(current_app._get_current_object())


def handle_disconnect(reason=None):
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if ctx:
        _release_connection(ctx['room_id'])


def handle_join_room(data):
    if isinstance(data, str):
        data = {'room_id': data}
    room_id = str((data or {}).get('room_id') or '').strip()
    if not room_id:
        emit('setup_error', {'message': 'room_id is required'})
        return
    if rules.ID_SEPARATOR in room_id:
        emit('setup_error', {'message': f'room_id must not contain "{rules.ID_SEPARATOR}"'})
        return
    user_id = (data or {}).get('user_id')

    previous = _sid_to_ctx.get(_get_sid())
    if previous and previous['room_id'] != room_id:
        leave_room(room_channel(previous['room_id']))
        _release_connection(previous['room_id'])
    join_room(room_channel(room_id))
    _sid_to_ctx[_get_sid()] = {'room_id': room_id, 'user_id': user_id}

    registry = get_registry()
    room = registry.get_or_create(room_id)
    with registry.lock_for(room_id):
        profile = None
        if user_id and user_id in room.players:
            player = room.players[user_id]
            profile = {'name': player.name, 'team': player.team}
        elif user_id:
            stored = registry.get_user_profile(user_id) or {}
            profile = (stored.get('rooms') or {}).get(room_id)
        emit('room_setup', {
            'room_id': room_id,
            'existing_teams': room.team_names(),
            'can_create_team': room.can_create_team(),
            'profile': profile,
        })


def handle_user_setup(data):
    ctx = _sid_to_ctx.get(_get_sid())
    if not ctx:
        emit('setup_error', {'message': 'Join a room first'})
        return
    registry = get_registry()
    room = registry.get_or_create(ctx['room_id'])
    with registry.lock_for(room.room_id):
        setup, error = validate_user_setup(data, room)
        if error:
            current_app.logger.warning(f"[setup-fail] room={room.room_id} error={error}")
            emit('setup_error', {'message': error})
            return
        rejoin = setup['user_id'] in room.players
        if not room.add_player(_get_sid(), setup['user_id'], setup['name'], setup['team']):
            emit('setup_error', {'message': 'Cannot join that team right now'})
            return
        ctx['user_id'] = setup['user_id']
        registry.remember_user(setup['user_id'], room.room_id, setup['name'], setup['team'])
        current_app.logger.info(
            f"[setup] room={room.room_id} user={setup['user_id']} team={setup['team']} "
            f"{'rejoined' if rejoin else 'joined'}"
        )
        _broadcast(room)
    schedule_save(current_app._get_current_object())


def handle_add_category(data):
    registry, room, player = _current()
    if not room or not player:
        emit('category_error', {'message': 'Complete setup before adding categories'})
        return
    with registry.lock_for(room.room_id):
        category, error = validate_custom_category(data, room, player.persistent_id, player.name)
        if error:
            emit('category_error', {'message': error})
            return
        if not registry.add_custom_category(room, category, player.persistent_id):
            emit('category_error', {'message': 'A category with this name already exists'})
            return
        current_app.logger.info(f"[category-add] room={room.room_id} user={player.persistent_id} id={category.id}")
        emit('category_success', {'category': category.to_dict()})
        emit('category_added', {
            'user_key': custom_storage_key(room.room_id, player.persistent_id),
            'category': category.to_dict(),
        }, to=room_channel(room.room_id), include_self=False)
        _broadcast(room)
    schedule_save(current_app._get_current_object())


def handle_start_game(data):
    registry, room, player = _current()
    if not room or not player:
        emit('game_error', {'message': 'No current room found'})
        return
    cfg = current_app.config
    data = data or {}
    settings = GameSettings(
        time_limit=_int_setting(data.get('time_limit'), int(cfg.get('DEFAULT_TIME_LIMIT_SEC', 30)), 5, 600),
        turns_per_team=_int_setting(data.get('rounds'), int(cfg.get('DEFAULT_TURNS_PER_TEAM', 3)), 1, 50),
        results_timeout_ms=int(cfg.get('RESULTS_TIMEOUT_SEC', 15)) * 1000,
        continue_timeout_ms=int(cfg.get('CONTINUE_TIMEOUT_SEC', 15)) * 1000,
    )
    with registry.lock_for(room.room_id):
        error = room.start_game_error()
        if error:
            current_app.logger.warning(f"[start-fail] room={room.room_id} error={error}")
            emit('game_error', {'message': error})
            return
        if not room.start_game(settings):
            emit('game_error', {'message': 'Failed to start game'})
            return
        current_app.logger.info(
            f"[start] room={room.room_id} time_limit={settings.time_limit}s turns_per_team={settings.turns_per_team}"
        )
        _broadcast(room)
    schedule_save(current_app._get_current_object())


# ---- Turn actions ----

def _game_action(name: str, action: Callable, allowed: Callable, watch_timer: bool = False) -> bool:
    """Run one turn action for the calling socket.

    The room lock is held across the role check, the mutation and the
    broadcast. A timer that ran out since the last poll is settled first, so
    a late guess lands after the turn has moved to RESULTS.
    """
    registry, room, player = _current()
    if not room or not player:
        return False
    with registry.lock_for(room.room_id):
        game = room.current_game
        if room.phase != rules.GAMEPLAY or game is None:
            return False
        changed = False
        if game.is_time_up():
            changed = game.end_guessing()
        ok = bool(allowed(game, player)) and bool(action(game, player))
        if ok:
            current_app.logger.info(
                f"[{name}] room={room.room_id} user={player.persistent_id} turn={game.current_turn} "
                f"phase={game.turn_phase}"
            )
        if ok or changed:
            _broadcast(room)
    if ok or changed:
        app = current_app._get_current_object()
        schedule_save(app)
        if ok and watch_timer:
            schedule_turn_expiry(app, room.room_id)
    return ok


def _is_announcer(game, player) -> bool:
    return game.get_current_announcer() == player.persistent_id


def _on_guessing_team(game, player) -> bool:
    return player.team == game.get_current_guessing_team()


def handle_begin_turn(data=None):
    _game_action('turn-begin', lambda g, p: g.begin_turn(), _is_announcer, watch_timer=True)


def handle_submit_guess(data):
    guess = str((data or {}).get('guess') or '')
    _game_action(
        'guess',
        lambda g, p: g.add_guess(guess, p.name),
        lambda g, p: _on_guessing_team(g, p) and not _is_announcer(g, p),
    )


def handle_toggle_entry(data):
    entry = str((data or {}).get('entry') or '')
    _game_action(
        'toggle-entry',
        lambda g, p: g.toggle_entry(entry),
        lambda g, p: _is_announcer(g, p) and g.turn_phase != rules.TURN_SUMMARY,
    )


def handle_end_guessing(data=None):
    _game_action('end-guessing', lambda g, p: g.end_guessing(), _is_announcer)


def handle_reveal_results(data=None):
    _game_action(
        'reveal',
        lambda g, p: g.reveal_results(),
        lambda g, p: _is_announcer(g, p) or g.can_all_players_reveal(),
    )


def handle_continue_turn(data=None):
    _game_action(
        'continue',
        lambda g, p: g.continue_turn(),
        lambda g, p: _is_announcer(g, p) or g.can_all_players_continue(),
    )


def handle_pause_game(data=None):
    _game_action('pause', lambda g, p: g.pause_game(), _on_guessing_team)


def handle_resume_game(data=None):
    _game_action('resume', lambda g, p: g.resume_game(), _on_guessing_team, watch_timer=True)


def handle_skip_category(data=None):
    _game_action('skip-category', lambda g, p: g.skip_category(), _is_announcer)


def handle_skip_announcer(data=None):
    _game_action(
        'skip-announcer',
        lambda g, p: g.skip_announcer(),
        lambda g, p: _is_announcer(g, p) or (_on_guessing_team(g, p) and g.is_announcer_offline()),
    )


# ---- Room actions ----

def _room_action(name: str, action: Callable) -> bool:
    registry, room, player = _current()
    if not room or not player:
        return False
    with registry.lock_for(room.room_id):
        ok = bool(action(room, player))
        if ok:
            current_app.logger.info(f"[{name}] room={room.room_id} user={player.persistent_id}")
            _broadcast(room)
    if ok:
        schedule_save(current_app._get_current_object())
    return ok


def handle_toggle_ready(data=None):
    _room_action('toggle-ready', lambda r, p: r.toggle_ready(p.persistent_id))


def handle_restart_game(data=None):
    # Mid-game aborts go through emergency_reset instead
    _room_action('restart', lambda r, p: r.phase != rules.GAMEPLAY and r.reset_game())


def handle_emergency_reset(data=None):
    _room_action('emergency-reset', lambda r, p: r.emergency_reset())


def handle_ping(data):
    emit('pong', data or {})


_HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'join_room': handle_join_room,
    'user_setup': handle_user_setup,
    'add_category': handle_add_category,
    'start_game': handle_start_game,
    'begin_turn': handle_begin_turn,
    'submit_guess': handle_submit_guess,
    'toggle_entry': handle_toggle_entry,
    'end_guessing': handle_end_guessing,
    'reveal_results': handle_reveal_results,
    'continue_turn': handle_continue_turn,
    'pause_game': handle_pause_game,
    'resume_game': handle_resume_game,
    'skip_category': handle_skip_category,
    'skip_announcer': handle_skip_announcer,
    'toggle_ready': handle_toggle_ready,
    'restart_game': handle_restart_game,
    'emergency_reset': handle_emergency_reset,
    'ping': handle_ping,
}


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    from surveysez import socketio

    for event, handler in _HANDLERS.items():
        socketio.on_event(event, handler, namespace='/ws')

    if testing:
        for event, handler in _HANDLERS.items():
            socketio.on_event(event, handler, namespace='/')

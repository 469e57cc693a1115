from surveysez import db, socketio
from surveysez.models import RoomRecord
from surveysez.services.games import rules
from surveysez.services.games.registry import get_registry

ROOM = 'party'


def connect(flask_app):
    return socketio.test_client(flask_app, namespace='/ws')


def events(client, name):
    return [pkt['args'][0] for pkt in client.get_received('/ws') if pkt['name'] == name]


def setup_player(flask_app, user_id, name, team):
    c = connect(flask_app)
    c.emit('join_room', {'room_id': ROOM, 'user_id': user_id}, namespace='/ws')
    c.emit('user_setup', {'user_id': user_id, 'player_name': name, 'new_team_name': team}, namespace='/ws')
    c.get_received('/ws')
    return c


def full_table(flask_app):
    return {
        'alice': setup_player(flask_app, 'alice', 'Alice', 'Red'),
        'carol': setup_player(flask_app, 'carol', 'Carol', 'Blue'),
        'bob': setup_player(flask_app, 'bob', 'Bob', 'Red'),
        'dave': setup_player(flask_app, 'dave', 'Dave', 'Blue'),
    }


def game_of(flask_app):
    return get_registry(flask_app).get(ROOM).current_game


def test_socket_connect_and_join(sio_client):
    assert sio_client.is_connected('/ws')
    sio_client.get_received('/ws')

    sio_client.emit('join_room', {'room_id': ROOM, 'user_id': 'u1'}, namespace='/ws')
    setup = events(sio_client, 'room_setup')
    assert setup == [{'room_id': ROOM, 'existing_teams': [], 'can_create_team': True, 'profile': None}]


def test_setup_requires_a_room(sio_client):
    sio_client.emit('user_setup', {'user_id': 'u1', 'player_name': 'Ann', 'new_team_name': 'Owls'}, namespace='/ws')
    assert events(sio_client, 'setup_error') == [{'message': 'Join a room first'}]


def test_setup_broadcasts_and_is_remembered(flask_app, sio_client):
    sio_client.emit('join_room', {'room_id': ROOM}, namespace='/ws')
    sio_client.emit('user_setup', {'user_id': 'u1', 'player_name': 'Ann', 'new_team_name': 'Owls'},
                    namespace='/ws')
    state = events(sio_client, 'game_state')[-1]
    assert state['teams']['Owls']['players'] == [{'user_id': 'u1', 'name': 'Ann'}]
    assert state['players']['u1']['connected'] is True

    # A fresh connection with the same user id gets its profile back
    other = connect(flask_app)
    other.emit('join_room', {'room_id': ROOM, 'user_id': 'u1'}, namespace='/ws')
    assert events(other, 'room_setup')[0]['profile'] == {'name': 'Ann', 'team': 'Owls'}


def test_start_game_needs_full_teams(flask_app):
    alice = setup_player(flask_app, 'alice', 'Alice', 'Red')
    alice.emit('start_game', {'time_limit': 30, 'rounds': 1}, namespace='/ws')
    assert events(alice, 'game_error') == [{'message': 'Need at least 2 teams to start the game'}]


def test_full_turn_over_socket(flask_app):
    clients = full_table(flask_app)
    clients['alice'].emit('start_game', {'time_limit': 45, 'rounds': 1}, namespace='/ws')
    state = events(clients['dave'], 'game_state')[-1]
    assert state['game_state'] == rules.GAMEPLAY
    assert state['game_settings']['time_limit'] == 45
    assert state['current_game']['current_announcer'] == 'alice'

    # Only the announcer begins the turn
    clients['bob'].emit('begin_turn', namespace='/ws')
    assert game_of(flask_app).turn_phase == rules.CATEGORY_SELECTION
    clients['alice'].emit('begin_turn', namespace='/ws')
    game = game_of(flask_app)
    assert game.turn_phase == rules.ACTIVE_GUESSING
    entry = game.current_category.entries[0]

    # Other team and the announcer cannot guess
    clients['carol'].emit('submit_guess', {'guess': entry}, namespace='/ws')
    clients['alice'].emit('submit_guess', {'guess': entry}, namespace='/ws')
    assert game.responses == []
    clients['bob'].emit('submit_guess', {'guess': entry}, namespace='/ws')
    assert [r.text for r in game.responses] == [entry]
    assert events(clients['carol'], 'game_state')[-1]['current_game']['current_turn_score'] == 1

    clients['alice'].emit('end_guessing', namespace='/ws')
    assert game.turn_phase == rules.RESULTS
    # Reveal stays with the announcer until the timeout passes
    clients['bob'].emit('reveal_results', namespace='/ws')
    assert game.turn_phase == rules.RESULTS
    clients['alice'].emit('reveal_results', namespace='/ws')
    assert game.turn_phase == rules.TURN_SUMMARY
    clients['alice'].emit('continue_turn', namespace='/ws')
    assert game.current_turn == 1
    assert game.team_scores['Red'] == 1
    assert game.get_current_announcer() == 'carol'

    record = db.session.get(RoomRecord, ROOM)
    assert record is not None
    assert record.to_dict()['current_game']['team_scores']['Red'] == 1


def test_disconnected_announcer_can_be_skipped(flask_app):
    clients = full_table(flask_app)
    clients['alice'].emit('start_game', {'rounds': 1}, namespace='/ws')

    # Nobody else may skip a connected announcer
    clients['bob'].emit('skip_announcer', namespace='/ws')
    assert game_of(flask_app).get_current_announcer() == 'alice'

    clients['alice'].disconnect(namespace='/ws')
    state = events(clients['bob'], 'game_state')[-1]
    assert state['current_game']['announcer_connected'] is False
    assert state['players']['alice']['connected'] is False

    clients['carol'].emit('skip_announcer', namespace='/ws')
    assert game_of(flask_app).get_current_announcer() == 'alice'
    clients['bob'].emit('skip_announcer', namespace='/ws')
    assert game_of(flask_app).get_current_announcer() == 'bob'


def test_reconnect_keeps_place(flask_app):
    clients = full_table(flask_app)
    clients['alice'].emit('start_game', {'rounds': 1}, namespace='/ws')
    clients['alice'].disconnect(namespace='/ws')

    again = setup_player(flask_app, 'alice', 'Alice', 'Red')
    room = get_registry(flask_app).get(ROOM)
    assert room.is_connected('alice')
    assert room.teams['Red'].member_ids() == ['alice', 'bob']
    again.emit('begin_turn', namespace='/ws')
    assert game_of(flask_app).turn_phase == rules.ACTIVE_GUESSING


def test_pause_and_resume_by_guessing_team(flask_app):
    clients = full_table(flask_app)
    clients['alice'].emit('start_game', {'rounds': 1}, namespace='/ws')
    clients['alice'].emit('begin_turn', namespace='/ws')
    clients['carol'].emit('pause_game', namespace='/ws')
    assert not game_of(flask_app).is_paused
    clients['bob'].emit('pause_game', namespace='/ws')
    assert game_of(flask_app).is_paused
    assert events(clients['dave'], 'game_state')[-1]['current_game']['is_paused'] is True
    clients['bob'].emit('resume_game', namespace='/ws')
    assert not game_of(flask_app).is_paused


def test_add_category_notifies_room(flask_app):
    alice = setup_player(flask_app, 'alice', 'Alice', 'Red')
    bob = setup_player(flask_app, 'bob', 'Bob', 'Red')
    alice.get_received('/ws')

    alice.emit('add_category', {'name': 'Board Games', 'entries': ['Chess', 'Go']}, namespace='/ws')
    success = events(alice, 'category_success')
    assert success[0]['category']['id'] == f'{ROOM}:alice:board-games'
    added = events(bob, 'category_added')
    assert added[0]['user_key'] == f'{ROOM}:alice'

    alice.emit('add_category', {'name': 'fruit', 'entries': ['Fig']}, namespace='/ws')
    assert events(alice, 'category_error') == [{'message': 'A category with this name already exists'}]

    room = get_registry(flask_app).get(ROOM)
    assert [c.name for c in room.custom_pool_for('alice')] == ['Board Games']


def test_restart_only_outside_gameplay(flask_app):
    clients = full_table(flask_app)
    clients['alice'].emit('start_game', {'rounds': 1}, namespace='/ws')
    clients['dave'].emit('restart_game', namespace='/ws')
    room = get_registry(flask_app).get(ROOM)
    assert room.phase == rules.GAMEPLAY
    clients['dave'].emit('emergency_reset', namespace='/ws')
    assert room.phase == rules.ONBOARDING
    assert room.current_game is None


def test_moving_to_another_room_releases_the_old_seat(flask_app):
    clients = full_table(flask_app)
    clients['alice'].emit('start_game', {'rounds': 1}, namespace='/ws')
    clients['bob'].get_received('/ws')

    clients['alice'].emit('join_room', {'room_id': 'elsewhere', 'user_id': 'alice'}, namespace='/ws')
    room = get_registry(flask_app).get(ROOM)
    assert not room.is_connected('alice')
    state = events(clients['bob'], 'game_state')[-1]
    assert state['current_game']['announcer_connected'] is False

    # The guessing team may now skip the absent announcer
    clients['bob'].emit('skip_announcer', namespace='/ws')
    assert game_of(flask_app).get_current_announcer() == 'bob'

    clients['alice'].disconnect(namespace='/ws')
    assert not room.is_connected('alice')


def test_guess_after_time_runs_out_ends_guessing(flask_app):
    clients = full_table(flask_app)
    clients['alice'].emit('start_game', {'rounds': 1}, namespace='/ws')
    clients['alice'].emit('begin_turn', namespace='/ws')
    game = game_of(flask_app)
    entry = game.current_category.entries[0]
    # Push the start back past the time limit; the expiry watcher is off in tests
    game.timer.started_at -= game.timer.duration + 1000
    clients['carol'].get_received('/ws')

    clients['bob'].emit('submit_guess', {'guess': entry}, namespace='/ws')
    assert game.turn_phase == rules.RESULTS
    assert game.responses == []
    states = events(clients['carol'], 'game_state')
    assert len(states) == 1
    assert states[0]['current_game']['turn_phase'] == rules.RESULTS


def test_room_id_with_separator_is_rejected(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('join_room', {'room_id': 'a:b'}, namespace='/ws')
    assert events(sio_client, 'setup_error') == [{'message': 'room_id must not contain ":"'}]

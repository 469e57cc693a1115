from flask import Blueprint, jsonify, request

from surveysez.services.games.registry import get_registry

rooms = Blueprint('rooms', __name__)


@rooms.route('', methods=['GET'])
def list_rooms():
    """
    Returns a summary of every room held in memory.
    """
    summaries = []
    registry = get_registry()
    for room in registry.all_rooms():
        with registry.lock_for(room.room_id):
            summaries.append({
                'room_id': room.room_id,
                'game_state': room.phase,
                'team_count': len(room.teams),
                'player_count': len(room.players),
                'connected_count': len(room.connections.connected_players()),
                'in_game': room.current_game is not None,
            })
    return jsonify(summaries), 200


@rooms.route('/<string:room_id>/state', methods=['GET'])
def get_room_state(room_id):
    """
    Returns the full broadcast state of a room.
    """
    registry = get_registry()
    room = registry.get(room_id)
    if not room:
        return jsonify({'error': 'Room not found'}), 404
    with registry.lock_for(room_id):
        return jsonify(room.get_state()), 200


@rooms.route('/<string:room_id>/categories', methods=['GET'])
def get_user_categories(room_id):
    """
    Returns the categories visible to one user: the shared pool plus their own.
    """
    user_id = request.args.get('user_id')
    if not user_id:
        return jsonify({'error': 'user_id is required'}), 400
    registry = get_registry()
    room = registry.get(room_id)
    if not room:
        return jsonify({'error': 'Room not found'}), 404
    with registry.lock_for(room_id):
        return jsonify(room.get_categories_for_user(user_id)), 200

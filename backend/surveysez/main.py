from flask import Blueprint, jsonify

from surveysez.services.games import rules

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Survey-Sez game server!'})

@main.route('/api/game-rules')
def game_rules():
    return jsonify(rules.as_dict())

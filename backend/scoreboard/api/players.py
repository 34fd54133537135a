from flask import Blueprint, current_app, jsonify, request

from scoreboard.services import ledger
from scoreboard.services.players import register_player, remove_player, rename_player
from scoreboard.validators import require_object


players = Blueprint('players', __name__)


@players.route('/players', methods=['GET'])
def list_players():
    with ledger.reading('fetch players'):
        result = [p.to_dict() for p in ledger.list_players()]
    return jsonify(result)


@players.route('/players', methods=['POST'])
def create_player():
    data = require_object(request.get_json(silent=True))
    player = register_player(data.get('name'))
    return jsonify(player), 201


@players.route('/players/<int(signed=True):player_id>', methods=['PATCH'])
def update_player(player_id):
    data = require_object(request.get_json(silent=True))
    player = rename_player(player_id, data.get('name'))
    return jsonify(player)


@players.route('/players/<int(signed=True):player_id>', methods=['DELETE'])
def delete_player(player_id):
    remove_player(player_id)
    return '', 204


@players.route('/leaderboard', methods=['GET'])
def leaderboard():
    size = int(current_app.config.get('LEADERBOARD_SIZE', 10))
    with ledger.reading('fetch leaderboard'):
        result = [p.to_dict() for p in ledger.top_players(size)]
    return jsonify(result)

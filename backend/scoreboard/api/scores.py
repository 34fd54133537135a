from flask import Blueprint, current_app, jsonify, request

from scoreboard.services import ledger
from scoreboard.services.scoring import award
from scoreboard.services.undo import parse_undo_request, undo
from scoreboard.validators import optional_text, require_int, require_object


scores = Blueprint('scores', __name__)


@scores.route('', methods=['POST'])
def add_score():
    data = require_object(request.get_json(silent=True))
    player_id = require_int(data, 'playerId')
    points = require_int(data, 'points')
    note = optional_text(data, 'note')
    score_log, player = award(player_id, points, note)
    return jsonify({'scoreLog': score_log, 'player': player}), 201


@scores.route('/undo', methods=['POST'])
def undo_score():
    # An empty body means "undo the most recent entry"; a body that does not
    # parse is a 400, never a fallback to the most recent entry
    data = request.get_json(force=True) if request.get_data() else None
    undo_request = parse_undo_request(data)
    undone, player = undo(undo_request)
    return jsonify({'undone': undone, 'player': player})


def _recent_limit() -> int:
    cfg = current_app.config
    default = int(cfg.get('RECENT_ACTIVITY_DEFAULT', ledger.DEFAULT_RECENT_LIMIT))
    cap = int(cfg.get('RECENT_ACTIVITY_MAX', ledger.MAX_RECENT_LIMIT))
    try:
        limit = int(request.args.get('limit', default))
    except (TypeError, ValueError):
        limit = default
    if limit < 1:
        limit = default
    return min(limit, cap)


@scores.route('/recent', methods=['GET'])
def recent_scores():
    cap = int(current_app.config.get('RECENT_ACTIVITY_MAX', ledger.MAX_RECENT_LIMIT))
    with ledger.reading('fetch recent scores'):
        logs = ledger.recent_score_logs(_recent_limit(), cap=cap)
    return jsonify(logs)

from typing import Optional, Tuple

from flask import current_app

from scoreboard import broadcast
from scoreboard.errors import NotFoundError
from scoreboard.services import ledger


def award(player_id: int, points: int, note: Optional[str] = None) -> Tuple[dict, Optional[dict]]:
    """Record a point transaction and apply it to the player's running total.

    The ledger insert and the relative total update commit together. Zero
    points are allowed (a note-only entry). Returns the serialized entry and
    the player's post-update snapshot, then publishes ``score_added``.
    """
    with ledger.atomic('add score'):
        player = ledger.get_player(player_id)
        if player is None:
            raise NotFoundError('Player not found')
        log = ledger.create_score_log(player.id, points, note)
        ledger.adjust_player_total(player.id, points)
        score_log = log.to_dict()

    with ledger.reading('add score'):
        updated = ledger.get_player(player_id)
        player_snapshot = updated.to_dict() if updated else None

    current_app.logger.info(
        f"[award] player={player_id} points={points} log={score_log['id']} "
        f"total={player_snapshot['totalPoints'] if player_snapshot else None}"
    )
    broadcast.publish(broadcast.SCORE_ADDED, {'scoreLog': score_log, 'player': player_snapshot})
    return score_log, player_snapshot

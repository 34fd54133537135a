"""Undo resolver: structural reversal of a single ledger entry.

An undo deletes the entry and subtracts its points from the owning player's
total. Because totals are a linear sum, any entry can be reversed, not just
the newest one.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from flask import current_app

from scoreboard import broadcast
from scoreboard.errors import NotFoundError
from scoreboard.services import ledger
from scoreboard.validators import optional_int, require_object


@dataclass(frozen=True)
class SpecificEntry:
    log_id: int


@dataclass(frozen=True)
class MostRecentEntry:
    pass


UndoRequest = Union[SpecificEntry, MostRecentEntry]


def parse_undo_request(data) -> UndoRequest:
    """Build an ``UndoRequest`` from a request body; ``logId`` is optional."""
    data = require_object(data if data is not None else {})
    log_id = optional_int(data, 'logId')
    if log_id is None:
        return MostRecentEntry()
    return SpecificEntry(log_id)


def _resolve(request: UndoRequest):
    if isinstance(request, SpecificEntry):
        log = ledger.get_score_log(request.log_id)
        if log is None:
            raise NotFoundError('Score entry not found')
        return log
    log = ledger.latest_score_log()
    if log is None:
        raise NotFoundError('No score entry to undo')
    return log


def undo(request: UndoRequest) -> Tuple[dict, Optional[dict]]:
    """Reverse one ledger entry.

    Returns the removed entry as it was before deletion and the player's
    snapshot after the reversal (``None`` if the player no longer exists),
    then publishes ``score_undone``.
    """
    with ledger.atomic('undo score'):
        log = _resolve(request)
        undone = log.to_dict()
        # Delete first: a concurrent undo of the same entry matches no row here
        if not ledger.delete_score_log(undone['id']):
            raise NotFoundError('Score entry not found')
        ledger.adjust_player_total(undone['playerId'], -undone['points'])

    with ledger.reading('undo score'):
        player = ledger.get_player(undone['playerId'])
        player_snapshot = player.to_dict() if player else None

    current_app.logger.info(
        f"[undo] log={undone['id']} player={undone['playerId']} points={undone['points']} "
        f"mode={'specific' if isinstance(request, SpecificEntry) else 'most_recent'}"
    )
    broadcast.publish(broadcast.SCORE_UNDONE, {'scoreLog': undone, 'player': player_snapshot})
    return undone, player_snapshot

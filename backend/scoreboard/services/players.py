from flask import current_app

from scoreboard import broadcast
from scoreboard.errors import ConflictError, NotFoundError
from scoreboard.models import NAME_MAX_LENGTH
from scoreboard.services import ledger
from scoreboard.validators import normalize_name


DUPLICATE_NAME = 'A player with this name already exists'


def register_player(name) -> dict:
    """Create a player with a trimmed, case-insensitively unique name."""
    name = normalize_name(name, NAME_MAX_LENGTH)
    with ledger.atomic('create player', conflict_message=DUPLICATE_NAME):
        if ledger.find_player_by_name(name):
            raise ConflictError(DUPLICATE_NAME)
        player = ledger.create_player(name)
        snapshot = player.to_dict()
    current_app.logger.info(f"[player] added id={snapshot['id']} name={snapshot['name']!r}")
    broadcast.publish(broadcast.PLAYER_ADDED, snapshot)
    return snapshot


def rename_player(player_id: int, name) -> dict:
    name = normalize_name(name, NAME_MAX_LENGTH)
    with ledger.atomic('update player', conflict_message=DUPLICATE_NAME):
        existing = ledger.find_player_by_name(name)
        if existing and existing.id != player_id:
            raise ConflictError(DUPLICATE_NAME)
        player = ledger.get_player(player_id)
        if player is None:
            raise NotFoundError('Player not found')
        ledger.rename_player(player, name)
        snapshot = player.to_dict()
    current_app.logger.info(f"[player] renamed id={player_id} name={snapshot['name']!r}")
    broadcast.publish(broadcast.PLAYER_UPDATED, snapshot)
    return snapshot


def remove_player(player_id: int) -> None:
    """Delete a player and its ledger entries. Unknown ids are a no-op success."""
    with ledger.atomic('delete player'):
        deleted = ledger.delete_player(player_id)
    current_app.logger.info(f"[player] deleted id={player_id} existed={deleted}")
    broadcast.publish(broadcast.PLAYER_DELETED, {'id': player_id})

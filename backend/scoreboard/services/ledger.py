"""Ledger store: durable players and score log entries.

Mutations only add to or flush the session. Callers compose them inside
``atomic()`` so an award or undo commits as one unit or not at all.
"""

import time
from contextlib import contextmanager
from typing import Iterator, List, Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from scoreboard import db
from scoreboard.errors import ConflictError, StorageError
from scoreboard.models import Player, ScoreLog


DEFAULT_RECENT_LIMIT = 25
MAX_RECENT_LIMIT = 50


def _now() -> int:
    return int(time.time())


@contextmanager
def atomic(action: str, conflict_message: Optional[str] = None) -> Iterator:
    """Run the enclosed ledger calls as a single transaction.

    Commits on success. On any error the session is rolled back; SQLAlchemy
    errors surface as ``StorageError('Failed to <action>')``, or as
    ``ConflictError`` for integrity errors when ``conflict_message`` is set.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception as exc:
        db.session.rollback()
        if isinstance(exc, IntegrityError) and conflict_message:
            raise ConflictError(conflict_message) from exc
        if isinstance(exc, SQLAlchemyError):
            current_app.logger.error(f"[ledger] failed to {action}: {exc}")
            raise StorageError(f'Failed to {action}') from exc
        raise


@contextmanager
def reading(action: str) -> Iterator:
    """Translate store failures on read paths into ``StorageError``."""
    try:
        yield db.session
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error(f"[ledger] failed to {action}: {exc}")
        raise StorageError(f'Failed to {action}') from exc


# ---- Players ----

def list_players() -> List[Player]:
    return Player.query.order_by(Player.name.asc(), Player.id.asc()).all()


def get_player(player_id: int) -> Optional[Player]:
    return db.session.get(Player, player_id)


def find_player_by_name(name: str) -> Optional[Player]:
    """Case-insensitive match on the trimmed name."""
    normalized = name.strip().lower()
    return Player.query.filter(func.lower(Player.name) == normalized).first()


def top_players(limit: int) -> List[Player]:
    return (
        Player.query
        .order_by(Player.total_points.desc(), Player.id.asc())
        .limit(limit)
        .all()
    )


def create_player(name: str) -> Player:
    player = Player(name=name.strip(), total_points=0)
    db.session.add(player)
    db.session.flush()
    return player


def rename_player(player: Player, name: str) -> Player:
    player.name = name.strip()
    db.session.add(player)
    db.session.flush()
    return player


def delete_player(player_id: int) -> bool:
    """Delete a player and its ledger entries. Returns False for unknown ids."""
    ScoreLog.query.filter_by(player_id=player_id).delete(synchronize_session=False)
    deleted = Player.query.filter_by(id=player_id).delete(synchronize_session=False)
    return deleted > 0


def adjust_player_total(player_id: int, delta: int) -> bool:
    # Relative update: concurrent adjustments commute, no read-modify-write
    updated = Player.query.filter_by(id=player_id).update(
        {Player.total_points: Player.total_points + delta},
        synchronize_session=False,
    )
    return updated > 0


# ---- Score logs ----

def get_score_log(log_id: int) -> Optional[ScoreLog]:
    return db.session.get(ScoreLog, log_id)


def create_score_log(player_id: int, points: int, note: Optional[str] = None) -> ScoreLog:
    log = ScoreLog(
        player_id=player_id,
        points=points,
        note=note or None,
        timestamp=_now(),
    )
    db.session.add(log)
    db.session.flush()
    return log


def delete_score_log(log_id: int) -> bool:
    """Delete one entry by id. Returns False when no row matched.

    The row-count check is what stops two reversals of the same entry from
    both applying their delta: only one DELETE can match.
    """
    deleted = ScoreLog.query.filter_by(id=log_id).delete(synchronize_session=False)
    return deleted == 1


def _newest_first(query):
    return query.order_by(ScoreLog.timestamp.desc(), ScoreLog.id.desc())


def latest_score_log() -> Optional[ScoreLog]:
    return _newest_first(ScoreLog.query).first()


def recent_score_logs(limit: int = DEFAULT_RECENT_LIMIT, cap: int = MAX_RECENT_LIMIT) -> List[dict]:
    """Newest entries joined with the owning player's name, at most ``cap``."""
    limit = max(1, min(int(limit), cap))
    rows = _newest_first(
        db.session.query(ScoreLog, Player.name).join(Player, ScoreLog.player_id == Player.id)
    ).limit(limit).all()
    return [dict(log.to_dict(), playerName=name) for log, name in rows]


def ledger_drift() -> List[dict]:
    """Players whose stored total differs from the sum of their entries."""
    sums = (
        db.session.query(ScoreLog.player_id, func.coalesce(func.sum(ScoreLog.points), 0).label('ledger_sum'))
        .group_by(ScoreLog.player_id)
        .subquery()
    )
    rows = (
        db.session.query(Player, func.coalesce(sums.c.ledger_sum, 0))
        .outerjoin(sums, sums.c.player_id == Player.id)
        .order_by(Player.id.asc())
        .all()
    )
    return [
        {'id': p.id, 'name': p.name, 'totalPoints': p.total_points, 'ledgerSum': int(ledger_sum)}
        for p, ledger_sum in rows
        if int(ledger_sum) != p.total_points
    ]

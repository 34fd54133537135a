from scoreboard import db


# Shared by the column definition and request validation
NAME_MAX_LENGTH = 64


class Player(db.Model):
    __tablename__ = 'players'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(NAME_MAX_LENGTH), unique=True, nullable=False, index=True)
    # Only ever changed by a relative delta paired with a ScoreLog insert/delete
    total_points = db.Column(db.Integer, nullable=False, default=0, server_default='0')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'totalPoints': self.total_points,
        }


# Names are unique regardless of case
db.Index('ix_players_name_lower', db.func.lower(Player.name), unique=True)


class ScoreLog(db.Model):
    __tablename__ = 'score_logs'
    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(
        db.Integer,
        db.ForeignKey('players.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    points = db.Column(db.Integer, nullable=False)
    note = db.Column(db.Text, nullable=True)
    # Seconds since epoch, stamped by the ledger at insert time
    timestamp = db.Column(db.Integer, nullable=False, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'playerId': self.player_id,
            'points': self.points,
            'note': self.note,
            'timestamp': self.timestamp,
        }

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from werkzeug.exceptions import HTTPException
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS', Config.CORS_ORIGINS)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One subscriber registry per app; services reach it through current_app
    from scoreboard.broadcast import Broadcaster, EXTENSION_KEY, register_socketio_handlers
    flask_app.extensions[EXTENSION_KEY] = Broadcaster(logger=flask_app.logger)
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # Import and register blueprints here
    from scoreboard.routes import main
    flask_app.register_blueprint(main)

    from scoreboard.api.players import players
    flask_app.register_blueprint(players, url_prefix='/api')

    from scoreboard.api.scores import scores
    flask_app.register_blueprint(scores, url_prefix='/api/scores')

    from scoreboard.errors import ScoreboardError

    @flask_app.errorhandler(ScoreboardError)
    def handle_scoreboard_error(exc):
        if exc.status_code >= 500:
            flask_app.logger.error(f"[error] {exc.message}: {exc.__cause__!r}")
        return jsonify(exc.to_dict()), exc.status_code

    @flask_app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return jsonify({'error': exc.description}), exc.code

    @flask_app.errorhandler(Exception)
    def handle_unexpected_error(exc):
        flask_app.logger.exception(f"[error] unhandled {type(exc).__name__}: {exc}")
        return jsonify({'error': 'Internal server error'}), 500

    @click.command('db-reset')
    @click.option('--seed', 'seed_names', multiple=True, help='Player name to register after reset (repeatable).')
    def db_reset_command(seed_names):
        """Drops, recreates, and optionally seeds the database."""
        from scoreboard.services.players import register_player
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            for name in seed_names:
                register_player(name)
            click.echo(f'Database has been reset ({len(seed_names)} players seeded).')

    @click.command('verify-ledger')
    @click.pass_context
    def verify_ledger_command(ctx):
        """Checks every player total against the sum of its ledger entries."""
        from scoreboard.services.ledger import ledger_drift
        with flask_app.app_context():
            drift = ledger_drift()
        if not drift:
            click.echo('Ledger consistent: every total matches its entries.')
            return
        for row in drift:
            click.echo(
                f"Drift: player {row['id']} ({row['name']}) total={row['totalPoints']} ledger={row['ledgerSum']}"
            )
        ctx.exit(1)

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(verify_ledger_command)

    return flask_app

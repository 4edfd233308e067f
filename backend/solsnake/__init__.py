from flask import Flask, current_app
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def get_engine(app=None):
    """Return the RolloverEngine bound to ``app`` (or the current app)."""
    app = app or current_app
    return app.extensions['solsnake']['engine']


def close_store(app) -> None:
    state = app.extensions.get('solsnake')
    if not state:
        return
    from solsnake.services.competition.scheduler import stop_rollover_timer
    stop_rollover_timer(app)
    with app.app_context():
        state['store'].close()


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    # Store handle and engine are per app; nothing ambient outside the factory
    from solsnake.services.competition.store import init_store
    from solsnake.services.competition.rollover import RolloverEngine
    store = init_store(flask_app.config, db=db)
    flask_app.extensions['solsnake'] = {
        'store': store,
        'engine': RolloverEngine.from_config(store, flask_app.config),
    }

    from solsnake.api.state import state
    flask_app.register_blueprint(state, url_prefix='/api')

    from solsnake.api.competition import competition
    flask_app.register_blueprint(competition, url_prefix='/api/competition')

    from solsnake.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database tables."""
        import solsnake.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
        click.echo('Database has been reset!')

    @click.command('finalize-day')
    @click.argument('date', required=False)
    def finalize_day_command(date):
        """Finalizes winners for DATE (YYYY-MM-DD), defaulting to yesterday."""
        with flask_app.app_context():
            engine = get_engine(flask_app)
            date = date or engine.clock.current_period().yesterday_key
            result = engine.finalize_day(date)
        if result is None:
            raise click.ClickException(f'Finalization for {date} failed; see logs.')
        wallets = ', '.join(w.wallet for w in result.winners) or 'none'
        click.echo(f'Finalized {date}: winners={wallets} pot={result.daily_pot:.3f}')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(finalize_day_command)

    return flask_app

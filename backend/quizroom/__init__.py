import random
import time

import click
from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
migrate = Migrate()
default_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
socketio = SocketIO(async_mode=None)


def create_app(config_class=None):
    if config_class is None:
        from config import Config as config_class

    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    origins = [o.strip() for o in (flask_app.config.get('CORS_ORIGINS') or '').split(',') if o.strip()]
    allowed_origins = origins or default_origins

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Round services are built once per app so tests can swap the clock or rng
    from quizroom.services.trivia import QuestionPool, RoundController
    pool = QuestionPool(
        rng=random.Random(),
        candidate_window=int(flask_app.config.get('POOL_CANDIDATE_WINDOW', 200)),
        top_k=int(flask_app.config.get('POOL_TOP_K', 50)),
    )
    flask_app.extensions['round_controller'] = RoundController(
        pool,
        clock=time.time,
        rng=random.Random(),
        question_sec=int(flask_app.config.get('QUESTION_DURATION_SEC', 20)),
        reveal_sec=int(flask_app.config.get('REVEAL_DURATION_SEC', 10)),
        grace_sec=int(flask_app.config.get('ADVANCE_GRACE_SEC', 1)),
        min_quality=int(flask_app.config.get('MIN_QUALITY_SCORE', 70)),
    )

    from quizroom.main import main
    flask_app.register_blueprint(main)

    from quizroom.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api')

    from quizroom.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates all tables."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    @click.command('questions-import')
    @click.argument('path', type=click.Path(exists=True, dir_okay=False))
    @click.option('--band', required=True, help='Audience band the questions belong to.')
    @click.option('--min-quality', default=0, show_default=True, help='Drop questions scored below this.')
    @click.option('--source', default='import', show_default=True)
    def questions_import_command(path, band, min_quality, source):
        """Caches questions from a JSON file into the pool."""
        import json
        from quizroom.services.trivia import cache_questions

        with open(path, encoding='utf-8') as fh:
            payload = json.load(fh)
        items = payload.get('questions', []) if isinstance(payload, dict) else payload
        with flask_app.app_context():
            inserted = cache_questions(band, items, min_quality=min_quality, source=source)
        print(f'Cached {inserted} of {len(items)} questions for {band}')

    @click.command('questions-stats')
    def questions_stats_command():
        """Prints the pool size per audience band."""
        from quizroom.models import AUDIENCE_BANDS
        from quizroom.services.trivia import count_questions

        with flask_app.app_context():
            for band in AUDIENCE_BANDS:
                print(f'{band}: {count_questions(band)}')

    @click.command('rooms-close-idle')
    def rooms_close_idle_command():
        """Closes rooms whose round deadline passed long ago."""
        controller = flask_app.extensions['round_controller']
        with flask_app.app_context():
            closed = controller.close_idle_rooms(int(flask_app.config.get('ROOM_IDLE_CLOSE_SEC', 3600)))
        print(f'Closed {closed} idle rooms')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(questions_import_command)
    flask_app.cli.add_command(questions_stats_command)
    flask_app.cli.add_command(rooms_close_idle_command)

    return flask_app

import os
import sys
import pytest
from sqlalchemy import event

# Ensure the backend root (containing the `quizroom` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from quizroom import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    QUESTION_DURATION_SEC = 20
    REVEAL_DURATION_SEC = 10
    ADVANCE_GRACE_SEC = 1
    HEARTBEAT_INTERVAL_SEC = 2
    MIN_QUALITY_SCORE = 70
    POOL_CANDIDATE_WINDOW = 200
    POOL_TOP_K = 50
    ROOM_IDLE_CLOSE_SEC = 3600


class FakeClock:
    def __init__(self, start=1_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds
        return self.now


def make_questions(count, quality=90, prefix='Question'):
    return [
        {
            'question': f'{prefix} {i}?',
            'choices': [f'{prefix} {i} right', f'{prefix} {i} wrong', f'{prefix} {i} other'],
            'correct_index': 0,
            'explanation': f'Because {i}.',
            'quality_score': quality,
        }
        for i in range(count)
    ]


def _enable_sqlite_savepoints(engine):
    # pysqlite needs explicit BEGIN for SAVEPOINT to nest inside the outer transaction
    @event.listens_for(engine, 'connect')
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, 'begin')
    def _on_begin(conn):
        conn.exec_driver_sql('BEGIN')


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def flask_app(clock):
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import quizroom.models  # noqa: F401
        _enable_sqlite_savepoints(db.engine)
        db.create_all()
        application.extensions['round_controller'].clock = clock
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def controller(flask_app):
    return flask_app.extensions['round_controller']


@pytest.fixture()
def seeded(flask_app):
    from quizroom.services.trivia import cache_questions
    cache_questions('family', make_questions(12), source='test')
    return 12


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')

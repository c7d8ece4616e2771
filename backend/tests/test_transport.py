import threading
import time
from unittest import mock

import requests

from conftest import FakeClock
from quizroom.client.events import QUESTION, REVEAL
from quizroom.client.transport import RoomClient

T0 = 1_000_000.0
BASE = 'http://quiz.local'

ROOM = {'id': 1, 'code': 'ABCDEF', 'audience_band': 'family', 'status': 'active', 'round_number': 1,
        'current_question_id': 11, 'round_ends_at': T0 + 20, 'version': 1}
PLAYER = {'id': 7, 'room_id': 1, 'label': 'Quiz Whizzes', 'color': 'teal', 'score': 0}
QUESTION_11 = {'id': 11, 'prompt': 'Q?', 'choices': ['a', 'b', 'c'], 'correct_index': 1}


def _response(payload, status=200):
    res = mock.Mock()
    res.json.return_value = payload
    if status >= 400:
        res.raise_for_status.side_effect = requests.HTTPError(f'{status} error')
    return res


class FakeSession:
    def __init__(self):
        self.posts = []
        self.post_responses = {}
        self.get_responses = {
            f'{BASE}/api/rooms/ABCDEF': dict(ROOM, players=[PLAYER], heartbeat_interval=2,
                                             durations={'question': 20, 'reveal': 10, 'advanced_round': 31}),
            f'{BASE}/api/questions/11': QUESTION_11,
            f'{BASE}/api/questions/13': dict(QUESTION_11, id=13, prompt='Q13?'),
        }
        self.closed = False

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append((url, json))
        outcome = self.post_responses.get(url, {'ok': True})
        if isinstance(outcome, Exception):
            raise outcome
        return _response(outcome)

    def get(self, url, timeout=None):
        return _response(self.get_responses[url])

    def close(self):
        self.closed = True


def _joined_client():
    session = FakeSession()
    session.post_responses[f'{BASE}/api/rooms/join'] = {'room': ROOM, 'player': PLAYER}
    clock = FakeClock(T0)
    client = RoomClient(BASE, 'device-1', session=session, sio=mock.Mock(connected=False), clock=clock)
    client.join('abcdef')
    client.sync.poll()
    # FetchQuestion is queued for the command worker; run it here instead
    assert client.process_commands() == 1
    client.sync.poll()
    return client, session, clock


def test_join_loads_state_and_question():
    client, session, _ = _joined_client()
    assert client.room_code == 'ABCDEF'
    assert client.player['id'] == 7
    assert client.sync.state.phase == QUESTION
    assert client.sync.state.question.id == 11
    assert client.sync.state.players[0].label == 'Quiz Whizzes'
    assert session.posts[0] == (f'{BASE}/api/rooms/join', {'code': 'abcdef', 'device_id': 'device-1'})


def test_answer_reveals_before_the_post_completes():
    client, session, _ = _joined_client()
    posts_before = len(session.posts)
    assert client.sync.select_answer(1) is True
    client.sync.poll()
    assert client.sync.state.phase == REVEAL
    assert len(session.posts) == posts_before

    assert client.process_commands() == 1
    assert session.posts[-1] == (
        f'{BASE}/api/rooms/ABCDEF/answer', {'player_id': 7, 'round_number': 1, 'choice_index': 1}
    )


def test_failed_answer_reopens_question():
    client, session, clock = _joined_client()
    session.post_responses[f'{BASE}/api/rooms/ABCDEF/answer'] = requests.ConnectionError('offline')
    clock.now = T0 + 2
    client.sync.select_answer(0)
    client.sync.poll()
    assert client.sync.state.phase == REVEAL
    client.process_commands()
    client.sync.poll()
    assert client.sync.state.phase == QUESTION
    assert client.sync.state.accepting_answers


def test_answer_from_another_thread_while_running():
    client, session, _ = _joined_client()
    stop = threading.Event()
    runner = threading.Thread(target=client.run, args=(stop,),
                              kwargs={'poll_interval': 0.01, 'heartbeat_interval': 60}, daemon=True)
    runner.start()
    try:
        tapper = threading.Thread(target=client.sync.select_answer, args=(2,))
        tapper.start()
        tapper.join()

        deadline = time.time() + 3.0
        answer_url = f'{BASE}/api/rooms/ABCDEF/answer'
        while time.time() < deadline and not any(url == answer_url for url, _ in session.posts):
            time.sleep(0.01)
    finally:
        stop.set()
        runner.join(timeout=3.0)

    assert (answer_url, {'player_id': 7, 'round_number': 1, 'choice_index': 2}) in session.posts
    assert client.sync.state.selected_answer == 2
    assert client.sync.scheduler.active.kind == 'reveal_answer'


def test_heartbeat_pushes_tick_snapshot():
    client, session, clock = _joined_client()
    advanced = dict(ROOM, round_number=2, current_question_id=12, round_ends_at=T0 + 51, version=2)
    session.post_responses[f'{BASE}/api/rooms/ABCDEF/tick'] = {'ok': True, 'advanced': True, 'room': advanced}
    clock.now = T0 + 20
    client.heartbeat()
    client.sync.poll()
    assert client.sync.state.room.version == 2
    assert client.sync.state.phase == REVEAL


def test_heartbeat_failure_is_logged_not_raised():
    client, session, _ = _joined_client()
    session.post_responses[f'{BASE}/api/rooms/ABCDEF/tick'] = requests.Timeout('slow')
    assert client.heartbeat() is None
    assert client.sync.state.phase == QUESTION


def test_feed_handlers_feed_synchronizer():
    client, _, _ = _joined_client()
    handlers = {}

    def on(event, namespace=None):
        def register(fn):
            handlers[event] = fn
            return fn
        return register

    client.sio.on.side_effect = on
    client.connect_feed()
    client.sio.connect.assert_called_once_with(BASE, namespaces=['/ws'])

    handlers['connect']()
    client.sio.emit.assert_called_with('join_room', {'room_code': 'ABCDEF'}, namespace='/ws')

    handlers['players_update']({'room_code': 'ABCDEF', 'players': [dict(PLAYER, score=750)]})
    handlers['room_update'](dict(ROOM, current_question_id=13, version=2, round_ends_at=T0 + 30))
    client.sync.poll()
    assert client.sync.state.players[0].score == 750
    assert client.sync.state.question_id == 13


def test_close_releases_session():
    client, session, _ = _joined_client()
    client.close()
    assert session.closed
    assert client.sync.scheduler.active is None

import logging
import queue
import threading
import time
from typing import Callable, Optional

import requests
import socketio

from quizroom import timing
from .events import FetchQuestion, PostAnswer
from .reducer import Timings
from .synchronizer import ClientSynchronizer

logger = logging.getLogger(__name__)

NAMESPACE = '/ws'
REQUEST_TIMEOUT = 5


class RoomClient:
    """Network side of one device: HTTP calls, the push feed and the heartbeat.

    Every inbound snapshot is handed to the synchronizer queue; nothing here
    touches phase state directly.
    """

    def __init__(self, base_url: str, device_id: str, session: Optional[requests.Session] = None,
                 sio: Optional[socketio.Client] = None, synchronizer: Optional[ClientSynchronizer] = None,
                 clock: Callable[[], float] = time.time):
        self.base_url = base_url.rstrip('/')
        self.device_id = device_id
        self.session = session or requests.Session()
        self.sio = sio or socketio.Client(reconnection=True)
        self.sync = synchronizer or ClientSynchronizer(clock=clock)
        self.sync.set_command_handler(self._handle_command)
        self.room_code: Optional[str] = None
        self.player: Optional[dict] = None
        self.heartbeat_interval = timing.HEARTBEAT_INTERVAL_SEC
        # Reducer commands wait here for the command worker, off the poll thread
        self._commands: "queue.Queue[object]" = queue.Queue()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api{path}"

    def _post(self, path: str, payload: Optional[dict] = None) -> dict:
        res = self.session.post(self._url(path), json=payload or {},
                                headers={'X-Device-Id': self.device_id}, timeout=REQUEST_TIMEOUT)
        res.raise_for_status()
        return res.json()

    def _get(self, path: str) -> dict:
        res = self.session.get(self._url(path), timeout=REQUEST_TIMEOUT)
        res.raise_for_status()
        return res.json()

    # ---- room lifecycle ----

    def create(self, audience_band: str) -> dict:
        data = self._post('/rooms', {'audience_band': audience_band, 'device_id': self.device_id})
        self.player = data.get('player')
        self._load_state(data['code'], source='join')
        return data

    def join(self, code: str) -> dict:
        data = self._post('/rooms/join', {'code': code, 'device_id': self.device_id})
        self.player = data['player']
        self._load_state(data['room']['code'], source='join')
        return data

    def _load_state(self, code: str, source: str) -> None:
        self.room_code = code
        state = self._get(f'/rooms/{code}')
        if state.get('durations'):
            self.sync.adopt_timings(Timings.from_durations(state['durations']))
        self.heartbeat_interval = state.get('heartbeat_interval') or timing.HEARTBEAT_INTERVAL_SEC
        self.sync.push_players(state.get('players') or [])
        self.sync.push_room(state, source=source)
        logger.info(f"[client-join] room={code} player={(self.player or {}).get('id')}")

    def connect_feed(self) -> None:
        @self.sio.on('connect', namespace=NAMESPACE)
        def _on_connect():
            # Rejoin the channel after every (re)connect
            if self.room_code:
                self.sio.emit('join_room', {'room_code': self.room_code}, namespace=NAMESPACE)

        @self.sio.on('room_update', namespace=NAMESPACE)
        def _on_room_update(data):
            self.sync.push_room(data, source='feed')

        @self.sio.on('players_update', namespace=NAMESPACE)
        def _on_players_update(data):
            self.sync.push_players(data.get('players') or [])

        self.sio.connect(self.base_url, namespaces=[NAMESPACE])

    # ---- requests that feed the synchronizer ----

    def heartbeat(self) -> Optional[dict]:
        if not self.room_code:
            return None
        try:
            data = self._post(f'/rooms/{self.room_code}/tick')
        except requests.RequestException as e:
            logger.warning(f"[heartbeat-failed] room={self.room_code} error={e}")
            return None
        if data.get('room'):
            self.sync.push_room(data['room'], source='heartbeat')
        return data

    def fetch_question(self, question_id: int) -> None:
        try:
            data = self._get(f'/questions/{question_id}')
        except requests.RequestException as e:
            logger.warning(f"[question-fetch-failed] id={question_id} error={e}")
            return
        self.sync.push_question(data)

    def post_answer(self, round_number: int, choice_index: int) -> bool:
        payload = {
            'player_id': (self.player or {}).get('id'),
            'round_number': round_number,
            'choice_index': choice_index,
        }
        try:
            self._post(f'/rooms/{self.room_code}/answer', payload)
        except requests.RequestException as e:
            logger.warning(f"[answer-failed] room={self.room_code} round={round_number} error={e}")
            self.sync.answer_failed(round_number)
            return False
        return True

    def skip(self, feedback_type: str) -> dict:
        data = self._post(f'/rooms/{self.room_code}/skip', {
            'player_id': (self.player or {}).get('id'),
            'feedback_type': feedback_type,
        })
        self.sync.push_room(data['room'], source='skip')
        return data

    def reset(self) -> dict:
        data = self._post(f'/rooms/{self.room_code}/reset')
        self.sync.push_room(data['room'], source='reset')
        return data

    def _handle_command(self, command) -> None:
        if not isinstance(command, (FetchQuestion, PostAnswer)):
            raise TypeError(f'Unknown client command: {command!r}')
        self._commands.put(command)

    def _execute(self, command) -> None:
        if isinstance(command, FetchQuestion):
            self.fetch_question(command.question_id)
        else:
            self.post_answer(command.round_number, command.choice_index)

    def process_commands(self) -> int:
        """Run every queued command now; for callers without a command worker."""
        handled = 0
        while True:
            try:
                command = self._commands.get_nowait()
            except queue.Empty:
                return handled
            self._execute(command)
            handled += 1

    # ---- main loop ----

    def run(self, stop_event: threading.Event, poll_interval: float = timing.POLL_INTERVAL_SEC,
            heartbeat_interval: Optional[float] = None) -> None:
        """Owner loop: poll the synchronizer and tick the room on an interval.

        The heartbeat and the reducer's network commands run on their own
        threads, so a slow request never delays a phase timer. Their
        results come back through the synchronizer queue.
        """
        interval = heartbeat_interval or self.heartbeat_interval

        def _beat():
            while not stop_event.wait(interval):
                self.heartbeat()

        def _work():
            while not stop_event.is_set():
                try:
                    command = self._commands.get(timeout=poll_interval)
                except queue.Empty:
                    continue
                self._execute(command)

        workers = [
            threading.Thread(target=_beat, name='quizroom-heartbeat', daemon=True),
            threading.Thread(target=_work, name='quizroom-commands', daemon=True),
        ]
        for worker in workers:
            worker.start()
        try:
            while not stop_event.is_set():
                self.sync.poll()
                stop_event.wait(poll_interval)
        finally:
            stop_event.set()
            for worker in workers:
                worker.join(timeout=interval)

    def close(self) -> None:
        self.sync.close()
        if self.sio.connected:
            self.sio.disconnect()
        self.session.close()

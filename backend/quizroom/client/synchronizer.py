import logging
import queue
import time
from dataclasses import replace
from typing import Callable, List, Optional

from .events import (
    AnswerFailed, AnswerSelected, PlayersReceived, PlayerView, QuestionLoaded, QuestionView,
    RoomSnapshot, RoomSnapshotReceived,
)
from .reducer import ClientState, Timings, answer_allowed, reduce
from .scheduler import PhaseScheduler

logger = logging.getLogger(__name__)


class ClientSynchronizer:
    """Derives one device's display phase from room snapshots and local timers.

    Feed callbacks and heartbeat responses may arrive on any thread; they
    are queued with ``submit`` and only applied by the owner thread in
    ``poll``/``drain``, so reducer state and the phase timer have a single
    writer. Answer taps go through the same queue. Commands produced by the
    reducer go to `on_command`, which runs on the owner thread and must
    not block; network work belongs on another thread.
    """

    def __init__(self, clock: Callable[[], float] = time.time, timings: Optional[Timings] = None,
                 on_command: Optional[Callable[[object], None]] = None):
        self.clock = clock
        self.state = ClientState(timings=timings or Timings())
        self.scheduler = PhaseScheduler()
        self._events: 'queue.Queue[object]' = queue.Queue()
        self._on_command = on_command
        self._listeners: List[Callable[[ClientState], None]] = []

    def subscribe(self, listener: Callable[[ClientState], None]) -> None:
        self._listeners.append(listener)

    def set_command_handler(self, handler: Callable[[object], None]) -> None:
        self._on_command = handler

    def adopt_timings(self, timings: Timings) -> None:
        self.state = replace(self.state, timings=timings)

    # ---- thread-safe inputs ----

    def submit(self, event) -> None:
        self._events.put(event)

    def push_room(self, data: dict, source: str = 'feed') -> None:
        self.submit(RoomSnapshotReceived(room=RoomSnapshot.from_dict(data), now=self.clock(), source=source))

    def push_players(self, players: list) -> None:
        self.submit(PlayersReceived(players=tuple(PlayerView.from_dict(p) for p in players)))

    def push_question(self, data: dict) -> None:
        self.submit(QuestionLoaded(question=QuestionView.from_dict(data)))

    def answer_failed(self, round_number: int) -> None:
        self.submit(AnswerFailed(round_number=round_number, now=self.clock()))

    # ---- owner thread ----

    def dispatch(self, event) -> list:
        before = self.state
        self.state, commands = reduce(self.state, event)
        self.scheduler.sync(self.state.timer)
        if self.state.phase != before.phase:
            logger.info(f"[phase] {before.phase}->{self.state.phase} round={self.state.round_number}")
        if self.state is not before:
            for listener in self._listeners:
                listener(self.state)
        for command in commands:
            if self._on_command is not None:
                self._on_command(command)
        return commands

    def drain(self) -> None:
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return
            self.dispatch(event)

    def poll(self) -> ClientState:
        """Apply queued events, then fire the phase timer if it is due."""
        self.drain()
        fired = self.scheduler.due(self.clock())
        if fired is not None:
            self.dispatch(fired)
        return self.state

    def select_answer(self, choice_index: int) -> bool:
        """Local answer tap, safe from any thread.

        Returns False when the current state already rejects the tap. An
        accepted tap is queued and applied by the owner's next ``poll``,
        where the reducer checks it again against the state at that point.
        """
        if not answer_allowed(self.state, choice_index):
            return False
        self.submit(AnswerSelected(choice_index=choice_index, now=self.clock()))
        return True

    def close(self) -> None:
        self.scheduler.cancel()

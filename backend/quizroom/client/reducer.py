"""Pure phase reconciliation for one device.

``reduce(state, event)`` returns the next state and the commands the
caller must perform. It never reads a clock or touches the network:
every event carries the instant it was observed. The state owns a single
optional ``PhaseTimer``; replacing it is how a pending timer gets
cancelled, so two timers can never be live for one client.

Snapshot ordering comes from the room ``version``: lower versions are
stale and ignored, equal versions are duplicates, and a newer version
with a lower round number is a reset.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

from quizroom import timing
from .events import (
    LEADERBOARD, LEADERBOARD_DONE, LOADING, QUESTION, QUESTION_DEADLINE, REVEAL, REVEAL_ANSWER,
    AnswerFailed, AnswerSelected, FetchQuestion, PhaseTimer, PlayersReceived, PlayerView, PostAnswer,
    QuestionLoaded, QuestionView, RoomSnapshot, RoomSnapshotReceived, TimerFired,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Timings:
    reveal_answer_sec: float = timing.REVEAL_ANSWER_SEC
    leaderboard_sec: float = timing.LEADERBOARD_SEC

    @classmethod
    def from_durations(cls, durations: dict) -> 'Timings':
        """Split the server's reveal window the same way the defaults do."""
        reveal = float(durations.get('reveal', timing.REVEAL_DURATION_SEC))
        answer = min(float(timing.REVEAL_ANSWER_SEC), reveal)
        return cls(reveal_answer_sec=answer, leaderboard_sec=reveal - answer)


@dataclass(frozen=True)
class ClientState:
    phase: str = LOADING
    # Latest server snapshot applied
    room: Optional[RoomSnapshot] = None
    # Round on screen; lags `room` while a reveal is still being shown
    round_number: Optional[int] = None
    question_id: Optional[int] = None
    round_ends_at: Optional[float] = None
    question: Optional[QuestionView] = None
    selected_answer: Optional[int] = None
    showing_leaderboard: bool = False
    timer: Optional[PhaseTimer] = None
    timer_seq: int = 0
    players: Tuple[PlayerView, ...] = ()
    scores_before_reveal: Tuple[Tuple[int, int], ...] = ()
    timings: Timings = field(default_factory=Timings)

    @property
    def superseded(self) -> bool:
        """The server has moved past the round on screen."""
        if self.room is None:
            return False
        return (self.room.round_number, self.room.current_question_id) != (self.round_number, self.question_id)

    @property
    def accepting_answers(self) -> bool:
        return self.phase == QUESTION and self.selected_answer is None

    @property
    def revealed_correct_index(self) -> Optional[int]:
        if self.phase == QUESTION or self.question is None:
            return None
        return self.question.correct_index

    @property
    def answered_correctly(self) -> Optional[bool]:
        correct = self.revealed_correct_index
        if correct is None or self.selected_answer is None:
            return None
        return self.selected_answer == correct


Result = Tuple[ClientState, List[object]]


def _arm(state: ClientState, kind: str, fires_at: float) -> ClientState:
    seq = state.timer_seq + 1
    return replace(state, timer=PhaseTimer(kind=kind, fires_at=fires_at, token=seq), timer_seq=seq)


def _enter_question(state: ClientState, room: RoomSnapshot, now: float) -> Result:
    keep_question = state.question is not None and state.question.id == room.current_question_id
    state = replace(
        state,
        phase=QUESTION,
        round_number=room.round_number,
        question_id=room.current_question_id,
        round_ends_at=room.round_ends_at,
        question=state.question if keep_question else None,
        selected_answer=None,
        showing_leaderboard=False,
        scores_before_reveal=(),
    )
    state = _arm(state, QUESTION_DEADLINE, room.round_ends_at if room.round_ends_at is not None else now)
    commands = []
    if not keep_question and room.current_question_id is not None:
        commands.append(FetchQuestion(room.current_question_id))
    return state, commands


def _enter_reveal(state: ClientState, now: float) -> ClientState:
    state = replace(
        state,
        phase=REVEAL,
        showing_leaderboard=False,
        scores_before_reveal=tuple((p.id, p.score) for p in state.players),
    )
    return _arm(state, REVEAL_ANSWER, now + state.timings.reveal_answer_sec)


def _show_leaderboard(state: ClientState, now: float) -> ClientState:
    state = replace(state, showing_leaderboard=True, timer=None)
    if state.superseded:
        state = _arm(state, LEADERBOARD_DONE, now + state.timings.leaderboard_sec)
    return state


def _fallback_leaderboard(state: ClientState, room: RoomSnapshot) -> Result:
    state = replace(
        state,
        phase=LEADERBOARD,
        round_number=room.round_number,
        question_id=room.current_question_id,
        round_ends_at=room.round_ends_at,
        selected_answer=None,
        showing_leaderboard=True,
        timer=None,
    )
    commands = [FetchQuestion(room.current_question_id)] if room.current_question_id is not None else []
    return state, commands


def _mid_leaderboard(state: ClientState) -> bool:
    showing = state.phase == LEADERBOARD or (state.phase == REVEAL and state.showing_leaderboard)
    return showing and state.timer is not None and state.timer.kind == LEADERBOARD_DONE


def _on_snapshot(state: ClientState, event: RoomSnapshotReceived) -> Result:
    snap, now = event.room, event.now
    prev = state.room

    if prev is not None:
        if snap.code != prev.code:
            return state, []
        if snap.version < prev.version:
            logger.debug(
                f"[sync-stale] room={snap.code} version={snap.version}<{prev.version} source={event.source}"
            )
            return state, []
        if snap.version == prev.version:
            return state, []

    state = replace(state, room=snap)

    if prev is None:
        if snap.status == 'active' and snap.round_ends_at is not None and now < snap.round_ends_at:
            return _enter_question(state, snap, now)
        # Joined after the round closed: show standings rather than a stale question
        return _fallback_leaderboard(state, snap)

    if snap.status != 'active':
        return replace(state, phase=LEADERBOARD, showing_leaderboard=True, timer=None), []

    if snap.round_number < prev.round_number:
        logger.info(f"[sync-reset] room={snap.code} round={prev.round_number}->{snap.round_number}")
        return _enter_question(replace(state, question=None), snap, now)

    if snap.round_number > prev.round_number:
        if state.phase == QUESTION:
            # Server closed the round before the local timer did
            return _enter_reveal(state, now), []
        if state.timer is None and state.showing_leaderboard:
            return _arm(state, LEADERBOARD_DONE, now + state.timings.leaderboard_sec), []
        # Reveal answer panel still up: its timer leads to the new round
        return state, []

    if snap.current_question_id != prev.current_question_id:
        if _mid_leaderboard(state):
            # Absorbed; the leaderboard timer moves on to the latest question
            return state, []
        logger.info(f"[sync-skip] room={snap.code} round={snap.round_number} question={snap.current_question_id}")
        return _enter_question(state, snap, now)

    if snap.round_ends_at != prev.round_ends_at and not _mid_leaderboard(state):
        # Only a reset moves the deadline of an unchanged round and question
        logger.info(f"[sync-reset] room={snap.code} round={snap.round_number} same question")
        return _enter_question(state, snap, now)

    return state, []


def _on_timer(state: ClientState, event: TimerFired) -> Result:
    if state.timer is None or state.timer.token != event.token:
        return state, []
    if event.kind == QUESTION_DEADLINE and state.phase == QUESTION:
        return _enter_reveal(state, event.now), []
    if event.kind == REVEAL_ANSWER and state.phase == REVEAL:
        return _show_leaderboard(state, event.now), []
    if event.kind == LEADERBOARD_DONE and state.superseded:
        return _enter_question(state, state.room, event.now)
    return replace(state, timer=None), []


def answer_allowed(state: ClientState, choice_index: int) -> bool:
    """Whether a tap on `choice_index` would be taken in this state."""
    if not state.accepting_answers:
        return False
    return state.question is None or 0 <= choice_index < len(state.question.choices)


def _on_answer(state: ClientState, event: AnswerSelected) -> Result:
    if not answer_allowed(state, event.choice_index):
        return state, []
    state = replace(state, selected_answer=event.choice_index)
    return _enter_reveal(state, event.now), [PostAnswer(state.round_number, event.choice_index)]


def _on_answer_failed(state: ClientState, event: AnswerFailed) -> Result:
    if event.round_number != state.round_number or state.selected_answer is None:
        return state, []
    state = replace(state, selected_answer=None)
    can_retry = (
        state.phase == REVEAL
        and not state.showing_leaderboard
        and not state.superseded
        and state.round_ends_at is not None
        and event.now < state.round_ends_at
    )
    if not can_retry:
        return state, []
    state = replace(state, phase=QUESTION, scores_before_reveal=())
    return _arm(state, QUESTION_DEADLINE, state.round_ends_at), []


def reduce(state: ClientState, event) -> Result:
    if isinstance(event, RoomSnapshotReceived):
        return _on_snapshot(state, event)
    if isinstance(event, TimerFired):
        return _on_timer(state, event)
    if isinstance(event, AnswerSelected):
        return _on_answer(state, event)
    if isinstance(event, AnswerFailed):
        return _on_answer_failed(state, event)
    if isinstance(event, QuestionLoaded):
        if event.question.id != state.question_id:
            return state, []
        return replace(state, question=event.question), []
    if isinstance(event, PlayersReceived):
        return replace(state, players=tuple(event.players)), []
    raise TypeError(f'Unknown client event: {event!r}')

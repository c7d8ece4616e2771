"""Typed inputs and outputs of the client phase reducer.

Both the push feed and the heartbeat responses arrive as
``RoomSnapshotReceived``; the reducer never needs to know which
transport delivered a snapshot, only its version.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

# Display phases
LOADING = 'loading'
QUESTION = 'question'
REVEAL = 'reveal'
LEADERBOARD = 'leaderboard'

# Timer kinds, at most one armed per client
QUESTION_DEADLINE = 'question_deadline'
REVEAL_ANSWER = 'reveal_answer'
LEADERBOARD_DONE = 'leaderboard_done'


@dataclass(frozen=True)
class RoomSnapshot:
    code: str
    round_number: int
    current_question_id: Optional[int]
    round_ends_at: Optional[float]
    version: int
    status: str = 'active'

    @classmethod
    def from_dict(cls, data: dict) -> 'RoomSnapshot':
        return cls(
            code=data['code'],
            round_number=int(data['round_number']),
            current_question_id=data.get('current_question_id'),
            round_ends_at=data.get('round_ends_at'),
            version=int(data.get('version') or 0),
            status=data.get('status') or 'active',
        )


@dataclass(frozen=True)
class PlayerView:
    id: int
    label: str
    color: str
    score: int

    @classmethod
    def from_dict(cls, data: dict) -> 'PlayerView':
        return cls(id=data['id'], label=data['label'], color=data['color'], score=int(data.get('score') or 0))


@dataclass(frozen=True)
class QuestionView:
    id: int
    prompt: str
    choices: Tuple[str, ...]
    correct_index: Optional[int] = None
    explanation: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'QuestionView':
        return cls(
            id=data['id'],
            prompt=data['prompt'],
            choices=tuple(data['choices']),
            correct_index=data.get('correct_index'),
            explanation=data.get('explanation'),
        )


@dataclass(frozen=True)
class PhaseTimer:
    kind: str
    fires_at: float
    token: int


# ---- inbound events ----

@dataclass(frozen=True)
class RoomSnapshotReceived:
    room: RoomSnapshot
    now: float
    source: str = 'feed'  # feed, heartbeat, join


@dataclass(frozen=True)
class PlayersReceived:
    players: Tuple[PlayerView, ...]


@dataclass(frozen=True)
class QuestionLoaded:
    question: QuestionView


@dataclass(frozen=True)
class AnswerSelected:
    choice_index: int
    now: float


@dataclass(frozen=True)
class AnswerFailed:
    round_number: int
    now: float


@dataclass(frozen=True)
class TimerFired:
    kind: str
    token: int
    now: float


# ---- outbound commands ----

@dataclass(frozen=True)
class FetchQuestion:
    question_id: int


@dataclass(frozen=True)
class PostAnswer:
    round_number: int
    choice_index: int

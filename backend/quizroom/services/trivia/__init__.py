"""Trivia round services: question pool, scoring and the round controller.

This package holds the room rules that HTTP routes and socket handlers
call into, keeping transport concerns separate from round mechanics.
"""

from .controller import RoundController, TickResult
from .pool import QuestionPool, cache_questions, count_questions
from .scoring import score_round, speed_multiplier

__all__ = [
    'QuestionPool',
    'RoundController',
    'TickResult',
    'cache_questions',
    'count_questions',
    'score_round',
    'speed_multiplier',
]

from typing import Optional

from flask import current_app

from quizroom import db
from quizroom.models import Answer, Player

BASE_POINTS = 500

# (minimum fraction of round time remaining, multiplier), fastest first
SPEED_TIERS = (
    (0.75, 1.5),
    (0.5, 1.25),
    (0.25, 1.0),
)
SLOWEST_MULTIPLIER = 0.75


def speed_multiplier(answered_at: Optional[float], deadline: Optional[float], duration: float) -> float:
    """Multiplier for a correct answer from the share of round time left.

    Each bracket includes its lower bound, so exactly 75% remaining earns
    the top tier. Without a deadline or timestamp the neutral 1.0 applies.
    """
    if answered_at is None or deadline is None or not duration:
        return 1.0
    remaining = max(0.0, deadline - answered_at)
    frac_remaining = remaining / duration
    for floor, multiplier in SPEED_TIERS:
        if frac_remaining >= floor:
            return multiplier
    return SLOWEST_MULTIPLIER


def points_for(answered_at, deadline, duration) -> int:
    return int(round(BASE_POINTS * speed_multiplier(answered_at, deadline, duration)))


def score_round(room, round_number: int, question_id: int, correct_index: int,
                deadline: Optional[float], duration: float) -> dict:
    """Mark the round's answers and add points to player totals.

    Only answers given to `question_id` count; answers to a question that
    was skipped within the round stay unscored. Players who never answered
    are untouched. Changes are flushed, not committed: the round
    controller commits them together with the round advance, which is what
    keeps this at most once per round.
    """
    answers = Answer.query.filter_by(room_id=room.id, round_number=round_number, question_id=question_id).all()
    awarded = {}
    for answer in answers:
        if answer.choice_index == correct_index:
            points = points_for(answer.answered_at, deadline, duration)
            answer.is_correct = True
            answer.points = points
            # Expression update so concurrent awards to other rows never read stale totals
            Player.query.filter_by(id=answer.player_id).update(
                {Player.score: Player.score + points}, synchronize_session=False
            )
            awarded[answer.player_id] = points
        else:
            answer.is_correct = False
            answer.points = 0
        db.session.add(answer)
    db.session.flush()

    current_app.logger.info(
        f"[score] room={room.code} round={round_number} question={question_id} answers={len(answers)} "
        f"correct={len(awarded)} points={sum(awarded.values())}"
    )
    return awarded

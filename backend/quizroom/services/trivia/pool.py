import random
from typing import Iterable, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from quizroom import db
from quizroom.errors import NoQuestionsAvailable
from quizroom.models import Question, RoomQuestion, question_dedup_key


def _valid_question(item) -> bool:
    prompt = item.get('question') or item.get('prompt')
    choices = item.get('choices')
    correct = item.get('correct_index')
    if not isinstance(prompt, str) or not prompt.strip():
        return False
    if not isinstance(choices, list) or not 2 <= len(choices) <= 4:
        return False
    if not all(isinstance(c, str) and c.strip() for c in choices):
        return False
    if len({c.strip() for c in choices}) != len(choices):
        return False
    return isinstance(correct, int) and not isinstance(correct, bool) and 0 <= correct < len(choices)


def cache_questions(audience_band: str, questions: Iterable[dict], min_quality: float = 0,
                    source: Optional[str] = None) -> int:
    """Insert generated questions into the pool, skipping invalid and duplicate ones.

    Accepts dicts shaped like the generator output (`question` or `prompt`,
    `choices`, `correct_index`, optional `explanation` and
    `quality_score`). Returns the number of rows inserted.
    """
    existing = {
        key for (key,) in db.session.query(Question.dedup_key).filter_by(audience_band=audience_band).all()
    }
    inserted = 0
    for item in questions:
        if not _valid_question(item):
            current_app.logger.info(f"[cache-skip] band={audience_band} reason=invalid")
            continue
        quality = float(item.get('quality_score', 0) or 0)
        if quality < min_quality:
            continue
        prompt = (item.get('question') or item.get('prompt')).strip()
        choices = [c.strip() for c in item['choices']]
        key = question_dedup_key(prompt, choices)
        if key in existing:
            continue
        existing.add(key)
        explanation = item.get('explanation')
        try:
            with db.session.begin_nested():
                db.session.add(Question(
                    prompt=prompt,
                    choices=choices,
                    correct_index=item['correct_index'],
                    explanation=explanation.strip() if isinstance(explanation, str) else None,
                    audience_band=audience_band,
                    dedup_key=key,
                    quality_score=quality,
                    source=source,
                ))
            inserted += 1
        except IntegrityError:
            # Cached concurrently by another importer
            current_app.logger.info(f"[cache-skip] band={audience_band} reason=duplicate")
    db.session.commit()
    current_app.logger.info(f"[cache] band={audience_band} inserted={inserted} source={source}")
    return inserted


def count_questions(audience_band: str) -> int:
    return Question.query.filter_by(audience_band=audience_band).count()


class QuestionPool:
    """Serves the next question for a room from the cached pool.

    Prefers high quality questions the room has not seen yet. When those
    run out the quality floor is dropped, and after that repeats are
    allowed: a repeat is better than a stalled game. Selection is uniform
    within the top-K candidates so consecutive sessions differ.
    """

    def __init__(self, rng=None, candidate_window: int = 200, top_k: int = 50):
        self.rng = rng or random.Random()
        self.candidate_window = candidate_window
        self.top_k = top_k

    def used_question_ids(self, room_id: int) -> set:
        return {qid for (qid,) in db.session.query(RoomQuestion.question_id).filter_by(room_id=room_id).all()}

    def _candidates(self, audience_band: str, floor: Optional[float], exclude: set) -> List[Question]:
        query = Question.query.filter(Question.audience_band == audience_band)
        if floor is not None:
            query = query.filter(Question.quality_score >= floor)
        if exclude:
            query = query.filter(Question.id.notin_(exclude))
        return query.order_by(Question.quality_score.desc(), Question.id).limit(self.candidate_window).all()

    def select_next(self, room, audience_band: str, round_number: int, min_quality: float) -> Question:
        used = self.used_question_ids(room.id)
        candidates = self._candidates(audience_band, min_quality, used)
        if not candidates:
            current_app.logger.warning(
                f"[pool-widen] room={room.code} band={audience_band} floor={min_quality} used={len(used)}"
            )
            candidates = self._candidates(audience_band, None, used)
        if not candidates:
            current_app.logger.warning(f"[pool-repeat] room={room.code} band={audience_band} used={len(used)}")
            candidates = self._candidates(audience_band, None, set())
        if not candidates:
            raise NoQuestionsAvailable(audience_band)

        question = self.rng.choice(candidates[:self.top_k])
        self._record_usage(room, round_number, question.id)
        return question

    def _record_usage(self, room, round_number: int, question_id: int) -> None:
        # Advisory: the no-repeat guarantee is best effort, a lost row only risks a repeat
        try:
            with db.session.begin_nested():
                db.session.add(RoomQuestion(room_id=room.id, round_number=round_number, question_id=question_id))
        except SQLAlchemyError as exc:
            current_app.logger.warning(
                f"[pool-usage-failed] room={room.code} round={round_number} question={question_id} error={exc}"
            )

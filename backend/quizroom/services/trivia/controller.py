import random
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from quizroom import db
from quizroom.errors import InvalidSubmission, NoQuestionsAvailable, RoomNotFound, TransientStoreError
from quizroom.models import (
    AUDIENCE_BANDS, FEEDBACK_KINDS, ROOM_ACTIVE, ROOM_CLOSED,
    Answer, Player, Question, QuestionFeedback, Room, RoomQuestion, generate_room_code,
)
from quizroom.timing import advanced_round_seconds
from .labels import assign_label_and_color
from .scoring import score_round


@dataclass
class TickResult:
    advanced: bool
    room: dict


class RoundController:
    """Authoritative round lifecycle for every room.

    Rooms are only ever written here. Closing a round is one conditional
    UPDATE that matches the round number, question and version that were
    read; scoring runs in the same transaction after the UPDATE claims the
    row, so concurrent heartbeats can never score a round twice. There are
    no retries: a failed tick is simply re-evaluated by the next one.
    """

    def __init__(self, pool, clock=time.time, rng=None, question_sec=20, reveal_sec=10, grace_sec=1,
                 min_quality=70):
        self.pool = pool
        self.clock = clock
        self.rng = rng or random.Random()
        self.question_sec = question_sec
        self.reveal_sec = reveal_sec
        self.grace_sec = grace_sec
        self.min_quality = min_quality

    @property
    def advanced_round_sec(self):
        return advanced_round_seconds(self.question_sec, self.reveal_sec, self.grace_sec)

    def durations(self):
        return {
            'question': self.question_sec,
            'reveal': self.reveal_sec,
            'advanced_round': self.advanced_round_sec,
        }

    @contextmanager
    def _transaction(self, operation):
        try:
            yield
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.warning(f"[store-error] op={operation} error={exc}")
            raise TransientStoreError(operation, exc) from exc
        except Exception:
            db.session.rollback()
            raise

    def get_room(self, code) -> Room:
        room = Room.query.filter_by(code=(code or '').upper()).first()
        if not room:
            raise RoomNotFound(code)
        return room

    def _new_player(self, room, device_id) -> Player:
        taken = [(p.label, p.color) for p in Player.query.filter_by(room_id=room.id).all()]
        label, color = assign_label_and_color(taken, self.rng)
        player = Player(room_id=room.id, device_id=device_id, label=label, color=color, score=0,
                        created_at=self.clock())
        db.session.add(player)
        db.session.flush()
        return player

    def start_room(self, audience_band, device_id=None):
        """Create a room on its first question; optionally seat the host's device."""
        if audience_band not in AUDIENCE_BANDS:
            raise InvalidSubmission('Invalid audience_band')
        now = self.clock()
        with self._transaction('create_room'):
            room = Room(code=generate_room_code(self.rng), audience_band=audience_band, status=ROOM_ACTIVE,
                        round_number=1, version=1, created_at=now)
            db.session.add(room)
            db.session.flush()
            question = self.pool.select_next(room, audience_band, 1, self.min_quality)
            room.current_question_id = question.id
            room.round_ends_at = now + self.question_sec
            player = self._new_player(room, device_id) if device_id else None
        current_app.logger.info(
            f"[room-create] room={room.code} band={audience_band} question={room.current_question_id}"
        )
        return room, player

    def join_room(self, code, device_id):
        """Seat a device in an active room. Re-joining returns the same player."""
        if not device_id:
            raise InvalidSubmission('Device ID required')
        room = Room.query.filter_by(code=(code or '').upper(), status=ROOM_ACTIVE).first()
        if not room:
            raise RoomNotFound(code)
        player = Player.query.filter_by(room_id=room.id, device_id=device_id).first()
        if player:
            return room, player, False
        try:
            player = self._new_player(room, device_id)
            db.session.commit()
        except IntegrityError:
            # The same device joined from a second tab at the same moment
            db.session.rollback()
            player = Player.query.filter_by(room_id=room.id, device_id=device_id).first()
            if not player:
                raise TransientStoreError('join_room')
            return room, player, False
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise TransientStoreError('join_room', exc) from exc
        current_app.logger.info(f"[player-join] room={room.code} player={player.id} label={player.label!r}")
        return room, player, True

    def submit_answer(self, code, player_id, round_number, choice_index) -> bool:
        """Record an answer; returns False when one already exists (first write wins)."""
        room = self.get_room(code)
        for value in (player_id, round_number, choice_index):
            if not isinstance(value, int) or isinstance(value, bool):
                raise InvalidSubmission('player_id, round_number and choice_index must be integers')
        if room.status != ROOM_ACTIVE:
            raise InvalidSubmission('Room is closed')
        if round_number != room.round_number:
            raise InvalidSubmission('Round number mismatch')
        player = Player.query.filter_by(id=player_id, room_id=room.id).first()
        if not player:
            raise InvalidSubmission('Unknown player')
        question = room.current_question
        if question is None or not 0 <= choice_index < len(question.choices):
            raise InvalidSubmission('Invalid choice_index')

        if Answer.query.filter_by(room_id=room.id, player_id=player.id, round_number=round_number).first():
            current_app.logger.info(f"[answer-duplicate] room={room.code} player={player.id} round={round_number}")
            return False
        try:
            db.session.add(Answer(
                room_id=room.id,
                player_id=player.id,
                round_number=round_number,
                question_id=question.id,
                choice_index=choice_index,
                answered_at=self.clock(),
            ))
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            current_app.logger.info(f"[answer-duplicate] room={room.code} player={player_id} round={round_number}")
            return False
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise TransientStoreError('submit_answer', exc) from exc
        current_app.logger.info(f"[answer] room={room.code} player={player.id} round={round_number}")
        return True

    def should_end_round(self, room, now) -> bool:
        if room.round_ends_at is None or now >= room.round_ends_at:
            return True
        player_ids = {pid for (pid,) in db.session.query(Player.id).filter_by(room_id=room.id).all()}
        if not player_ids:
            return False
        answered = {
            pid for (pid,) in db.session.query(Answer.player_id).filter_by(
                room_id=room.id, round_number=room.round_number, question_id=room.current_question_id
            ).all()
        }
        return player_ids <= answered

    def _claim_and_advance(self, room, expected_round, expected_question_id, expected_version, now,
                           keep_round=False) -> Optional[Question]:
        """Point the room at a fresh question if it still matches what was read.

        Returns the new question, or None when another writer got there first.
        Runs in a savepoint, so a lost claim only discards its own writes and
        leaves earlier pending work in the session. Does not commit.
        """
        next_round = expected_round if keep_round else expected_round + 1
        savepoint = db.session.begin_nested()
        next_question = self.pool.select_next(room, room.audience_band, next_round, self.min_quality)
        ends_at = now + (self.question_sec if keep_round else self.advanced_round_sec)

        criteria = [
            Room.id == room.id,
            Room.status == ROOM_ACTIVE,
            Room.round_number == expected_round,
            Room.version == expected_version,
        ]
        if expected_question_id is None:
            criteria.append(Room.current_question_id.is_(None))
        else:
            criteria.append(Room.current_question_id == expected_question_id)
        claimed = Room.query.filter(*criteria).update({
            Room.round_number: next_round,
            Room.current_question_id: next_question.id,
            Room.round_ends_at: ends_at,
            Room.version: Room.version + 1,
        }, synchronize_session=False)
        if claimed != 1:
            savepoint.rollback()
            return None
        savepoint.commit()
        return next_question

    def close_round(self, room, expected_round, expected_question_id, expected_version, deadline,
                    now=None) -> bool:
        """Score the expected round and advance to the next one, at most once."""
        now = self.clock() if now is None else now
        code = room.code
        next_question = self._claim_and_advance(room, expected_round, expected_question_id, expected_version, now)
        if next_question is None:
            db.session.rollback()
            current_app.logger.info(f"[tick-lost] room={code} round={expected_round} already advanced")
            return False
        question = db.session.get(Question, expected_question_id) if expected_question_id else None
        if question is not None:
            score_round(room, expected_round, question.id, question.correct_index, deadline, self.question_sec)
        db.session.commit()
        current_app.logger.info(
            f"[round-advance] room={code} round={expected_round}->{expected_round + 1} question={next_question.id}"
        )
        return True

    def tick(self, code) -> TickResult:
        """Heartbeat: close and advance the round if it is over.

        Safe to call redundantly. Store failures and an empty pool leave the
        round as it was and report "not advanced"; the next heartbeat retries.
        """
        room = self.get_room(code)
        snapshot = room.to_dict()
        if room.status != ROOM_ACTIVE:
            return TickResult(False, snapshot)
        now = self.clock()
        try:
            if not self.should_end_round(room, now):
                return TickResult(False, snapshot)
            advanced = self.close_round(
                room, room.round_number, room.current_question_id, room.version, room.round_ends_at, now=now
            )
        except NoQuestionsAvailable as exc:
            db.session.rollback()
            current_app.logger.error(f"[tick-no-questions] room={snapshot['code']} band={exc.audience_band}")
            return TickResult(False, snapshot)
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.warning(f"[tick-store-error] room={snapshot['code']} error={exc}")
            return TickResult(False, snapshot)
        if not advanced:
            return TickResult(False, self.get_room(code).to_dict())
        return TickResult(True, room.to_dict())

    def skip(self, code, player_id, feedback_kind):
        """Swap in a new question for the current round without scoring it.

        Feedback and the swap commit together. Answers given to the skipped
        question were never going to be scored; they are dropped so every
        player can answer the replacement in the same round.
        """
        if feedback_kind not in FEEDBACK_KINDS:
            raise InvalidSubmission('Invalid feedback_type')
        room = self.get_room(code)
        if room.status != ROOM_ACTIVE:
            raise InvalidSubmission('Room is closed')
        if player_id is not None and not Player.query.filter_by(id=player_id, room_id=room.id).first():
            raise InvalidSubmission('Unknown player')
        skipped_question_id = room.current_question_id
        round_number = room.round_number
        now = self.clock()

        expected_version = room.version
        room_id = room.id

        with self._transaction('skip'):
            if skipped_question_id is not None:
                db.session.add(QuestionFeedback(room_id=room_id, player_id=player_id,
                                                question_id=skipped_question_id, kind=feedback_kind,
                                                created_at=now))
                db.session.flush()
            next_question = self._claim_and_advance(
                room, round_number, skipped_question_id, expected_version, now, keep_round=True
            )
            if next_question is not None and skipped_question_id is not None:
                Answer.query.filter_by(
                    room_id=room_id, round_number=round_number, question_id=skipped_question_id
                ).delete(synchronize_session=False)
        current_app.logger.info(
            f"[skip] room={room.code} round={round_number} kind={feedback_kind} question={skipped_question_id}"
            f"->{next_question.id if next_question else 'unchanged'}"
        )
        return room, next_question is not None

    def reset(self, code) -> Room:
        """Fresh session: new labels, zero scores, cleared history, round 1."""
        room = self.get_room(code)
        now = self.clock()
        with self._transaction('reset'):
            assigned = []
            for player in Player.query.filter_by(room_id=room.id).order_by(Player.id).all():
                label, color = assign_label_and_color(assigned, self.rng)
                assigned.append((label, color))
                player.label = label
                player.color = color
                player.score = 0
                db.session.add(player)
            RoomQuestion.query.filter_by(room_id=room.id).delete(synchronize_session=False)
            Answer.query.filter_by(room_id=room.id).delete(synchronize_session=False)
            db.session.flush()
            question = self.pool.select_next(room, room.audience_band, 1, self.min_quality)
            room.round_number = 1
            room.current_question_id = question.id
            room.round_ends_at = now + self.question_sec
            room.status = ROOM_ACTIVE
            room.version = (room.version or 0) + 1
            db.session.add(room)
        current_app.logger.info(
            f"[reset] room={room.code} players={len(assigned)} question={room.current_question_id}"
        )
        return room

    def close_idle_rooms(self, max_idle_sec) -> int:
        cutoff = self.clock() - max_idle_sec
        with self._transaction('close_idle_rooms'):
            closed = Room.query.filter(Room.status == ROOM_ACTIVE, Room.round_ends_at < cutoff).update({
                Room.status: ROOM_CLOSED,
                Room.version: Room.version + 1,
            }, synchronize_session=False)
        current_app.logger.info(f"[rooms-close-idle] closed={closed}")
        return closed

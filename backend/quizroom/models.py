from quizroom import db
import hashlib
import random
import re
import time

AUDIENCE_BANDS = ('kids', 'tweens', 'family', 'adults')
FEEDBACK_KINDS = ('skip', 'inappropriate', 'confusing')

ROOM_ACTIVE = 'active'
ROOM_CLOSED = 'closed'

# No 0/O or 1/I so codes read back unambiguously
ROOM_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
ROOM_CODE_LENGTH = 6
MAX_ROOM_CODE_ATTEMPTS = 10


def _normalize_text(value):
    return re.sub(r'\s+', ' ', str(value)).strip().casefold()


def question_dedup_key(prompt, choices):
    """Stable key over the normalized prompt and ordered choices."""
    parts = [_normalize_text(prompt)] + [_normalize_text(c) for c in choices]
    return hashlib.sha256('\x1f'.join(parts).encode('utf-8')).hexdigest()


def generate_room_code(rng=random):
    """Generate a unique room code, giving up after a bounded number of attempts."""
    for _ in range(MAX_ROOM_CODE_ATTEMPTS):
        code = ''.join(rng.choices(ROOM_CODE_ALPHABET, k=ROOM_CODE_LENGTH))
        if not Room.query.filter_by(code=code).first():
            return code
    raise RuntimeError('Failed to generate unique room code')


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(ROOM_CODE_LENGTH), unique=True, nullable=False, index=True)
    audience_band = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=ROOM_ACTIVE)  # active, closed
    round_number = db.Column(db.Integer, nullable=False, default=1)
    current_question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=True)
    round_ends_at = db.Column(db.Float, nullable=True)  # epoch seconds
    # Bumped on every controller write so clients can drop out-of-order snapshots
    version = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.Float, nullable=False, default=time.time)

    players = db.relationship('Player', back_populates='room', order_by='Player.id')
    current_question = db.relationship('Question')

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'audience_band': self.audience_band,
            'status': self.status,
            'round_number': self.round_number,
            'current_question_id': self.current_question_id,
            'round_ends_at': self.round_ends_at,
            'version': self.version,
        }


class Player(db.Model):
    __tablename__ = 'player'
    __table_args__ = (db.UniqueConstraint('room_id', 'device_id', name='uq_player_room_device'),)
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, index=True)
    device_id = db.Column(db.String(64), nullable=False)
    label = db.Column(db.String(64), nullable=False)
    color = db.Column(db.String(32), nullable=False)
    score = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.Float, nullable=False, default=time.time)
    room = db.relationship('Room', back_populates='players')

    def to_dict(self):
        return {
            'id': self.id,
            'room_id': self.room_id,
            'label': self.label,
            'color': self.color,
            'score': self.score,
        }


class Question(db.Model):
    __tablename__ = 'question'
    __table_args__ = (db.UniqueConstraint('audience_band', 'dedup_key', name='uq_question_band_dedup'),)
    id = db.Column(db.Integer, primary_key=True)
    prompt = db.Column(db.Text, nullable=False)
    choices = db.Column(db.JSON, nullable=False)  # ordered list, index is the answer identity
    correct_index = db.Column(db.Integer, nullable=False)
    explanation = db.Column(db.Text, nullable=True)
    audience_band = db.Column(db.String(16), nullable=False, index=True)
    dedup_key = db.Column(db.String(64), nullable=False)
    quality_score = db.Column(db.Float, nullable=False, default=0)
    source = db.Column(db.String(32), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'prompt': self.prompt,
            'choices': list(self.choices or []),
            'correct_index': self.correct_index,
            'explanation': self.explanation,
            'audience_band': self.audience_band,
        }


class RoomQuestion(db.Model):
    """Usage record: question shown in a room at a round (no-repeat bookkeeping)."""
    __tablename__ = 'room_question'
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, index=True)
    round_number = db.Column(db.Integer, nullable=False)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False)


class Answer(db.Model):
    __tablename__ = 'answer'
    __table_args__ = (
        db.UniqueConstraint('room_id', 'player_id', 'round_number', name='uq_answer_room_player_round'),
    )
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    round_number = db.Column(db.Integer, nullable=False)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False)
    choice_index = db.Column(db.Integer, nullable=False)
    answered_at = db.Column(db.Float, nullable=False)
    # Set by scoring, never by the submitter
    is_correct = db.Column(db.Boolean, nullable=True)
    points = db.Column(db.Integer, nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'player_id': self.player_id,
            'round_number': self.round_number,
            'question_id': self.question_id,
            'choice_index': self.choice_index,
            'is_correct': self.is_correct,
            'points': self.points,
        }


class QuestionFeedback(db.Model):
    __tablename__ = 'question_feedback'
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=True)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id'), nullable=False)
    kind = db.Column(db.String(16), nullable=False)  # skip, inappropriate, confusing
    created_at = db.Column(db.Float, nullable=False, default=time.time)

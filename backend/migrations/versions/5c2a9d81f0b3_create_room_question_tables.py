"""create room, player, question, usage, answer and feedback tables

Revision ID: 5c2a9d81f0b3
Revises:
Create Date: 2026-10-17 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2a9d81f0b3'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'question',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('prompt', sa.Text(), nullable=False),
        sa.Column('choices', sa.JSON(), nullable=False),
        sa.Column('correct_index', sa.Integer(), nullable=False),
        sa.Column('explanation', sa.Text(), nullable=True),
        sa.Column('audience_band', sa.String(length=16), nullable=False),
        sa.Column('dedup_key', sa.String(length=64), nullable=False),
        sa.Column('quality_score', sa.Float(), nullable=False),
        sa.Column('source', sa.String(length=32), nullable=True),
        sa.UniqueConstraint('audience_band', 'dedup_key', name='uq_question_band_dedup'),
    )
    op.create_index('ix_question_audience_band', 'question', ['audience_band'])

    op.create_table(
        'room',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=6), nullable=False),
        sa.Column('audience_band', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('current_question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=True),
        sa.Column('round_ends_at', sa.Float(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
    )
    op.create_index('ix_room_code', 'room', ['code'], unique=True)

    op.create_table(
        'player',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id'), nullable=False),
        sa.Column('device_id', sa.String(length=64), nullable=False),
        sa.Column('label', sa.String(length=64), nullable=False),
        sa.Column('color', sa.String(length=32), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.UniqueConstraint('room_id', 'device_id', name='uq_player_room_device'),
    )
    op.create_index('ix_player_room_id', 'player', ['room_id'])

    op.create_table(
        'room_question',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id'), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
    )
    op.create_index('ix_room_question_room_id', 'room_question', ['room_id'])

    op.create_table(
        'answer',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id'), nullable=False),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('round_number', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
        sa.Column('choice_index', sa.Integer(), nullable=False),
        sa.Column('answered_at', sa.Float(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=True),
        sa.Column('points', sa.Integer(), nullable=True),
        sa.UniqueConstraint('room_id', 'player_id', 'round_number', name='uq_answer_room_player_round'),
    )
    op.create_index('ix_answer_room_id', 'answer', ['room_id'])

    op.create_table(
        'question_feedback',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id'), nullable=False),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=True),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
    )
    op.create_index('ix_question_feedback_room_id', 'question_feedback', ['room_id'])


def downgrade():
    op.drop_index('ix_question_feedback_room_id', table_name='question_feedback')
    op.drop_table('question_feedback')
    op.drop_index('ix_answer_room_id', table_name='answer')
    op.drop_table('answer')
    op.drop_index('ix_room_question_room_id', table_name='room_question')
    op.drop_table('room_question')
    op.drop_index('ix_player_room_id', table_name='player')
    op.drop_table('player')
    op.drop_index('ix_room_code', table_name='room')
    op.drop_table('room')
    op.drop_index('ix_question_audience_band', table_name='question')
    op.drop_table('question')

"""Initial question engine schema

Revision ID: 001
Revises:
Create Date: 2026-10-17 09:12:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    # Create question_usages table
    op.create_table(
        'question_usages',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('owning_plugin', sa.String(255), nullable=False),
        sa.Column('context', sa.String(255), nullable=True),
        sa.Column('preferred_behaviour', sa.String(32), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_question_usages')
    )

    # Create question_attempts table
    op.create_table(
        'question_attempts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('usage_id', sa.Integer(),
                  sa.ForeignKey('question_usages.id', ondelete='CASCADE',
                                name='fk_question_attempts_usage_id_question_usages'),
                  nullable=False),
        sa.Column('slot', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.String(255), nullable=False),
        sa.Column('behaviour', sa.String(32), nullable=False),
        sa.Column('max_mark', sa.Float(), nullable=False),
        sa.Column('min_fraction', sa.Float(), nullable=False),
        sa.Column('flagged', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('question_summary', sa.Text(), nullable=True),
        sa.Column('right_answer_summary', sa.Text(), nullable=True),
        sa.Column('response_summary', sa.Text(), nullable=True),
        sa.Column('time_modified', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_question_attempts'),
        sa.UniqueConstraint('usage_id', 'slot', name='uq_question_attempts_usage_slot')
    )
    op.create_index('ix_question_attempts_question_id', 'question_attempts', ['question_id'])

    # Create question_attempt_steps table
    op.create_table(
        'question_attempt_steps',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('attempt_id', sa.Integer(),
                  sa.ForeignKey('question_attempts.id', ondelete='CASCADE',
                                name='fk_question_attempt_steps_attempt_id_question_attempts'),
                  nullable=False),
        sa.Column('sequence_number', sa.Integer(), nullable=False),
        sa.Column('state', sa.String(16), nullable=False),
        sa.Column('fraction', sa.Float(), nullable=True),
        sa.Column('timestamp', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_question_attempt_steps'),
        sa.UniqueConstraint('attempt_id', 'sequence_number', name='uq_question_attempt_steps_attempt_seq')
    )
    op.create_index('idx_question_attempt_steps_user', 'question_attempt_steps', ['user_id', 'timestamp'])

    # Create question_attempt_step_data table
    op.create_table(
        'question_attempt_step_data',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('step_id', sa.Integer(),
                  sa.ForeignKey('question_attempt_steps.id', ondelete='CASCADE',
                                name='fk_question_attempt_step_data_step_id_question_attempt_steps'),
                  nullable=False),
        sa.Column('name', sa.String(64), nullable=False),
        sa.Column('value', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_question_attempt_step_data'),
        sa.UniqueConstraint('step_id', 'name', name='uq_question_attempt_step_data_step_name')
    )

def downgrade():
    op.drop_table('question_attempt_step_data')
    op.drop_index('idx_question_attempt_steps_user', table_name='question_attempt_steps')
    op.drop_table('question_attempt_steps')
    op.drop_index('ix_question_attempts_question_id', table_name='question_attempts')
    op.drop_table('question_attempts')
    op.drop_table('question_usages')

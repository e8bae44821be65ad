"""create trivia questions, categories, settings and user scores

Revision ID: 5c1d7e2a9b30
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c1d7e2a9b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'trivia_questions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('question', sa.Text(), nullable=False),
        sa.Column('correct_answer', sa.String(255), nullable=False),
        sa.Column('wrong_answer1', sa.String(255), nullable=False),
        sa.Column('wrong_answer2', sa.String(255), nullable=False),
        sa.Column('wrong_answer3', sa.String(255), nullable=False),
        sa.Column('category_id', sa.String(100), nullable=False),
        sa.Column('difficulty', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_trivia_questions_category_id', 'trivia_questions', ['category_id'])
    op.create_index('ix_trivia_questions_difficulty', 'trivia_questions', ['difficulty'])

    op.create_table(
        'question_categories',
        sa.Column('id', sa.String(100), primary_key=True),
        sa.Column('name', sa.String(100), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
    )

    op.create_table(
        'trivia_settings',
        sa.Column('broadcaster_id', sa.String(100), primary_key=True),
        sa.Column('answer_time_ms', sa.Integer(), nullable=True),
        sa.Column('interval_ms', sa.Integer(), nullable=True),
        sa.Column('active_categories', sa.JSON(), nullable=True),
        sa.Column('active_difficulties', sa.JSON(), nullable=True),
    )

    op.create_table(
        'user_scores',
        sa.Column('user_id', sa.String(100), primary_key=True),
        sa.Column('username', sa.String(255), nullable=True),
        sa.Column('score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=False),
    )


def downgrade():
    op.drop_table('user_scores')
    op.drop_table('trivia_settings')
    op.drop_table('question_categories')
    op.drop_index('ix_trivia_questions_difficulty', table_name='trivia_questions')
    op.drop_index('ix_trivia_questions_category_id', table_name='trivia_questions')
    op.drop_table('trivia_questions')

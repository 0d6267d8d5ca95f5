"""initial schema: metrics, users, org members and tool results

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-06-02 10:14:08.512934

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from edify.migrations.util import get_uuid_type, get_json_type


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# table name -> tool specific columns (built lazily, types depend on the dialect)
def _tool_tables():
    json = get_json_type()
    return {
        'quiz_generator_results': [
            sa.Column('topic', sa.String(length=500), nullable=False),
            sa.Column('key_stage', sa.String(length=20), nullable=True),
            sa.Column('year_group', sa.String(length=20), nullable=True),
            sa.Column('question_count', sa.Integer(), nullable=False),
            sa.Column('question_types', json, nullable=True),
            sa.Column('difficulty', sa.String(length=20), nullable=True),
        ],
        'rubrics_generator_results': [
            sa.Column('topic', sa.String(length=500), nullable=False),
            sa.Column('key_stage', sa.String(length=20), nullable=False),
            sa.Column('year_group', sa.String(length=20), nullable=True),
            sa.Column('assignment_type', sa.String(length=100), nullable=False),
            sa.Column('custom_assignment_type', sa.String(length=100), nullable=True),
            sa.Column('assessment_type', sa.String(length=100), nullable=True),
            sa.Column('criteria', json, nullable=False),
            sa.Column('additional_instructions', sa.Text(), nullable=True),
        ],
        'sow_generator_results': [
            sa.Column('subject', sa.String(length=100), nullable=False),
            sa.Column('topic', sa.String(length=500), nullable=False),
            sa.Column('key_stage', sa.String(length=20), nullable=True),
            sa.Column('year_group', sa.String(length=20), nullable=True),
            sa.Column('duration_weeks', sa.Integer(), nullable=False),
            sa.Column('lessons_per_week', sa.Integer(), nullable=False),
            sa.Column('additional_notes', sa.Text(), nullable=True),
        ],
        'report_generator_results': [
            sa.Column('student_name', sa.String(length=100), nullable=False),
            sa.Column('subject', sa.String(length=100), nullable=False),
            sa.Column('year_group', sa.String(length=20), nullable=True),
            sa.Column('strengths', sa.Text(), nullable=False),
            sa.Column('areas_for_improvement', sa.Text(), nullable=True),
            sa.Column('tone', sa.String(length=50), nullable=True),
        ],
        'prompt_generator_results': [
            sa.Column('input_original_prompt', sa.Text(), nullable=False),
            sa.Column('core_purpose', sa.String(length=200), nullable=True),
            sa.Column('focus_areas', json, nullable=True),
            sa.Column('grade_level', sa.String(length=50), nullable=True),
        ],
        'peel_generator_results': [
            sa.Column('topic', sa.String(length=500), nullable=False),
            sa.Column('subject', sa.String(length=100), nullable=True),
            sa.Column('complexity', sa.String(length=50), nullable=True),
            sa.Column('tone', sa.String(length=50), nullable=True),
            sa.Column('word_count_range', sa.String(length=50), nullable=True),
        ],
        'perspective_challenge_results': [
            sa.Column('input_text', sa.Text(), nullable=False),
            sa.Column('focus_point', sa.String(length=500), nullable=True),
        ],
        'long_qa_generator_results': [
            sa.Column('input_topic', sa.String(length=500), nullable=False),
            sa.Column('input_subject', sa.String(length=100), nullable=True),
            sa.Column('input_year_group', sa.String(length=20), nullable=True),
            sa.Column('question_count', sa.Integer(), nullable=False),
        ],
        'lesson_plan_evaluations': [
            sa.Column('name', sa.String(length=200), nullable=False),
            sa.Column('subject', sa.String(length=100), nullable=True),
            sa.Column('year_group', sa.String(length=20), nullable=True),
            sa.Column('lesson_plan_text', sa.Text(), nullable=False),
        ],
    }


def upgrade() -> None:
    uuid = get_uuid_type()
    json = get_json_type()

    op.create_table(
        'ai_tools_metrics',
        sa.Column('id', uuid, nullable=False),
        sa.Column('user_id', sa.String(length=100), nullable=False),
        sa.Column('model', sa.String(length=100), nullable=False),
        sa.Column('input_length', sa.Integer(), nullable=False),
        sa.Column('response_length', sa.Integer(), nullable=False),
        sa.Column('duration_ms', sa.Integer(), nullable=False),
        sa.Column('input_tokens', sa.Integer(), nullable=False),
        sa.Column('output_tokens', sa.Integer(), nullable=False),
        sa.Column('total_tokens', sa.Integer(), nullable=False),
        sa.Column('price_gbp', sa.Numeric(precision=12, scale=6), nullable=False),
        sa.Column('content_flags', json, nullable=False),
        sa.Column('flagged', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('error_type', sa.String(length=100), nullable=True),
        sa.Column('status_code', sa.Integer(), nullable=True),
        sa.Column('prompt_id', uuid, nullable=True),
        sa.Column('prompt_type', sa.String(length=50), nullable=False),
        sa.Column('moderator_approval', sa.String(length=20), nullable=False, server_default='not_requested'),
        sa.Column('moderator_notes', sa.Text(), nullable=True),
        sa.Column('moderator_id', sa.String(length=100), nullable=True),
        sa.Column('user_requested_moderation', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('moderation_requested_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('moderation_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    for column in ('user_id', 'flagged', 'prompt_id', 'prompt_type', 'moderator_approval', 'created_at'):
        op.create_index(f'ix_ai_tools_metrics_{column}', 'ai_tools_metrics', [column], unique=False)
    op.create_index('ix_ai_tools_metrics_user_created', 'ai_tools_metrics', ['user_id', 'created_at'], unique=False)
    op.create_index(
        'ix_ai_tools_metrics_flagged_created', 'ai_tools_metrics', ['flagged', 'created_at'], unique=False
    )

    op.create_table(
        'users',
        sa.Column('id', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('username', sa.String(length=100), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=False)

    op.create_table(
        'org_members',
        sa.Column('membership_id', uuid, nullable=False),
        sa.Column('org_id', sa.String(length=100), nullable=False),
        sa.Column('user_id', sa.String(length=100), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('membership_id'),
        sa.UniqueConstraint('org_id', 'user_id', name='uq_org_members_org_user'),
    )
    op.create_index('ix_org_members_org_id', 'org_members', ['org_id'], unique=False)
    op.create_index('ix_org_members_user_id', 'org_members', ['user_id'], unique=False)

    for table_name, columns in _tool_tables().items():
        op.create_table(
            table_name,
            sa.Column('id', uuid, nullable=False),
            sa.Column('user_id', sa.String(length=100), nullable=False),
            *columns,
            sa.Column('ai_response', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(f'ix_{table_name}_user_id', table_name, ['user_id'], unique=False)
        op.create_index(f'ix_{table_name}_created_at', table_name, ['created_at'], unique=False)


def downgrade() -> None:
    for table_name in reversed(list(_tool_tables())):
        op.drop_index(f'ix_{table_name}_created_at', table_name=table_name)
        op.drop_index(f'ix_{table_name}_user_id', table_name=table_name)
        op.drop_table(table_name)

    op.drop_index('ix_org_members_user_id', table_name='org_members')
    op.drop_index('ix_org_members_org_id', table_name='org_members')
    op.drop_table('org_members')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')

    op.drop_index('ix_ai_tools_metrics_flagged_created', table_name='ai_tools_metrics')
    op.drop_index('ix_ai_tools_metrics_user_created', table_name='ai_tools_metrics')
    for column in ('user_id', 'flagged', 'prompt_id', 'prompt_type', 'moderator_approval', 'created_at'):
        op.drop_index(f'ix_ai_tools_metrics_{column}', table_name='ai_tools_metrics')
    op.drop_table('ai_tools_metrics')

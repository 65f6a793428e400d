"""create_duplicate_detector_tables

Revision ID: 3c1d9a7e5b20
Revises:
Create Date: 2026-10-17 09:12:40.118203

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '3c1d9a7e5b20'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('first_name', sa.String(), nullable=True),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('profile_image_url', sa.String(), nullable=True),
        sa.Column('preferences', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'sessions',
        sa.Column('sid', sa.String(), primary_key=True),
        sa.Column('sess', postgresql.JSONB(), nullable=False),
        sa.Column('expire', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_sessions_expire', 'sessions', ['expire'])

    op.create_table(
        'projects',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('external_id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('language', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('file_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_updated', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.UniqueConstraint('user_id', 'external_id', name='uq_projects_user_external'),
    )
    op.create_index('ix_projects_id', 'projects', ['id'])
    op.create_index('ix_projects_user_id', 'projects', ['user_id'])
    op.create_index('ix_projects_last_updated', 'projects', ['last_updated'])

    op.create_table(
        'code_patterns',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('file_path', sa.String(), nullable=False),
        sa.Column('pattern_hash', sa.String(length=64), nullable=False),
        sa.Column('code_snippet', sa.Text(), nullable=False),
        sa.Column('pattern_type', sa.String(length=20), nullable=False),
        sa.Column('line_start', sa.Integer(), nullable=False),
        sa.Column('line_end', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.CheckConstraint('line_start <= line_end', name='ck_code_patterns_line_range'),
    )
    op.create_index('ix_code_patterns_id', 'code_patterns', ['id'])
    op.create_index('ix_code_patterns_user_id', 'code_patterns', ['user_id'])
    op.create_index('ix_code_patterns_project_id', 'code_patterns', ['project_id'])
    op.create_index('ix_code_patterns_pattern_hash', 'code_patterns', ['pattern_hash'])

    op.create_table(
        'duplicate_groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('group_hash', sa.String(length=64), nullable=False),
        sa.Column('similarity_score', sa.Integer(), nullable=False),
        sa.Column('pattern_type', sa.String(length=20), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.CheckConstraint(
            'similarity_score >= 0 AND similarity_score <= 100',
            name='ck_duplicate_groups_score_range'
        ),
    )
    op.create_index('ix_duplicate_groups_id', 'duplicate_groups', ['id'])
    op.create_index('ix_duplicate_groups_user_id', 'duplicate_groups', ['user_id'])
    op.create_index('ix_duplicate_groups_group_hash', 'duplicate_groups', ['group_hash'])
    op.create_index('ix_duplicate_groups_similarity_score', 'duplicate_groups', ['similarity_score'])
    op.create_index('ix_duplicate_groups_created_at', 'duplicate_groups', ['created_at'])

    op.create_table(
        'pattern_groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'duplicate_group_id', sa.Integer(),
            sa.ForeignKey('duplicate_groups.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column(
            'code_pattern_id', sa.Integer(),
            sa.ForeignKey('code_patterns.id', ondelete='CASCADE'), nullable=False
        ),
        sa.UniqueConstraint('duplicate_group_id', 'code_pattern_id', name='uq_pattern_groups_member'),
    )
    op.create_index('ix_pattern_groups_id', 'pattern_groups', ['id'])
    op.create_index('ix_pattern_groups_duplicate_group_id', 'pattern_groups', ['duplicate_group_id'])
    op.create_index('ix_pattern_groups_code_pattern_id', 'pattern_groups', ['code_pattern_id'])


def downgrade() -> None:
    op.drop_table('pattern_groups')
    op.drop_table('duplicate_groups')
    op.drop_table('code_patterns')
    op.drop_table('projects')
    op.drop_table('sessions')
    op.drop_table('users')

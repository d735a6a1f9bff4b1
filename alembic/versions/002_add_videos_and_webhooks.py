"""add generated videos and webhooks

Revision ID: 002_videos_webhooks
Revises: 001_initial
Create Date: 2025-02-03 09:30:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '002_videos_webhooks'
down_revision = '001_initial'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'generated_videos',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('prompt', sa.Text(), nullable=False),
        sa.Column('negative_prompt', sa.Text(), nullable=True),
        sa.Column('model', sa.String(50), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('aspect_ratio', sa.String(10), nullable=False),
        sa.Column('resolution', sa.String(10), nullable=False),
        sa.Column('source_image_url', sa.String(1000), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('job_id', sa.String(255), nullable=True),
        sa.Column('video_url', sa.String(1000), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('credits_reserved', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('poll_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_generated_videos_id', 'generated_videos', ['id'])
    op.create_index('ix_generated_videos_user_id', 'generated_videos', ['user_id'])
    op.create_index('ix_generated_videos_status', 'generated_videos', ['status'])
    op.create_index('ix_generated_videos_job_id', 'generated_videos', ['job_id'])
    op.create_index('ix_generated_videos_created_at', 'generated_videos', ['created_at'])

    op.create_table(
        'webhooks',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('url', sa.String(1000), nullable=False),
        sa.Column('events', sa.JSON(), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('secret', sa.String(255), nullable=True),
        sa.Column('headers', sa.JSON(), nullable=False),
        sa.Column('retry_attempts', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_webhooks_id', 'webhooks', ['id'])

    op.create_table(
        'webhook_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('webhook_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('event', sa.String(100), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('response_code', sa.Integer(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('attempt', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['webhook_id'], ['webhooks.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_webhook_logs_id', 'webhook_logs', ['id'])
    op.create_index('ix_webhook_logs_webhook_id', 'webhook_logs', ['webhook_id'])
    op.create_index('ix_webhook_logs_created_at', 'webhook_logs', ['created_at'])


def downgrade():
    op.drop_table('webhook_logs')
    op.drop_table('webhooks')
    op.drop_table('generated_videos')

"""create_uploaded_files_and_outbox

Revision ID: 0001
Revises:
Create Date: 2025-07-02 10:12:41.118305

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'uploaded_files',
        sa.Column('file_id', sa.Uuid(), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('full_path', sa.String(length=1024), nullable=False),
        sa.Column('content_type', sa.String(length=16), nullable=False),
        sa.Column('file_size', sa.BigInteger(), nullable=False),
        sa.Column('uploader_id', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('file_id'),
        sa.UniqueConstraint('full_path', 'uploader_id', name='uq_uploaded_files_path_uploader'),
    )
    op.create_index('ix_uploaded_files_uploader_id', 'uploaded_files', ['uploader_id'])
    op.create_index('ix_uploaded_files_status', 'uploaded_files', ['status'])

    op.create_table(
        'outbox_kafka',
        sa.Column('id', sa.BigInteger(), sa.Identity(always=False), nullable=False),
        sa.Column('file_id', sa.Uuid(), nullable=False),
        sa.Column('payload', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
    )
    # 调度任务按 processed=false 且 created_at 顺序扫描
    op.create_index(
        'ix_outbox_kafka_processed_created_at', 'outbox_kafka', ['processed', 'created_at']
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_outbox_kafka_processed_created_at', table_name='outbox_kafka')
    op.drop_table('outbox_kafka')
    op.drop_index('ix_uploaded_files_status', table_name='uploaded_files')
    op.drop_index('ix_uploaded_files_uploader_id', table_name='uploaded_files')
    op.drop_table('uploaded_files')

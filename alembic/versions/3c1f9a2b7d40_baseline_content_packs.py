"""baseline_content_packs

Revision ID: 3c1f9a2b7d40
Revises:
Create Date: 2026-02-03 10:41:12.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1f9a2b7d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, content_packs and content_pack_backups tables."""
    from sqlalchemy import inspect

    # Check existing tables (idempotent migration)
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = inspector.get_table_names()

    if 'users' not in tables:
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('full_name', sa.String(), nullable=True),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('entitlement_level', sa.String(length=20), nullable=False, server_default='FREE'),
            sa.Column('role', sa.String(length=50), nullable=False, server_default='user'),
            sa.Column('stripe_customer_id', sa.String(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
        op.create_index(op.f('ix_users_stripe_customer_id'), 'users', ['stripe_customer_id'], unique=False)

    if 'content_packs' not in tables:
        op.create_table(
            'content_packs',
            sa.Column('id', sa.String(length=36), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('version', sa.String(length=50), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('schema_version', sa.String(length=50), nullable=False, server_default='1.0.0'),
            sa.Column('content', sa.JSON(), nullable=False),
            sa.Column('metadata', sa.JSON(), nullable=True),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('uploaded_by', sa.String(length=255), nullable=True),
            sa.Column('activated_by', sa.String(length=255), nullable=True),
            sa.Column('file_size', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('checksum', sa.String(length=64), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
            sa.Column('activated_at', sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(op.f('ix_content_packs_name'), 'content_packs', ['name'], unique=False)
        op.create_index(op.f('ix_content_packs_version'), 'content_packs', ['version'], unique=False)
        op.create_index(op.f('ix_content_packs_status'), 'content_packs', ['status'], unique=False)
        op.create_index(op.f('ix_content_packs_uploaded_by'), 'content_packs', ['uploaded_by'], unique=False)
        op.create_index(op.f('ix_content_packs_created_at'), 'content_packs', ['created_at'], unique=False)
        op.create_index('idx_content_packs_status_created', 'content_packs', ['status', 'created_at'], unique=False)
        # At most one row may be active
        op.create_index(
            'uq_content_packs_single_active',
            'content_packs',
            ['is_active'],
            unique=True,
            sqlite_where=sa.text('is_active = 1'),
            postgresql_where=sa.text('is_active'),
        )

    if 'content_pack_backups' not in tables:
        op.create_table(
            'content_pack_backups',
            sa.Column('id', sa.String(length=100), nullable=False),
            sa.Column('pack_id', sa.String(length=36), nullable=False),
            sa.Column('snapshot', sa.JSON(), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(op.f('ix_content_pack_backups_pack_id'), 'content_pack_backups', ['pack_id'], unique=False)


def downgrade() -> None:
    """Drop content pack tables and users."""
    op.drop_index(op.f('ix_content_pack_backups_pack_id'), table_name='content_pack_backups')
    op.drop_table('content_pack_backups')
    op.drop_index('uq_content_packs_single_active', table_name='content_packs')
    op.drop_index('idx_content_packs_status_created', table_name='content_packs')
    op.drop_index(op.f('ix_content_packs_created_at'), table_name='content_packs')
    op.drop_index(op.f('ix_content_packs_uploaded_by'), table_name='content_packs')
    op.drop_index(op.f('ix_content_packs_status'), table_name='content_packs')
    op.drop_index(op.f('ix_content_packs_version'), table_name='content_packs')
    op.drop_index(op.f('ix_content_packs_name'), table_name='content_packs')
    op.drop_table('content_packs')
    op.drop_index(op.f('ix_users_stripe_customer_id'), table_name='users')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_index(op.f('ix_users_id'), table_name='users')
    op.drop_table('users')

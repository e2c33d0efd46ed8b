"""Initial schema: media items, content tables and option store.

Revision ID: 3f6a2b1c9d0e
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '3f6a2b1c9d0e'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'media_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('file_path', sa.String(length=500), nullable=False),
        sa.Column('original_filename', sa.String(length=255), nullable=True),
        sa.Column('mime_type', sa.String(length=100), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('media_metadata', sa.JSON(), nullable=True),
        sa.Column('remote_url', sa.String(length=1024), nullable=True),
        sa.Column('offloaded_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_media_items_id', 'media_items', ['id'], unique=False)
    op.create_index('ix_media_items_file_path', 'media_items', ['file_path'], unique=False)

    op.create_table(
        'content_entries',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=True),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('excerpt', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_content_entries_id', 'content_entries', ['id'], unique=False)
    op.create_index('ix_content_entries_slug', 'content_entries', ['slug'], unique=False)

    op.create_table(
        'content_meta',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('entry_id', sa.Uuid(), nullable=False),
        sa.Column('meta_key', sa.String(length=255), nullable=False),
        sa.Column('meta_value', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['entry_id'], ['content_entries.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_content_meta_entry_id', 'content_meta', ['entry_id'], unique=False)
    op.create_index('ix_content_meta_meta_key', 'content_meta', ['meta_key'], unique=False)

    op.create_table(
        'app_options',
        sa.Column('key', sa.String(length=191), nullable=False),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('key'),
    )


def downgrade() -> None:
    op.drop_table('app_options')
    op.drop_index('ix_content_meta_meta_key', table_name='content_meta')
    op.drop_index('ix_content_meta_entry_id', table_name='content_meta')
    op.drop_table('content_meta')
    op.drop_index('ix_content_entries_slug', table_name='content_entries')
    op.drop_index('ix_content_entries_id', table_name='content_entries')
    op.drop_table('content_entries')
    op.drop_index('ix_media_items_file_path', table_name='media_items')
    op.drop_index('ix_media_items_id', table_name='media_items')
    op.drop_table('media_items')

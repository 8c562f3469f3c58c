"""Create tags, taggings and audit_logs tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create tags table
    op.create_table(
        'tags',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('organization_id', sa.String(255), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('parent_id', sa.String(36), sa.ForeignKey('tags.id', ondelete='RESTRICT'), nullable=True),
        sa.Column('color', sa.String(7)),
        sa.Column('description', sa.String(500)),
        sa.Column('created_by', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.UniqueConstraint('organization_id', 'parent_id', 'name', name='uq_tags_org_parent_name'),
    )
    op.create_index('ix_tags_organization_id', 'tags', ['organization_id'])
    op.create_index('ix_tags_parent_id', 'tags', ['parent_id'])
    # Root-level siblings: NULL parent_ids never collide in the constraint above
    op.create_index(
        'uq_tags_org_root_name',
        'tags',
        ['organization_id', 'name'],
        unique=True,
        postgresql_where=sa.text('parent_id IS NULL'),
    )

    # Create taggings table
    op.create_table(
        'taggings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tag_id', sa.String(36), sa.ForeignKey('tags.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('taggable_type', sa.String(32), nullable=False),
        sa.Column('taggable_id', sa.String(255), nullable=False),
        sa.Column('tagged_by', sa.String(255)),
        sa.Column('is_inherited', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.UniqueConstraint('tag_id', 'taggable_type', 'taggable_id', name='uq_taggings_tag_resource'),
    )
    op.create_index('ix_taggings_tag_id', 'taggings', ['tag_id'])
    op.create_index('ix_taggings_tagged_by', 'taggings', ['tagged_by'])
    op.create_index('ix_taggings_created_at', 'taggings', ['created_at'])
    op.create_index('idx_taggings_resource', 'taggings', ['taggable_type', 'taggable_id'])

    # Create audit_logs table
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('organization_id', sa.String(255), nullable=False),
        sa.Column('user_id', sa.String(255)),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('resource_type', sa.String(20), nullable=False),
        sa.Column('resource_id', sa.String(36), nullable=False),
        sa.Column('old_values', sa.JSON()),
        sa.Column('new_values', sa.JSON()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
    )
    op.create_index('idx_audit_logs_org_created', 'audit_logs', ['organization_id', 'created_at'])
    op.create_index('idx_audit_logs_resource', 'audit_logs', ['resource_type', 'resource_id'])


def downgrade() -> None:
    op.drop_index('idx_audit_logs_resource', table_name='audit_logs')
    op.drop_index('idx_audit_logs_org_created', table_name='audit_logs')
    op.drop_table('audit_logs')

    op.drop_index('idx_taggings_resource', table_name='taggings')
    op.drop_index('ix_taggings_created_at', table_name='taggings')
    op.drop_index('ix_taggings_tagged_by', table_name='taggings')
    op.drop_index('ix_taggings_tag_id', table_name='taggings')
    op.drop_table('taggings')

    op.drop_index('uq_tags_org_root_name', table_name='tags')
    op.drop_index('ix_tags_parent_id', table_name='tags')
    op.drop_index('ix_tags_organization_id', table_name='tags')
    op.drop_table('tags')

"""create category, room and user_profile tables

Revision ID: 5c2e9a71b0d4
Revises:
Create Date: 2026-10-17 00:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e9a71b0d4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'category' not in existing_tables:
        op.create_table(
            'category',
            sa.Column('id', sa.String(length=160), primary_key=True),
            sa.Column('name', sa.String(length=64), nullable=False),
            sa.Column('entries', sa.Text(), nullable=False, server_default='[]'),
            sa.Column('owner_key', sa.String(length=160), nullable=True),
            sa.Column('created_by', sa.Text(), nullable=True),
            sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        )
        op.create_index('ix_category_owner_key', 'category', ['owner_key'])

    if 'room' not in existing_tables:
        op.create_table(
            'room',
            sa.Column('room_id', sa.String(length=64), primary_key=True),
            sa.Column('data', sa.Text(), nullable=False),
            sa.Column('last_activity', sa.Float(), nullable=False),
        )

    if 'user_profile' not in existing_tables:
        op.create_table(
            'user_profile',
            sa.Column('user_id', sa.String(length=64), primary_key=True),
            sa.Column('data', sa.Text(), nullable=False),
            sa.Column('last_activity', sa.Float(), nullable=False),
        )


def downgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'user_profile' in existing_tables:
        op.drop_table('user_profile')
    if 'room' in existing_tables:
        op.drop_table('room')
    if 'category' in existing_tables:
        op.drop_index('ix_category_owner_key', table_name='category')
        op.drop_table('category')

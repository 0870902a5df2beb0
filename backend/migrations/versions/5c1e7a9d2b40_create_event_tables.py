"""create user, event, guest and wishlist_item tables

Revision ID: 5c1e7a9d2b40
Revises:
Create Date: 2025-09-02 10:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c1e7a9d2b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('nickname', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('avatar_url', sa.String(length=512), nullable=True),
        sa.Column('password_hash', sa.String(length=256), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_user_email', 'user', ['email'], unique=True)

    op.create_table(
        'event',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('event_at', sa.DateTime(), nullable=False),
        sa.Column('address', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('dress_code', sa.String(length=200), nullable=False, server_default=''),
        sa.Column('bring', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('notes', sa.Text(), nullable=False, server_default=''),
        sa.Column('join_code', sa.String(length=6), nullable=True),
        sa.Column('code_expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_event_owner_id', 'event', ['owner_id'])
    op.create_index('ix_event_join_code', 'event', ['join_code'], unique=True)

    op.create_table(
        'guest',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('event.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('rsvp', sa.String(length=8), nullable=False, server_default='no'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('event_id', 'name', name='uq_guest_event_name'),
    )
    op.create_index('ix_guest_event_id', 'guest', ['event_id'])
    op.create_index('ix_guest_user_id', 'guest', ['user_id'])

    op.create_table(
        'wishlist_item',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('event.id'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('title', sa.String(length=200), nullable=False, server_default=''),
        sa.Column('url', sa.String(length=1000), nullable=False, server_default=''),
        sa.Column('claimed_by_id', sa.Integer(), sa.ForeignKey('guest.id', ondelete='SET NULL'), nullable=True),
    )
    op.create_index('ix_wishlist_item_event_id', 'wishlist_item', ['event_id'])


def downgrade():
    op.drop_index('ix_wishlist_item_event_id', table_name='wishlist_item')
    op.drop_table('wishlist_item')
    op.drop_index('ix_guest_user_id', table_name='guest')
    op.drop_index('ix_guest_event_id', table_name='guest')
    op.drop_table('guest')
    op.drop_index('ix_event_join_code', table_name='event')
    op.drop_index('ix_event_owner_id', table_name='event')
    op.drop_table('event')
    op.drop_index('ix_user_email', table_name='user')
    op.drop_table('user')

"""one gift per guest index; token_version and login_nonce on user

Revision ID: d47a2e91c5f3
Revises: 9b3f0c6e8a12
Create Date: 2025-09-18 12:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'd47a2e91c5f3'
down_revision = '9b3f0c6e8a12'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)

    user_cols = {c['name'] for c in insp.get_columns('user')}
    with op.batch_alter_table('user') as batch_op:
        if 'token_version' not in user_cols:
            batch_op.add_column(sa.Column('token_version', sa.Integer(), nullable=False, server_default='0'))
        if 'login_nonce' not in user_cols:
            batch_op.add_column(sa.Column('login_nonce', sa.String(length=32), nullable=True))

    # Keep only the lowest-id claim per guest before enforcing uniqueness
    op.execute(
        "UPDATE wishlist_item SET claimed_by_id = NULL "
        "WHERE claimed_by_id IS NOT NULL AND id NOT IN ("
        "SELECT MIN(id) FROM wishlist_item WHERE claimed_by_id IS NOT NULL GROUP BY claimed_by_id)"
    )
    indexes = {ix['name'] for ix in insp.get_indexes('wishlist_item')}
    if 'uq_wishlist_item_claimed_by' not in indexes:
        op.create_index('uq_wishlist_item_claimed_by', 'wishlist_item', ['claimed_by_id'], unique=True)


def downgrade():
    op.drop_index('uq_wishlist_item_claimed_by', table_name='wishlist_item')
    with op.batch_alter_table('user') as batch_op:
        batch_op.drop_column('login_nonce')
        batch_op.drop_column('token_version')

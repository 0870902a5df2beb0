"""add cookie_consent table

Revision ID: 9b3f0c6e8a12
Revises: 5c1e7a9d2b40
Create Date: 2025-09-10 18:30:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '9b3f0c6e8a12'
down_revision = '5c1e7a9d2b40'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'cookie_consent' in set(insp.get_table_names()):
        return
    op.create_table(
        'cookie_consent',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), primary_key=True),
        sa.Column('choice', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )


def downgrade():
    op.drop_table('cookie_consent')

"""unique index on lower(players.name)

Revision ID: 7a4e2f91c0d3
Revises: 3c9d1e7a2b40
Create Date: 2026-10-19 09:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '7a4e2f91c0d3'
down_revision = '3c9d1e7a2b40'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing = {ix['name'] for ix in insp.get_indexes('players')}
    if 'ix_players_name_lower' not in existing:
        op.create_index('ix_players_name_lower', 'players', [sa.text('lower(name)')], unique=True)


def downgrade():
    op.drop_index('ix_players_name_lower', table_name='players')

"""create players and score_logs

Revision ID: 3c9d1e7a2b40
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c9d1e7a2b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'players' not in existing_tables:
        op.create_table(
            'players',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(length=64), nullable=False),
            sa.Column('total_points', sa.Integer(), nullable=False, server_default='0'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_players_name', 'players', ['name'], unique=True)

    if 'score_logs' not in existing_tables:
        op.create_table(
            'score_logs',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('player_id', sa.Integer(), nullable=False),
            sa.Column('points', sa.Integer(), nullable=False),
            sa.Column('note', sa.Text(), nullable=True),
            sa.Column('timestamp', sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(['player_id'], ['players.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_score_logs_player_id', 'score_logs', ['player_id'], unique=False)
        op.create_index('ix_score_logs_timestamp', 'score_logs', ['timestamp'], unique=False)


def downgrade():
    op.drop_index('ix_score_logs_timestamp', table_name='score_logs')
    op.drop_index('ix_score_logs_player_id', table_name='score_logs')
    op.drop_table('score_logs')
    op.drop_index('ix_players_name', table_name='players')
    op.drop_table('players')

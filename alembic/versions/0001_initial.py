from alembic import op
import sqlalchemy as sa

revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'user_alert_states',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String, nullable=False, index=True),
        sa.Column('alert_id', sa.String(64), nullable=False),
        sa.Column('is_read', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('is_deleted', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'alert_id', name='uq_user_alert_state'),
    )
    op.create_table(
        'user_watchlist',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String, nullable=False, index=True),
        sa.Column('neo_id', sa.String, nullable=False),
        sa.Column('neo_name', sa.String, nullable=False),
        sa.Column('added_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('alert_enabled', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.UniqueConstraint('user_id', 'neo_id', name='uq_user_watchlist_neo'),
    )

def downgrade():
    op.drop_table('user_watchlist')
    op.drop_table('user_alert_states')

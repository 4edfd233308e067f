"""create state_record

Revision ID: 5b7c2e9d1a40
Revises: 
Create Date: 2025-09-12 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b7c2e9d1a40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'state_record' in insp.get_table_names():
        return
    op.create_table(
        'state_record',
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('date', sa.String(length=10), nullable=True),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint('entity_type', 'id'),
    )
    with op.batch_alter_table('state_record') as batch_op:
        batch_op.create_index('ix_state_record_date', ['date'], unique=False)


def downgrade():
    with op.batch_alter_table('state_record') as batch_op:
        batch_op.drop_index('ix_state_record_date')
    op.drop_table('state_record')

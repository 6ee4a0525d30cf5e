"""Initial schema: bikes, rentals, park_config

Revision ID: 20261017_initial
Revises:
Create Date: 2026-10-17

This migration adds:
1. Bike registry with optimistic-lock version_id
2. Rentals with a partial unique index allowing one OPEN rental per bike
3. Single-row park timing configuration
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261017_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. BIKES TABLE
    # ==========================================================================
    op.create_table('bikes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('label', sa.String(length=128), nullable=True),
        sa.Column('model', sa.String(length=128), nullable=True),
        sa.Column('size', sa.String(length=32), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('photo_urls', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('bikes', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_bikes_code'), ['code'], unique=True)
        batch_op.create_index(batch_op.f('ix_bikes_status'), ['status'], unique=False)

    # ==========================================================================
    # 2. RENTALS TABLE
    # ==========================================================================
    op.create_table('rentals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bike_id', sa.Integer(), nullable=True),
        sa.Column('bike_code', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('operator_id', sa.String(length=128), nullable=False),
        sa.Column('operator_label', sa.String(length=255), nullable=True),
        sa.Column('renter_name', sa.String(length=128), nullable=True),
        sa.Column('renter_email', sa.String(length=255), nullable=True),
        sa.Column('renter_phone', sa.String(length=32), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('buffer_ends_at', sa.DateTime(), nullable=False),
        sa.Column('rental_ends_at', sa.DateTime(), nullable=False),
        sa.Column('returned_at', sa.DateTime(), nullable=True),
        sa.Column('total_minutes', sa.Integer(), nullable=True),
        sa.Column('incident_note', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['bike_id'], ['bikes.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('rentals', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_rentals_bike_id'), ['bike_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_rentals_bike_code'), ['bike_code'], unique=False)
        batch_op.create_index(batch_op.f('ix_rentals_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_rentals_started_at'), ['started_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_rentals_returned_at'), ['returned_at'], unique=False)

    # One open rental per bike
    op.create_index(
        'uq_rentals_open_bike',
        'rentals',
        ['bike_id'],
        unique=True,
        sqlite_where=sa.text("status = 'OPEN'"),
        postgresql_where=sa.text("status = 'OPEN'"),
    )

    # ==========================================================================
    # 3. PARK CONFIG TABLE
    # ==========================================================================
    op.create_table('park_config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('buffer_minutes', sa.Integer(), nullable=False),
        sa.Column('rental_duration_minutes', sa.Integer(), nullable=False),
        sa.Column('grace_minutes', sa.Integer(), nullable=False),
        sa.Column('warn_before_end_minutes', sa.Integer(), nullable=False),
        sa.Column('updated_by', sa.String(length=128), nullable=True),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade():
    op.drop_table('park_config')
    op.drop_index('uq_rentals_open_bike', table_name='rentals')
    with op.batch_alter_table('rentals', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_rentals_returned_at'))
        batch_op.drop_index(batch_op.f('ix_rentals_started_at'))
        batch_op.drop_index(batch_op.f('ix_rentals_status'))
        batch_op.drop_index(batch_op.f('ix_rentals_bike_code'))
        batch_op.drop_index(batch_op.f('ix_rentals_bike_id'))
    op.drop_table('rentals')
    with op.batch_alter_table('bikes', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_bikes_status'))
        batch_op.drop_index(batch_op.f('ix_bikes_code'))
    op.drop_table('bikes')

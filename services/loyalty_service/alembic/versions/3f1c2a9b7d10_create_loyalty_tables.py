"""create_loyalty_tables

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-18 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9b7d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TRANSACTION_TYPES = ('purchase', 'redemption_coffee', 'redemption_meal')


def upgrade() -> None:
    """Upgrade schema - Add profiles, pass registrations and audit trail."""

    op.create_table(
        'profiles',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('points_balance', sa.Integer(), server_default='0', nullable=False),
        sa.Column('total_purchases', sa.Integer(), server_default='0', nullable=False),
        sa.Column('redeemed_rewards', sa.JSON(), nullable=False),
        sa.Column('version', sa.Integer(), server_default='1', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('points_balance >= 0', name='ck_profile_points_non_negative'),
        sa.CheckConstraint('total_purchases >= 0', name='ck_profile_purchases_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'pass_registrations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('device_library_identifier', sa.String(), nullable=False),
        sa.Column('pass_type_identifier', sa.String(), nullable=False),
        sa.Column('serial_number', sa.String(), nullable=False),
        sa.Column('push_token', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'device_library_identifier',
            'pass_type_identifier',
            'serial_number',
            name='uq_pass_registration_device_pass_serial',
        )
    )
    op.create_index(
        'ix_pass_registrations_serial_number', 'pass_registrations', ['serial_number']
    )

    op.create_table(
        'transactions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('customer_id', sa.String(), nullable=False),
        sa.Column('employee_id', sa.String(), nullable=True),
        sa.Column(
            'type',
            sa.Enum(*TRANSACTION_TYPES, name='transaction_type_enum'),
            nullable=False,
        ),
        sa.Column('points_change', sa.Integer(), nullable=False),
        sa.Column('points_balance_after', sa.Integer(), nullable=False),
        sa.Column('reward_points_threshold', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_transactions_customer_id', 'transactions', ['customer_id'])


def downgrade() -> None:
    """Downgrade schema - Drop loyalty tables."""
    op.drop_index('ix_transactions_customer_id', table_name='transactions')
    op.drop_table('transactions')
    sa.Enum(name='transaction_type_enum').drop(op.get_bind(), checkfirst=True)
    op.drop_index('ix_pass_registrations_serial_number', table_name='pass_registrations')
    op.drop_table('pass_registrations')
    op.drop_table('profiles')

"""initial cash schema

Revision ID: c0a1d2e3f4a5
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the cash engine schema from scratch:
- branches: locations with their own wall clock (timezone)
- cash_registers: tills and safes, kind = sales | relief | vault
- cash_register_shifts: open -> closed accountability periods
- cash_transfers: headers tying the legs of tier-to-tier transfers
- cash_movements: append-only ledger scoped to a shift
- discrepancy_history: one row per closed shift, read by reporting
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'c0a1d2e3f4a5'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # branches
    # ============================================================================
    op.create_table(
        'branches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        # IANA name; NULL means DEFAULT_TIMEZONE
        sa.Column('timezone', sa.String(length=64), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id', name='pk_branches'),
        sa.UniqueConstraint('name', name='uq_branches_name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_branches_code', 'branches', ['code'], unique=True)

    # ============================================================================
    # cash_registers
    # ============================================================================
    op.create_table(
        'cash_registers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('display_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint("kind IN ('sales', 'relief', 'vault')", name='ck_cash_registers_kind'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'],
                                name='fk_cash_registers_branch_id_branches'),
        sa.PrimaryKeyConstraint('id', name='pk_cash_registers'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cash_registers_branch_id', 'cash_registers', ['branch_id'])
    op.create_index('ix_cash_registers_is_active', 'cash_registers', ['is_active'])
    op.create_index('ix_cash_registers_branch_order', 'cash_registers', ['branch_id', 'display_order'])

    # ============================================================================
    # cash_register_shifts
    # ============================================================================
    op.create_table(
        'cash_register_shifts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('register_id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('opened_by', sa.Integer(), nullable=False),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='open'),
        sa.Column('opening_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('closed_by', sa.Integer(), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('counted_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('expected_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('discrepancy', sa.Numeric(12, 2), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint("status IN ('open', 'closed')", name='ck_cash_register_shifts_status'),
        sa.CheckConstraint('opening_amount >= 0',
                           name='ck_cash_register_shifts_opening_amount_non_negative'),
        sa.ForeignKeyConstraint(['register_id'], ['cash_registers.id'],
                                name='fk_cash_register_shifts_register_id_cash_registers'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'],
                                name='fk_cash_register_shifts_branch_id_branches'),
        sa.PrimaryKeyConstraint('id', name='pk_cash_register_shifts'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cash_register_shifts_register_id', 'cash_register_shifts', ['register_id'])
    op.create_index('ix_cash_register_shifts_branch_id', 'cash_register_shifts', ['branch_id'])
    op.create_index('ix_cash_register_shifts_opened_by', 'cash_register_shifts', ['opened_by'])
    op.create_index('ix_cash_register_shifts_opened_at', 'cash_register_shifts', ['opened_at'])
    op.create_index('ix_cash_register_shifts_status', 'cash_register_shifts', ['status'])
    op.create_index('ix_cash_register_shifts_closed_by', 'cash_register_shifts', ['closed_by'])
    op.create_index('ix_cash_register_shifts_register_opened',
                    'cash_register_shifts', ['register_id', 'opened_at'])

    # At most one open shift per register, enforced by the database
    op.create_index(
        'uq_cash_register_shifts_one_open',
        'cash_register_shifts',
        ['register_id'],
        unique=True,
        sqlite_where=sa.text("status = 'open'"),
        postgresql_where=sa.text("status = 'open'"),
    )

    # ============================================================================
    # cash_transfers
    # ============================================================================
    op.create_table(
        'cash_transfers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('source_shift_id', sa.Integer(), nullable=False),
        sa.Column('source_register_id', sa.Integer(), nullable=False),
        sa.Column('destination_shift_id', sa.Integer(), nullable=True),
        sa.Column('destination_register_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('concept', sa.String(length=255), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('is_final_withdrawal', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('actor_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_cash_transfers_amount_positive'),
        sa.CheckConstraint('(destination_shift_id IS NULL) = is_final_withdrawal',
                           name='ck_cash_transfers_destination_matches_kind'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'],
                                name='fk_cash_transfers_branch_id_branches'),
        sa.ForeignKeyConstraint(['source_shift_id'], ['cash_register_shifts.id'],
                                name='fk_cash_transfers_source_shift_id_cash_register_shifts'),
        sa.ForeignKeyConstraint(['source_register_id'], ['cash_registers.id'],
                                name='fk_cash_transfers_source_register_id_cash_registers'),
        sa.ForeignKeyConstraint(['destination_shift_id'], ['cash_register_shifts.id'],
                                name='fk_cash_transfers_destination_shift_id_cash_register_shifts'),
        sa.ForeignKeyConstraint(['destination_register_id'], ['cash_registers.id'],
                                name='fk_cash_transfers_destination_register_id_cash_registers'),
        sa.PrimaryKeyConstraint('id', name='pk_cash_transfers'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cash_transfers_branch_id', 'cash_transfers', ['branch_id'])
    op.create_index('ix_cash_transfers_source_shift_id', 'cash_transfers', ['source_shift_id'])
    op.create_index('ix_cash_transfers_destination_shift_id', 'cash_transfers', ['destination_shift_id'])

    # ============================================================================
    # cash_movements: append-only
    # ============================================================================
    op.create_table(
        'cash_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('concept', sa.String(length=255), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('transfer_id', sa.Integer(), nullable=True),
        # Client idempotency key
        sa.Column('request_id', sa.String(length=64), nullable=True),
        sa.Column('order_id', sa.String(length=64), nullable=True),
        sa.Column('expense_category', sa.String(length=64), nullable=True),
        sa.CheckConstraint("kind IN ('income', 'expense', 'deposit', 'withdrawal')",
                           name='ck_cash_movements_kind'),
        sa.CheckConstraint('amount > 0', name='ck_cash_movements_amount_positive'),
        sa.ForeignKeyConstraint(['shift_id'], ['cash_register_shifts.id'],
                                name='fk_cash_movements_shift_id_cash_register_shifts'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'],
                                name='fk_cash_movements_branch_id_branches'),
        sa.ForeignKeyConstraint(['transfer_id'], ['cash_transfers.id'],
                                name='fk_cash_movements_transfer_id_cash_transfers'),
        sa.PrimaryKeyConstraint('id', name='pk_cash_movements'),
        sa.UniqueConstraint('request_id', name='uq_cash_movements_request_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cash_movements_shift_id', 'cash_movements', ['shift_id'])
    op.create_index('ix_cash_movements_branch_id', 'cash_movements', ['branch_id'])
    op.create_index('ix_cash_movements_kind', 'cash_movements', ['kind'])
    op.create_index('ix_cash_movements_actor_id', 'cash_movements', ['actor_id'])
    op.create_index('ix_cash_movements_transfer_id', 'cash_movements', ['transfer_id'])
    op.create_index('ix_cash_movements_shift_created', 'cash_movements', ['shift_id', 'created_at'])

    # ============================================================================
    # discrepancy_history: written once per close, never updated
    # ============================================================================
    op.create_table(
        'discrepancy_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('register_id', sa.Integer(), nullable=True),
        sa.Column('expected_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('actual_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('discrepancy', sa.Numeric(12, 2), nullable=False),
        # Operational day of the close, not the calendar day
        sa.Column('shift_date', sa.Date(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['shift_id'], ['cash_register_shifts.id'],
                                name='fk_discrepancy_history_shift_id_cash_register_shifts'),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'],
                                name='fk_discrepancy_history_branch_id_branches'),
        sa.ForeignKeyConstraint(['register_id'], ['cash_registers.id'],
                                name='fk_discrepancy_history_register_id_cash_registers'),
        sa.PrimaryKeyConstraint('id', name='pk_discrepancy_history'),
        sa.UniqueConstraint('shift_id', name='uq_discrepancy_history_shift_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_discrepancy_history_branch_id', 'discrepancy_history', ['branch_id'])
    op.create_index('ix_discrepancy_history_user_id', 'discrepancy_history', ['user_id'])
    op.create_index('ix_discrepancy_history_shift_date', 'discrepancy_history', ['shift_date'])
    op.create_index('ix_discrepancy_history_user_date', 'discrepancy_history', ['user_id', 'shift_date'])
    op.create_index('ix_discrepancy_history_branch_date', 'discrepancy_history', ['branch_id', 'shift_date'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('discrepancy_history')
    op.drop_table('cash_movements')
    op.drop_table('cash_transfers')
    op.drop_index('uq_cash_register_shifts_one_open', table_name='cash_register_shifts')
    op.drop_table('cash_register_shifts')
    op.drop_table('cash_registers')
    op.drop_table('branches')

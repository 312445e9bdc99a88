"""counter transactions

Revision ID: 0002_counter_transactions
Revises: 0001_initial
Create Date: 2026-10-17 00:00:00.000000

Adds over-the-counter sales:
- payment_methods: master data for payment kinds
- invoice_sequences: per-outlet INV-<outlet>-<n> counters
- transactions, transaction_details, payments: invoices, their lines and payments
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0002_counter_transactions'
down_revision = '0001_initial'
branch_labels = None
depends_on = None

LIVE_ROWS = sa.text("deleted_at IS NULL")
MONEY = sa.Numeric(precision=15, scale=2)


def _audit_columns():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
    ]


def _indexes(table, *columns):
    for column in (*columns, 'deleted_at'):
        op.create_index(op.f(f'ix_{table}_{column}'), table, [column], unique=False)


def upgrade():
    op.create_table(
        'payment_methods',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('payment_methods')

    op.create_table(
        'invoice_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('outlet_id', sa.Integer(), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['outlet_id'], ['outlets.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('outlet_id', name='uq_invoice_sequences_outlet'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('transaction_date', sa.DateTime(), nullable=False),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('outlet_id', sa.Integer(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['outlet_id'], ['outlets.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('transactions', 'user_id', 'customer_id', 'outlet_id')
    op.create_index(
        'uq_transactions_invoice_live', 'transactions', ['invoice_number'], unique=True,
        sqlite_where=LIVE_ROWS, postgresql_where=LIVE_ROWS,
    )
    op.create_index('ix_transactions_outlet_date', 'transactions', ['outlet_id', 'transaction_date'])

    op.create_table(
        'transaction_details',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('serial_number_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', MONEY, nullable=False),
        sa.Column('total_price', MONEY, nullable=False),
        *_audit_columns(),
        sa.CheckConstraint('quantity > 0', name='ck_transaction_details_quantity_positive'),
        sa.CheckConstraint('unit_price >= 0', name='ck_transaction_details_unit_price_nonneg'),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['serial_number_id'], ['product_serial_numbers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('transaction_details', 'transaction_id', 'product_id', 'serial_number_id')

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('method_id', sa.Integer(), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payment_date', sa.DateTime(), nullable=False),
        *_audit_columns(),
        sa.CheckConstraint('amount > 0', name='ck_payments_amount_positive'),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], ),
        sa.ForeignKeyConstraint(['method_id'], ['payment_methods.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('payments', 'transaction_id', 'method_id')


def downgrade():
    for table in (
        'payments',
        'transaction_details',
        'transactions',
        'invoice_sequences',
        'payment_methods',
    ):
        op.drop_table(table)

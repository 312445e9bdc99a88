"""initial workshop schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates the complete workshop POS schema from scratch:
- outlets, users: branches and staff
- customers, customer_vehicles: identity registry
- categories, suppliers, unit_types, products, product_serial_numbers: inventory
- service_categories, services: billable labour catalog
- service_jobs, service_details, service_job_histories, service_code_sequences: workshop jobs
- vehicles, vehicle_purchase_transactions, vehicle_reconditioning_jobs,
  reconditioning_details: showroom stock and reconditioning
- vehicle_sales_transactions, vehicle_installments, installment_payments: sales
- cash_flows: till money in and out

Every uniqueness rule is a partial unique index over live rows
(deleted_at IS NULL) so soft-deleted rows never block reuse.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
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
    """Plain single-column indexes named the way SQLAlchemy names index=True columns."""
    for column in (*columns, 'deleted_at'):
        op.create_index(op.f(f'ix_{table}_{column}'), table, [column], unique=False)


def _live_unique(name, table, *columns):
    op.create_index(
        name, table, list(columns), unique=True,
        sqlite_where=LIVE_ROWS, postgresql_where=LIVE_ROWS,
    )


def upgrade():
    # ============================================================================
    # outlets / users
    # ============================================================================
    op.create_table(
        'outlets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('branch_type', sa.String(length=32), nullable=True),
        sa.Column('city', sa.String(length=120), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('contact', sa.String(length=64), nullable=True),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('outlets')
    op.create_index('ix_outlets_status', 'outlets', ['status'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('outlet_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['outlet_id'], ['outlets.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('users', 'outlet_id')
    _live_unique('uq_users_email_live', 'users', 'email')

    # ============================================================================
    # customers / customer_vehicles
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('customers')
    op.create_index('ix_customers_status', 'customers', ['status'])
    _live_unique('uq_customers_phone_live', 'customers', 'phone')

    op.create_table(
        'customer_vehicles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('plate_number', sa.String(length=32), nullable=False),
        sa.Column('chassis_number', sa.String(length=64), nullable=False),
        sa.Column('engine_number', sa.String(length=64), nullable=False),
        sa.Column('brand', sa.String(length=64), nullable=True),
        sa.Column('model', sa.String(length=64), nullable=True),
        sa.Column('vehicle_type', sa.String(length=32), nullable=True),
        sa.Column('production_year', sa.Integer(), nullable=True),
        sa.Column('color', sa.String(length=32), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('customer_vehicles', 'customer_id')
    _live_unique('uq_customer_vehicles_plate_live', 'customer_vehicles', 'plate_number')
    _live_unique('uq_customer_vehicles_chassis_live', 'customer_vehicles', 'chassis_number')
    _live_unique('uq_customer_vehicles_engine_live', 'customer_vehicles', 'engine_number')

    # ============================================================================
    # inventory master data, products, serial numbers
    # ============================================================================
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('categories')

    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('contact_person', sa.String(length=120), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('suppliers')

    op.create_table(
        'unit_types',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('unit_types')

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('cost_price', MONEY, nullable=False),
        sa.Column('selling_price', MONEY, nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('has_serial_number', sa.Boolean(), nullable=False),
        sa.Column('shelf_location', sa.String(length=64), nullable=True),
        sa.Column('usage_status', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('unit_type_id', sa.Integer(), nullable=True),
        *_audit_columns(),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
        sa.ForeignKeyConstraint(['supplier_id'], ['suppliers.id'], ),
        sa.ForeignKeyConstraint(['unit_type_id'], ['unit_types.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('products', 'category_id', 'supplier_id', 'unit_type_id')
    op.create_index('ix_products_usage_status', 'products', ['usage_status'])
    _live_unique('uq_products_sku_live', 'products', 'sku')
    _live_unique('uq_products_barcode_live', 'products', 'barcode')

    op.create_table(
        'product_serial_numbers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('serial_number', sa.String(length=128), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('product_serial_numbers', 'product_id')
    op.create_index(
        'ix_product_serial_numbers_product_status', 'product_serial_numbers', ['product_id', 'status']
    )
    _live_unique('uq_product_serial_numbers_serial_live', 'product_serial_numbers', 'serial_number')

    # ============================================================================
    # service catalog
    # ============================================================================
    op.create_table(
        'service_categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('service_categories')
    _live_unique('uq_service_categories_name_live', 'service_categories', 'name')

    op.create_table(
        'services',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('service_code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('service_category_id', sa.Integer(), nullable=True),
        sa.Column('fee', MONEY, nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['service_category_id'], ['service_categories.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('services', 'service_category_id')
    op.create_index('ix_services_status', 'services', ['status'])
    _live_unique('uq_services_code_live', 'services', 'service_code')

    # ============================================================================
    # service jobs
    # ============================================================================
    op.create_table(
        'service_code_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('outlet_id', sa.Integer(), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['outlet_id'], ['outlets.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('outlet_id', name='uq_service_code_sequences_outlet'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'service_jobs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('service_code', sa.String(length=64), nullable=False),
        sa.Column('queue_number', sa.Integer(), nullable=False),
        sa.Column('outlet_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('vehicle_id', sa.Integer(), nullable=False),
        sa.Column('technician_id', sa.Integer(), nullable=True),
        sa.Column('received_by_user_id', sa.Integer(), nullable=False),
        sa.Column('problem_description', sa.Text(), nullable=False),
        sa.Column('technician_notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('intake_at', sa.DateTime(), nullable=False),
        sa.Column('intake_date', sa.Date(), nullable=False),
        sa.Column('picked_up_at', sa.DateTime(), nullable=True),
        sa.Column('complaint_at', sa.DateTime(), nullable=True),
        sa.Column('warranty_expires_at', sa.Date(), nullable=True),
        sa.Column('next_service_reminder_date', sa.Date(), nullable=True),
        sa.Column('down_payment', MONEY, nullable=False),
        sa.Column('grand_total', MONEY, nullable=False),
        sa.Column('cost_total', MONEY, nullable=False),
        sa.Column('technician_commission', MONEY, nullable=False),
        sa.Column('shop_profit', MONEY, nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['outlet_id'], ['outlets.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['vehicle_id'], ['customer_vehicles.id'], ),
        sa.ForeignKeyConstraint(['technician_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['received_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('service_jobs', 'outlet_id', 'customer_id', 'vehicle_id', 'technician_id', 'received_by_user_id')
    op.create_index('ix_service_jobs_outlet_intake_date', 'service_jobs', ['outlet_id', 'intake_date'])
    op.create_index('ix_service_jobs_status', 'service_jobs', ['status'])
    op.create_index('ix_service_jobs_outlet_status', 'service_jobs', ['outlet_id', 'status'])
    _live_unique('uq_service_jobs_code_live', 'service_jobs', 'service_code')

    op.create_table(
        'service_details',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('service_job_id', sa.Integer(), nullable=False),
        sa.Column('item_type', sa.String(length=16), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('serial_number_used', sa.String(length=128), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price_per_item', MONEY, nullable=False),
        sa.Column('cost_per_item', MONEY, nullable=False),
        *_audit_columns(),
        sa.CheckConstraint('quantity > 0', name='ck_service_details_quantity_positive'),
        sa.ForeignKeyConstraint(['service_job_id'], ['service_jobs.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('service_details', 'service_job_id', 'item_id')

    op.create_table(
        'service_job_histories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('service_job_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('changed_at', sa.DateTime(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['service_job_id'], ['service_jobs.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('service_job_histories', 'service_job_id', 'user_id')
    op.create_index(
        'ix_service_job_histories_job_changed', 'service_job_histories', ['service_job_id', 'changed_at']
    )

    # ============================================================================
    # showroom vehicles and reconditioning
    # ============================================================================
    op.create_table(
        'vehicles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('plate_number', sa.String(length=32), nullable=False),
        sa.Column('chassis_number', sa.String(length=64), nullable=False),
        sa.Column('engine_number', sa.String(length=64), nullable=False),
        sa.Column('brand', sa.String(length=64), nullable=True),
        sa.Column('model', sa.String(length=64), nullable=True),
        sa.Column('vehicle_type', sa.String(length=32), nullable=True),
        sa.Column('production_year', sa.Integer(), nullable=True),
        sa.Column('color', sa.String(length=32), nullable=True),
        sa.Column('mileage', sa.Integer(), nullable=True),
        sa.Column('fuel_type', sa.String(length=32), nullable=True),
        sa.Column('transmission', sa.String(length=32), nullable=True),
        sa.Column('ownership_status', sa.String(length=16), nullable=False),
        sa.Column('condition_status', sa.String(length=16), nullable=False),
        sa.Column('sale_status', sa.String(length=16), nullable=False),
        sa.Column('purchase_price', MONEY, nullable=True),
        sa.Column('selling_price', MONEY, nullable=True),
        sa.Column('estimated_value', MONEY, nullable=True),
        sa.Column('condition_notes', sa.Text(), nullable=True),
        sa.Column('internal_notes', sa.Text(), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('vehicles', 'customer_id')
    op.create_index('ix_vehicles_sale_status', 'vehicles', ['sale_status'])
    op.create_index('ix_vehicles_ownership_status', 'vehicles', ['ownership_status'])
    _live_unique('uq_vehicles_plate_live', 'vehicles', 'plate_number')
    _live_unique('uq_vehicles_chassis_live', 'vehicles', 'chassis_number')
    _live_unique('uq_vehicles_engine_live', 'vehicles', 'engine_number')

    op.create_table(
        'vehicle_purchase_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vehicle_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('purchase_price', MONEY, nullable=False),
        sa.Column('purchase_date', sa.DateTime(), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=True),
        sa.Column('payment_reference', sa.String(length=128), nullable=True),
        sa.Column('evaluation_notes', sa.Text(), nullable=True),
        sa.Column('transaction_status', sa.String(length=16), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('vehicle_purchase_transactions', 'vehicle_id', 'customer_id', 'user_id')

    op.create_table(
        'vehicle_reconditioning_jobs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vehicle_id', sa.Integer(), nullable=False),
        sa.Column('technician_id', sa.Integer(), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('estimated_cost', MONEY, nullable=True),
        sa.Column('actual_cost', MONEY, nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ),
        sa.ForeignKeyConstraint(['technician_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('vehicle_reconditioning_jobs', 'vehicle_id', 'technician_id')
    op.create_index('ix_vehicle_reconditioning_jobs_status', 'vehicle_reconditioning_jobs', ['status'])

    op.create_table(
        'reconditioning_details',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('reconditioning_job_id', sa.Integer(), nullable=False),
        sa.Column('detail_type', sa.String(length=16), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('service_id', sa.Integer(), nullable=True),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', MONEY, nullable=False),
        sa.Column('total_price', MONEY, nullable=False),
        sa.Column('used_at', sa.DateTime(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('serial_numbers', sa.Text(), nullable=True),
        sa.Column('stock_deducted', sa.Boolean(), nullable=False),
        sa.Column('stock_shortfall', sa.Boolean(), nullable=False),
        *_audit_columns(),
        sa.CheckConstraint(
            "(detail_type = 'PART' AND product_id IS NOT NULL AND service_id IS NULL)"
            " OR (detail_type = 'SERVICE' AND service_id IS NOT NULL AND product_id IS NULL)",
            name='ck_reconditioning_details_kind_ref',
        ),
        sa.ForeignKeyConstraint(['reconditioning_job_id'], ['vehicle_reconditioning_jobs.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['service_id'], ['services.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('reconditioning_details', 'reconditioning_job_id', 'product_id', 'service_id')

    # ============================================================================
    # sales and installments
    # ============================================================================
    op.create_table(
        'vehicle_sales_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vehicle_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('sales_person_id', sa.Integer(), nullable=True),
        sa.Column('sale_price', MONEY, nullable=False),
        sa.Column('down_payment', MONEY, nullable=True),
        sa.Column('sale_date', sa.DateTime(), nullable=False),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('transaction_status', sa.String(length=16), nullable=False),
        sa.Column('profit_amount', MONEY, nullable=True),
        sa.Column('payment_reference', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['sales_person_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('vehicle_sales_transactions', 'vehicle_id', 'customer_id', 'sales_person_id')
    op.create_index('ix_vehicle_sales_transactions_status', 'vehicle_sales_transactions', ['transaction_status'])

    op.create_table(
        'vehicle_installments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sales_transaction_id', sa.Integer(), nullable=False),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('down_payment', MONEY, nullable=False),
        sa.Column('financed_amount', MONEY, nullable=False),
        sa.Column('installment_amount', MONEY, nullable=False),
        sa.Column('installment_count', sa.Integer(), nullable=False),
        sa.Column('interest_rate', sa.Numeric(precision=9, scale=4), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('remaining_balance', MONEY, nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['sales_transaction_id'], ['vehicle_sales_transactions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sales_transaction_id', name='uq_vehicle_installments_sale'),
        sqlite_autoincrement=True
    )
    _indexes('vehicle_installments')
    op.create_index('ix_vehicle_installments_status', 'vehicle_installments', ['status'])

    op.create_table(
        'installment_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('installment_id', sa.Integer(), nullable=False),
        sa.Column('payment_number', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('due_amount', MONEY, nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('paid_amount', MONEY, nullable=True),
        sa.Column('late_fee', MONEY, nullable=True),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=True),
        sa.Column('payment_reference', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['installment_id'], ['vehicle_installments.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('installment_id', 'payment_number', name='uq_installment_payments_number'),
        sqlite_autoincrement=True
    )
    _indexes('installment_payments', 'installment_id')
    op.create_index('ix_installment_payments_status_due', 'installment_payments', ['payment_status', 'due_date'])

    # ============================================================================
    # cash flows
    # ============================================================================
    op.create_table(
        'cash_flows',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('flow_type', sa.String(length=16), nullable=False),
        sa.Column('source', sa.String(length=120), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('flow_date', sa.Date(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('outlet_id', sa.Integer(), nullable=True),
        *_audit_columns(),
        sa.CheckConstraint('amount > 0', name='ck_cash_flows_amount_positive'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['outlet_id'], ['outlets.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    _indexes('cash_flows', 'user_id', 'outlet_id')
    op.create_index('ix_cash_flows_type_date', 'cash_flows', ['flow_type', 'flow_date'])


def downgrade():
    for table in (
        'cash_flows',
        'installment_payments',
        'vehicle_installments',
        'vehicle_sales_transactions',
        'reconditioning_details',
        'vehicle_reconditioning_jobs',
        'vehicle_purchase_transactions',
        'vehicles',
        'service_job_histories',
        'service_details',
        'service_jobs',
        'service_code_sequences',
        'services',
        'service_categories',
        'product_serial_numbers',
        'products',
        'unit_types',
        'suppliers',
        'categories',
        'customer_vehicles',
        'customers',
        'users',
        'outlets',
    ):
        op.drop_table(table)

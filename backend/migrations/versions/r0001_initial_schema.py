"""initial riverline schema

Revision ID: r0001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the ticketing back office schema:
- catalogs: routes, vessels, boarding_ports, vessel_routes
- customers, users, session_tokens, settings
- sales, cancellations, boarding_controls
- document_sequences, sale_events (append-only audit trail)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'r0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    # ============================================================================
    # catalogs
    # ============================================================================
    op.create_table(
        'routes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('origin_port', sa.String(length=100), nullable=False),
        sa.Column('destination_port', sa.String(length=100), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_routes_is_active', 'routes', ['is_active'])
    op.create_index('uq_routes_name_lower', 'routes', [sa.text('lower(name)')], unique=True)
    op.create_index(
        'uq_routes_trajectory_lower', 'routes',
        [sa.text('lower(origin_port)'), sa.text('lower(destination_port)')],
        unique=True,
    )

    op.create_table(
        'vessels',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('vessel_type', sa.String(length=50), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='ACTIVA'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_vessels_status', 'vessels', ['status'])
    op.create_index('uq_vessels_name_lower', 'vessels', [sa.text('lower(name)')], unique=True)

    op.create_table(
        'boarding_ports',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'vessel_routes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vessel_id', sa.Integer(), nullable=False),
        sa.Column('route_id', sa.Integer(), nullable=False),
        sa.Column('departure_times', sa.JSON(), nullable=False),
        sa.Column('operating_days', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['vessel_id'], ['vessels.id'], ),
        sa.ForeignKeyConstraint(['route_id'], ['routes.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_vessel_routes_vessel_id', 'vessel_routes', ['vessel_id'])
    op.create_index('ix_vessel_routes_route_id', 'vessel_routes', ['route_id'])
    op.create_index(
        'uq_vessel_routes_active_pair', 'vessel_routes', ['vessel_id', 'route_id'],
        unique=True,
        sqlite_where=sa.text('is_active = 1'),
        postgresql_where=sa.text('is_active = true'),
    )

    # ============================================================================
    # people
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('dni', sa.String(length=10), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('nationality', sa.String(length=50), nullable=False, server_default='Peruana'),
        sa.Column('address', sa.String(length=200), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_dni', 'customers', ['dni'], unique=True)

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('last_name', sa.String(length=100), nullable=False, server_default=''),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('assigned_vessel_id', sa.Integer(), nullable=True),
        sa.Column('operator_status', sa.String(length=16), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['assigned_vessel_id'], ['vessels.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_assigned_vessel_id', 'users', ['assigned_vessel_id'])
    op.create_index(
        'uq_users_active_operator_vessel', 'users', ['assigned_vessel_id'],
        unique=True,
        sqlite_where=sa.text("operator_status = 'ACTIVO' AND assigned_vessel_id IS NOT NULL"),
        postgresql_where=sa.text("operator_status = 'ACTIVO' AND assigned_vessel_id IS NOT NULL"),
    )

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)

    op.create_table(
        'settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('value_type', sa.String(length=16), nullable=False, server_default='string'),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('updated_by_user_id', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['updated_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_settings_key', 'settings', ['key'], unique=True)

    # ============================================================================
    # sales lifecycle
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_number', sa.String(length=32), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('route_id', sa.Integer(), nullable=False),
        sa.Column('vessel_id', sa.Integer(), nullable=False),
        sa.Column('seller_id', sa.Integer(), nullable=False),
        sa.Column('boarding_port_id', sa.Integer(), nullable=False),
        sa.Column('travel_date', sa.Date(), nullable=False),
        sa.Column('travel_time', sa.String(length=5), nullable=False),
        sa.Column('boarding_time', sa.String(length=5), nullable=False),
        sa.Column('origin_port', sa.String(length=100), nullable=False),
        sa.Column('destination_port', sa.String(length=100), nullable=False),
        sa.Column('passenger_count', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('tax_rate_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('payment_type', sa.String(length=16), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('payment_methods', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='CONFIRMADA'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['route_id'], ['routes.id'], ),
        sa.ForeignKeyConstraint(['vessel_id'], ['vessels.id'], ),
        sa.ForeignKeyConstraint(['seller_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['boarding_port_id'], ['boarding_ports.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_sale_number', 'sales', ['sale_number'], unique=True)
    op.create_index('ix_sales_customer_id', 'sales', ['customer_id'])
    op.create_index('ix_sales_route_id', 'sales', ['route_id'])
    op.create_index('ix_sales_vessel_id', 'sales', ['vessel_id'])
    op.create_index('ix_sales_seller_id', 'sales', ['seller_id'])
    op.create_index('ix_sales_travel_date', 'sales', ['travel_date'])
    op.create_index('ix_sales_status', 'sales', ['status'])
    op.create_index('ix_sales_occurrence', 'sales', ['vessel_id', 'route_id', 'travel_date', 'travel_time', 'status'])
    op.create_index('ix_sales_seller_created', 'sales', ['seller_id', 'created_at'])

    op.create_table(
        'cancellations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=500), nullable=False),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('seats_released', sa.Integer(), nullable=False),
        sa.Column('refund_amount_cents', sa.Integer(), nullable=True),
        sa.Column('cancellation_type', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sale_id', name='uq_cancellations_sale'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cancellations_sale_id', 'cancellations', ['sale_id'])
    op.create_index('ix_cancellations_user_id', 'cancellations', ['user_id'])

    op.create_table(
        'boarding_controls',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('operator_id', sa.Integer(), nullable=False),
        sa.Column('vessel_id', sa.Integer(), nullable=False),
        sa.Column('route_id', sa.Integer(), nullable=False),
        sa.Column('travel_date', sa.Date(), nullable=False),
        sa.Column('travel_time', sa.String(length=5), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDIENTE'),
        sa.Column('record_type', sa.String(length=16), nullable=False, server_default='EMBARQUE'),
        sa.Column('registered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['operator_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['vessel_id'], ['vessels.id'], ),
        sa.ForeignKeyConstraint(['route_id'], ['routes.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'sale_id', 'vessel_id', 'route_id', 'travel_date', 'travel_time',
            name='uq_boarding_controls_sale_occurrence',
        ),
        sqlite_autoincrement=True
    )
    op.create_index('ix_boarding_controls_sale_id', 'boarding_controls', ['sale_id'])
    op.create_index('ix_boarding_controls_operator_id', 'boarding_controls', ['operator_id'])
    op.create_index('ix_boarding_controls_occurrence', 'boarding_controls', ['vessel_id', 'travel_date', 'travel_time'])

    # ============================================================================
    # numbering and audit
    # ============================================================================
    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('period', sa.String(length=16), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_type', 'period', name='uq_doc_sequences_type_period'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_document_sequences_document_type', 'document_sequences', ['document_type'])

    op.create_table(
        'sale_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['actor_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_events_sale_id', 'sale_events', ['sale_id'])
    op.create_index('ix_sale_events_event_type', 'sale_events', ['event_type'])
    op.create_index('ix_sale_events_actor_user_id', 'sale_events', ['actor_user_id'])
    op.create_index('ix_sale_events_occurred_at', 'sale_events', ['occurred_at'])
    op.create_index('ix_sale_events_sale_occurred', 'sale_events', ['sale_id', 'occurred_at'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('sale_events')
    op.drop_table('document_sequences')
    op.drop_table('boarding_controls')
    op.drop_table('cancellations')
    op.drop_table('sales')
    op.drop_table('settings')
    op.drop_table('session_tokens')
    op.drop_table('users')
    op.drop_table('customers')
    op.drop_table('vessel_routes')
    op.drop_table('boarding_ports')
    op.drop_table('vessels')
    op.drop_table('routes')

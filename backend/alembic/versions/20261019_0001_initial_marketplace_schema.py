"""Initial marketplace schema

Revision ID: marketplace_0001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'marketplace_0001'
down_revision = None
branch_labels = None
depends_on = None


user_role = sa.Enum('CUSTOMER', 'SELLER', 'ADMIN', name='userrole')
user_status = sa.Enum('PENDING', 'ACTIVE', 'SUSPENDED', name='userstatus')
product_status = sa.Enum('PENDING', 'APPROVED', 'CANCELLED', name='productstatus')
order_status = sa.Enum('PENDING', 'PAID', 'SHIPPED', 'DELIVERED', 'CANCELLED', name='orderstatus')
payment_status = sa.Enum('PENDING', 'APPROVED', 'IN_PROCESS', 'REJECTED', 'CANCELLED', name='paymentstatus')
payment_method = sa.Enum('PIX', 'CREDIT_CARD', name='paymentmethod')
shipping_type = sa.Enum('PLATFORM', 'SELLER', name='shippingtype')
credential_provider = sa.Enum('MERCADO_PAGO', 'BLING', name='credentialprovider')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('role', user_role, nullable=False),
        sa.Column('status', user_status, nullable=False),
        sa.Column('cnpj', sa.String(length=20), nullable=True),
        sa.Column('legal_company_name', sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('idx_user_role', 'users', ['role'])
    op.create_index('idx_user_status', 'users', ['status'])

    op.create_table(
        'categories',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('bling_id', sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_categories_slug', 'categories', ['slug'])
    op.create_index('ix_categories_user_id', 'categories', ['user_id'])
    op.create_index('ix_categories_bling_id', 'categories', ['bling_id'])

    op.create_table(
        'products',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('images', sa.JSON(), nullable=False),
        sa.Column('seller_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('category_id', sa.String(length=36), sa.ForeignKey('categories.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', product_status, nullable=False),
        sa.Column('is_submitted_for_approval', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
    )
    op.create_index('ix_products_sku', 'products', ['sku'], unique=True)
    op.create_index('ix_products_seller_id', 'products', ['seller_id'])
    op.create_index('ix_products_category_id', 'products', ['category_id'])

    op.create_table(
        'addresses',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('street', sa.String(length=255), nullable=False),
        sa.Column('number', sa.String(length=20), nullable=False),
        sa.Column('complement', sa.String(length=255), nullable=True),
        sa.Column('neighborhood', sa.String(length=255), nullable=False),
        sa.Column('city', sa.String(length=255), nullable=False),
        sa.Column('state', sa.String(length=2), nullable=False),
        sa.Column('zip_code', sa.String(length=9), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index('ix_addresses_user_id', 'addresses', ['user_id'])

    op.create_table(
        'orders',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('seller_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('address_id', sa.String(length=36), sa.ForeignKey('addresses.id'), nullable=False),
        sa.Column('payment_method', payment_method, nullable=False),
        sa.Column('shipping_type', shipping_type, nullable=False),
        sa.Column('shipping_method', sa.String(length=50), nullable=True),
        sa.Column('shipping_cost', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', order_status, nullable=False),
        sa.Column('payment_status', payment_status, nullable=False),
        sa.Column('payment_id', sa.String(length=100), nullable=True),
        sa.Column('application_fee', sa.Numeric(10, 2), nullable=True),
        sa.Column('stock_restored_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_seller_id', 'orders', ['seller_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_payment_id', 'orders', ['payment_id'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('order_id', sa.String(length=36), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.String(length=36), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

    op.create_table(
        'provider_credentials',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('provider', credential_provider, nullable=False),
        sa.Column('account_id', sa.String(length=100), nullable=True),
        sa.Column('client_id', sa.String(length=255), nullable=True),
        sa.Column('client_secret', sa.Text(), nullable=True),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('scope', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('oauth_state', sa.String(length=100), nullable=True, unique=True),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'provider', name='uq_provider_credentials_user_provider'),
    )
    op.create_index('ix_provider_credentials_user_id', 'provider_credentials', ['user_id'])


def downgrade():
    op.drop_table('provider_credentials')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('addresses')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (
        credential_provider, shipping_type, payment_method, payment_status,
        order_status, product_status, user_status, user_role,
    ):
        enum_type.drop(bind, checkfirst=True)

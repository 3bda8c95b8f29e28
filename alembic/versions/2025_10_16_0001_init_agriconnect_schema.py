"""init agriconnect schema

Revision ID: 2025_10_16_0001
Revises:
Create Date: 2025-10-16 16:01:38

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '2025_10_16_0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # principals
    op.create_table(
        'auth_users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index(op.f('ix_auth_users_phone'), 'auth_users', ['phone'], unique=True)

    # profiles
    op.create_table(
        'profiles',
        sa.Column('id', postgresql.UUID(as_uuid=True), sa.ForeignKey('auth_users.id', ondelete='CASCADE'), primary_key=True, nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('full_name', sa.String(length=128), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('location', sa.String(length=256), nullable=True),
        sa.Column('latitude', sa.Numeric(9, 6), nullable=True),
        sa.Column('longitude', sa.Numeric(9, 6), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('avatar_url', sa.String(length=1024), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint("role IN ('farmer', 'retailer')", name='ck_profiles_role'),
    )
    op.create_index('idx_profiles_role', 'profiles', ['role'], unique=False)

    # products
    op.create_table(
        'products',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('farmer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('unit', sa.String(length=16), nullable=False, server_default='kg'),
        sa.Column('quantity_available', sa.Numeric(12, 2), nullable=False),
        sa.Column('image_url', sa.String(length=1024), nullable=True),
        sa.Column('location', sa.String(length=256), nullable=True),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('price >= 0', name='ck_products_price'),
        sa.CheckConstraint('quantity_available >= 0', name='ck_products_quantity_available'),
    )
    op.create_index('idx_products_farmer_id', 'products', ['farmer_id'], unique=False)
    op.create_index('idx_products_category', 'products', ['category'], unique=False)
    op.create_index('idx_products_is_available', 'products', ['is_available'], unique=False)

    # orders
    op.create_table(
        'orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False),
        sa.Column('retailer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('farmer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('quantity', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('payment_method', sa.String(length=24), nullable=False),
        sa.Column('delivery_address', sa.Text(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_orders_quantity'),
        sa.CheckConstraint('total_price >= 0', name='ck_orders_total_price'),
        sa.CheckConstraint("status IN ('pending', 'accepted', 'rejected', 'completed')", name='ck_orders_status'),
        sa.CheckConstraint("payment_method IN ('online', 'cash_on_delivery')", name='ck_orders_payment_method'),
    )
    op.create_index('idx_orders_retailer_id', 'orders', ['retailer_id'], unique=False)
    op.create_index('idx_orders_farmer_id', 'orders', ['farmer_id'], unique=False)
    op.create_index('idx_orders_status', 'orders', ['status'], unique=False)

    # messages
    op.create_table(
        'messages',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('sender_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('receiver_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_messages_sender_receiver', 'messages', ['sender_id', 'receiver_id'], unique=False)
    op.create_index('idx_messages_created_at', 'messages', [sa.text('created_at DESC')], unique=False)


def downgrade() -> None:
    op.drop_index('idx_messages_created_at', table_name='messages')
    op.drop_index('idx_messages_sender_receiver', table_name='messages')
    op.drop_table('messages')
    op.drop_index('idx_orders_status', table_name='orders')
    op.drop_index('idx_orders_farmer_id', table_name='orders')
    op.drop_index('idx_orders_retailer_id', table_name='orders')
    op.drop_table('orders')
    op.drop_index('idx_products_is_available', table_name='products')
    op.drop_index('idx_products_category', table_name='products')
    op.drop_index('idx_products_farmer_id', table_name='products')
    op.drop_table('products')
    op.drop_index('idx_profiles_role', table_name='profiles')
    op.drop_table('profiles')
    op.drop_index(op.f('ix_auth_users_phone'), table_name='auth_users')
    op.drop_table('auth_users')

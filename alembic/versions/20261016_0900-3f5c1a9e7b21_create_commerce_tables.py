"""create_commerce_tables

Revision ID: 3f5c1a9e7b21
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f5c1a9e7b21'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'sales_agents',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False, comment='用户ID'),
        sa.Column('referral_code', sa.String(length=32), nullable=False, comment='推荐码'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending', comment='pending/approved/rejected'),
        sa.Column('points_balance', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0', comment='积分余额'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='更新时间'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
        sa.UniqueConstraint('referral_code'),
    )
    op.create_index('ix_sales_agents_id', 'sales_agents', ['id'])
    op.create_index('ix_sales_agents_status', 'sales_agents', ['status'])

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False, comment='订单号 TB-YYYYMMDD-NNNNNN'),
        sa.Column('customer_id', sa.String(length=64), nullable=True, comment='下单用户ID'),
        sa.Column('customer_name', sa.String(length=200), nullable=False, comment='客户姓名'),
        sa.Column('customer_email', sa.String(length=255), nullable=True, comment='客户邮箱'),
        sa.Column('customer_phone', sa.String(length=32), nullable=True, comment='客户手机号'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending', comment='订单状态'),
        sa.Column('payment_status', sa.String(length=32), nullable=False, server_default='unpaid', comment='支付状态'),
        sa.Column('payment_method', sa.String(length=50), nullable=True, comment='支付方式'),
        sa.Column('subtotal', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0', comment='不含税小计'),
        sa.Column('tax_amount', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0', comment='GST 税额'),
        sa.Column('shipping_amount', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0', comment='运费'),
        sa.Column('total', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0', comment='订单总额'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='INR', comment='货币代码'),
        sa.Column('fulfilment_type', sa.String(length=20), nullable=False, server_default='Delivery', comment='Delivery/Pickup'),
        sa.Column('delivery_address', sa.Text(), nullable=True, comment='收货地址'),
        sa.Column('notes', sa.Text(), nullable=True, comment='备注'),
        sa.Column('shipping_info', sa.JSON(), nullable=True, comment='物流信息'),
        sa.Column('agent_id', sa.Integer(), nullable=True, comment='推荐代理ID'),
        sa.Column('created_by', sa.String(length=64), nullable=True, comment='创建人用户ID'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='更新时间'),
        sa.ForeignKeyConstraint(['agent_id'], ['sales_agents.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number'),
    )
    op.create_index('ix_orders_id', 'orders', ['id'])
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_agent_id', 'orders', ['agent_id'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False, comment='订单ID'),
        sa.Column('product_id', sa.String(length=64), nullable=False, comment='商品ID'),
        sa.Column('name', sa.String(length=255), nullable=True, comment='商品名称'),
        sa.Column('quantity', sa.Integer(), nullable=False, comment='数量'),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False, comment='含税单价'),
        sa.Column('gst_rate', sa.Numeric(precision=5, scale=2), nullable=True, comment='GST 税率(%)'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_items_id', 'order_items', ['id'])
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    op.create_table(
        'payment_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False, comment='订单ID'),
        sa.Column('transaction_id', sa.String(length=100), nullable=False, comment='商户交易号'),
        sa.Column('provider', sa.String(length=32), nullable=False, comment='支付网关: phonepe/paytm/razorpay'),
        sa.Column('gateway_transaction_id', sa.String(length=200), nullable=True, comment='网关交易号'),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False, comment='支付金额'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='initiated', comment='状态: initiated/success/failed/pending'),
        sa.Column('response_code', sa.String(length=64), nullable=True, comment='网关响应码'),
        sa.Column('gateway_response', sa.JSON(), nullable=True, comment='网关原始响应'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='更新时间'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_id'),
    )
    op.create_index('ix_payment_transactions_id', 'payment_transactions', ['id'])
    op.create_index('ix_payment_transactions_order_id', 'payment_transactions', ['order_id'])
    op.create_index('ix_payment_transactions_provider', 'payment_transactions', ['provider'])
    op.create_index('ix_payment_transactions_status', 'payment_transactions', ['status'])
    op.create_index('ix_payment_transactions_status_created', 'payment_transactions', ['status', 'created_at'])

    op.create_table(
        'agent_commissions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('agent_id', sa.Integer(), nullable=False, comment='代理ID'),
        sa.Column('order_id', sa.Integer(), nullable=False, comment='订单ID'),
        sa.Column('order_total', sa.Numeric(precision=12, scale=2), nullable=False, comment='订单总额'),
        sa.Column('rate_snapshot', sa.JSON(), nullable=False, comment='计算时的佣金配置快照'),
        sa.Column('points_awarded', sa.Numeric(precision=14, scale=2), nullable=False, comment='发放积分'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='创建时间'),
        sa.ForeignKeyConstraint(['agent_id'], ['sales_agents.id']),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id'),
    )
    op.create_index('ix_agent_commissions_id', 'agent_commissions', ['id'])
    op.create_index('ix_agent_commissions_agent_id', 'agent_commissions', ['agent_id'])

    op.create_table(
        'agent_redemption_requests',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('agent_id', sa.Integer(), nullable=False, comment='代理ID'),
        sa.Column('points', sa.Numeric(precision=14, scale=2), nullable=False, comment='兑换积分'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending', comment='pending/approved/rejected/processed'),
        sa.Column('bank_details', sa.JSON(), nullable=True, comment='收款信息'),
        sa.Column('notes', sa.Text(), nullable=True, comment='备注'),
        sa.Column('requested_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='申请时间'),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True, comment='处理时间'),
        sa.Column('processed_by', sa.String(length=64), nullable=True, comment='处理人'),
        sa.ForeignKeyConstraint(['agent_id'], ['sales_agents.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_agent_redemption_requests_id', 'agent_redemption_requests', ['id'])
    op.create_index('ix_agent_redemption_requests_agent_id', 'agent_redemption_requests', ['agent_id'])
    op.create_index('ix_redemptions_agent_requested', 'agent_redemption_requests', ['agent_id', 'requested_at'])

    # key 不唯一：历史上存在重复行，由 dedupe 接口清理
    op.create_table(
        'settings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('key', sa.String(length=100), nullable=False, comment='配置键'),
        sa.Column('value', sa.JSON(), nullable=True, comment='配置值'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='更新时间'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_settings_id', 'settings', ['id'])
    op.create_index('ix_settings_key', 'settings', ['key'])

    op.create_table(
        'inventory',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False, comment='商品ID'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0', comment='当前库存'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='更新时间'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id'),
    )
    op.create_index('ix_inventory_id', 'inventory', ['id'])

    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False, comment='商品ID'),
        sa.Column('change', sa.Integer(), nullable=False, comment='变动数量（出库为负）'),
        sa.Column('quantity_after', sa.Integer(), nullable=False, comment='变动后库存'),
        sa.Column('reference_type', sa.String(length=32), nullable=False, comment='来源类型'),
        sa.Column('reference_id', sa.String(length=64), nullable=True, comment='来源ID'),
        sa.Column('notes', sa.Text(), nullable=True, comment='备注'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='创建时间'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_stock_movements_id', 'stock_movements', ['id'])
    op.create_index('ix_stock_movements_product_id', 'stock_movements', ['product_id'])


def downgrade() -> None:
    op.drop_table('stock_movements')
    op.drop_table('inventory')
    op.drop_table('settings')
    op.drop_table('agent_redemption_requests')
    op.drop_table('agent_commissions')
    op.drop_table('payment_transactions')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('sales_agents')

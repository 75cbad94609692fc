"""Add invoice_reminders for payment and overdue reminder tracking

Revision ID: sl002_invoice_reminders
Revises: sl001_initial
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'sl002_invoice_reminders'
down_revision = 'sl001_initial'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('invoice_reminders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.String(length=36), nullable=False),
        sa.Column('shop_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False, server_default='PAYMENT'),
        sa.Column('channel', sa.String(length=32), nullable=False, server_default='whatsapp'),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('message', sa.Text(), nullable=False, server_default=''),
        sa.Column('customer_phone', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoice_reminders_invoice_id', 'invoice_reminders', ['invoice_id'])
    op.create_index('ix_invoice_reminders_shop_id', 'invoice_reminders', ['shop_id'])
    op.create_index('ix_invoice_reminders_sent_at', 'invoice_reminders', ['sent_at'])


def downgrade():
    op.drop_index('ix_invoice_reminders_sent_at', table_name='invoice_reminders')
    op.drop_index('ix_invoice_reminders_shop_id', table_name='invoice_reminders')
    op.drop_index('ix_invoice_reminders_invoice_id', table_name='invoice_reminders')
    op.drop_table('invoice_reminders')

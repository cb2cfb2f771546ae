"""payments and receipts

Revision ID: 0002_payments_receipts
Revises: 0001_initial
Create Date: 2026-10-19 12:00:00.000000

Adds:
- payments: money tendered against a sale (several per sale allowed)
- receipts: receipts issued for a sale
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0002_payments_receipts'
down_revision = '0001_initial'
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(length=32), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='completed'),
        sa.Column('transaction_id', sa.String(length=128), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('amount_cents > 0', name='ck_payments_amount_positive'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_payments_sale_id', 'payments', ['sale_id'])
    op.create_index('ix_payments_method', 'payments', ['method'])
    op.create_index('ix_payments_status', 'payments', ['status'])
    op.create_index('ix_payments_created_by_user_id', 'payments', ['created_by_user_id'])
    op.create_index('ix_payments_created_at', 'payments', ['created_at'])

    op.create_table(
        'receipts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(length=32), nullable=False),
        sa.Column('url', sa.String(length=512), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='issued'),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_receipts_sale_id', 'receipts', ['sale_id'])
    op.create_index('ix_receipts_status', 'receipts', ['status'])
    op.create_index('ix_receipts_created_by_user_id', 'receipts', ['created_by_user_id'])


def downgrade():
    op.drop_table('receipts')
    op.drop_table('payments')

"""standing delivery assignments and order item product ids

Revision ID: 5b7e2c9d4f13
Revises: 8e52f0b6c7a1
Create Date: 2026-10-19 10:22:51.903114

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5b7e2c9d4f13'
down_revision: Union[str, Sequence[str], None] = '8e52f0b6c7a1'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _ts(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'userdeliveryassignment',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('public_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('delivery_person_id', sa.Integer(), sa.ForeignKey('deliveryperson.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assigned_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('delivery_shifts', sa.JSON(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _ts('deactivated_at', nullable=True),
        _ts('created_at'),
        _ts('updated_at'),
    )
    op.create_index('ix_userdeliveryassignment_public_id', 'userdeliveryassignment', ['public_id'], unique=True)
    op.create_index('ix_userdeliveryassignment_user_id', 'userdeliveryassignment', ['user_id'])
    op.create_index('ix_userdeliveryassignment_delivery_person_id', 'userdeliveryassignment', ['delivery_person_id'])
    op.create_index('uq_userdeliveryassignment_active_user', 'userdeliveryassignment', ['user_id'], unique=True,
                    postgresql_where=sa.text('is_active'))

    op.add_column('orderitem', sa.Column('product_public_id', sa.Uuid(), nullable=True))
    op.execute(
        "UPDATE orderitem SET product_public_id = "
        "(SELECT product.public_id FROM product WHERE product.id = orderitem.product_id)"
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_column('orderitem', 'product_public_id')
    op.drop_index('uq_userdeliveryassignment_active_user', table_name='userdeliveryassignment')
    op.drop_table('userdeliveryassignment')

"""initial_schema

Revision ID: 3f1a9c2e7b10
Revises:
Create Date: 2026-10-19 09:12:44.118204+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3f1a9c2e7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONDocument = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')


def upgrade() -> None:
    # 1. users (no FKs)
    op.create_table('users',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('email', sa.String(length=255), nullable=False),
    sa.Column('full_name', sa.String(length=200), nullable=True),
    sa.Column('department_id', sa.String(length=36), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('email')
    )
    op.create_index('idx_users_email', 'users', ['email'], unique=False)

    # 2. user_roles
    op.create_table('user_roles',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('user_id', sa.String(length=36), nullable=False),
    sa.Column('role', sa.String(length=50), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('user_id', 'role', name='uq_user_role')
    )
    op.create_index('idx_user_roles_user', 'user_roles', ['user_id'], unique=False)

    # 3. procurement_requests
    op.create_table('procurement_requests',
    sa.Column('id', sa.String(length=64), nullable=False),
    sa.Column('request_number', sa.String(length=50), nullable=False),
    sa.Column('title', sa.String(length=255), nullable=True),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('requester_id', sa.String(length=36), nullable=False),
    sa.Column('status', sa.String(length=50), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.ForeignKeyConstraint(['requester_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('request_number')
    )
    op.create_index('idx_procurement_requests_status', 'procurement_requests', ['status'], unique=False)
    op.create_index('idx_procurement_requests_requester', 'procurement_requests', ['requester_id'], unique=False)

    # 4. inventory_transactions
    op.create_table('inventory_transactions',
    sa.Column('id', sa.String(length=64), nullable=False),
    sa.Column('transaction_type', sa.String(length=30), nullable=False),
    sa.Column('request_id', sa.String(length=64), nullable=True),
    sa.Column('user_id', sa.String(length=36), nullable=True),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.Column('reference', sa.String(length=100), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('approval_status', sa.String(length=20), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint('quantity > 0', name='chk_inventory_txn_qty'),
    sa.ForeignKeyConstraint(['request_id'], ['procurement_requests.id'], ),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_inventory_txn_request', 'inventory_transactions', ['request_id'], unique=False)

    # 5. approvals
    op.create_table('approvals',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('entity_type', sa.String(length=50), nullable=False),
    sa.Column('entity_id', sa.String(length=64), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('requester_id', sa.String(length=36), nullable=False),
    sa.Column('approver_id', sa.String(length=36), nullable=True),
    sa.Column('title', sa.String(length=255), nullable=True),
    sa.Column('comments', sa.Text(), nullable=True),
    sa.Column('approval_date', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.ForeignKeyConstraint(['approver_id'], ['users.id'], ),
    sa.ForeignKeyConstraint(['requester_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_approvals_entity', 'approvals', ['entity_type', 'entity_id', 'created_at'], unique=False)
    op.create_index('idx_approvals_approver', 'approvals', ['approver_id', 'status'], unique=False)
    op.create_index('idx_approvals_requester', 'approvals', ['requester_id'], unique=False)
    op.create_index(
        'uq_approvals_entity_pending', 'approvals', ['entity_type', 'entity_id'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    # 6. po_approval_levels
    op.create_table('po_approval_levels',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('level_number', sa.Integer(), nullable=False),
    sa.Column('level_name', sa.String(length=100), nullable=False),
    sa.Column('min_amount', sa.Numeric(precision=18, scale=2), nullable=False),
    sa.Column('max_amount', sa.Numeric(precision=18, scale=2), nullable=True),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint('level_number > 0', name='chk_po_level_number_positive'),
    sa.CheckConstraint('min_amount >= 0', name='chk_po_level_min_amount'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('level_number')
    )
    op.create_index('idx_po_approval_levels_amount', 'po_approval_levels', ['min_amount', 'max_amount'], unique=False)

    # 7. po_approval_matrix
    op.create_table('po_approval_matrix',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('approval_level_id', sa.String(length=36), nullable=False),
    sa.Column('department_id', sa.String(length=36), nullable=True),
    sa.Column('approver_role', sa.String(length=50), nullable=True),
    sa.Column('approver_user_id', sa.String(length=36), nullable=True),
    sa.Column('sequence_order', sa.Integer(), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint('sequence_order > 0', name='chk_po_matrix_sequence_positive'),
    sa.ForeignKeyConstraint(['approval_level_id'], ['po_approval_levels.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['approver_user_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_po_approval_matrix_level', 'po_approval_matrix', ['approval_level_id'], unique=False)

    # 8. audit_logs
    op.create_table('audit_logs',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('actor_id', sa.String(length=36), nullable=True),
    sa.Column('actor_email', sa.String(length=255), nullable=True),
    sa.Column('action', sa.String(length=100), nullable=False),
    sa.Column('entity_type', sa.String(length=50), nullable=False),
    sa.Column('entity_id', sa.String(length=64), nullable=False),
    sa.Column('before_state', JSONDocument, nullable=True),
    sa.Column('after_state', JSONDocument, nullable=True),
    sa.Column('changed_fields', JSONDocument, nullable=True),
    sa.Column('request_id', sa.String(length=64), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_audit_entity', 'audit_logs', ['entity_type', 'entity_id'], unique=False)
    op.create_index('idx_audit_actor', 'audit_logs', ['actor_id'], unique=False)
    op.create_index('idx_audit_created', 'audit_logs', [sa.text('created_at DESC')], unique=False)


def downgrade() -> None:
    op.drop_index('idx_audit_created', table_name='audit_logs')
    op.drop_index('idx_audit_actor', table_name='audit_logs')
    op.drop_index('idx_audit_entity', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('idx_po_approval_matrix_level', table_name='po_approval_matrix')
    op.drop_table('po_approval_matrix')
    op.drop_index('idx_po_approval_levels_amount', table_name='po_approval_levels')
    op.drop_table('po_approval_levels')
    op.drop_index('uq_approvals_entity_pending', table_name='approvals')
    op.drop_index('idx_approvals_requester', table_name='approvals')
    op.drop_index('idx_approvals_approver', table_name='approvals')
    op.drop_index('idx_approvals_entity', table_name='approvals')
    op.drop_table('approvals')
    op.drop_index('idx_inventory_txn_request', table_name='inventory_transactions')
    op.drop_table('inventory_transactions')
    op.drop_index('idx_procurement_requests_requester', table_name='procurement_requests')
    op.drop_index('idx_procurement_requests_status', table_name='procurement_requests')
    op.drop_table('procurement_requests')
    op.drop_index('idx_user_roles_user', table_name='user_roles')
    op.drop_table('user_roles')
    op.drop_index('idx_users_email', table_name='users')
    op.drop_table('users')

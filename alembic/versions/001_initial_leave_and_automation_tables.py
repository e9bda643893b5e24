"""Initial org, leave lifecycle and automation tables

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LEAVE_TYPES = ('SICK', 'CASUAL', 'EARNED', 'MATERNITY', 'PATERNITY', 'COMP_OFF', 'BEREAVEMENT', 'MARRIAGE')
LEAVE_STATUSES = ('DRAFT', 'PENDING', 'APPROVED', 'REJECTED', 'CANCELLED')
APPROVAL_ACTIONS = ('APPROVE', 'REJECT', 'CANCEL')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade() -> None:
    # Skip if tables already exist (e.g. DB created by init_models() on startup)
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    if 'automation_rules' in inspector.get_table_names():
        return

    op.create_table(
        'departments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_departments_id'), 'departments', ['id'], unique=False)
    op.create_index(op.f('ix_departments_name'), 'departments', ['name'], unique=True)

    # role is a plain string so new roles need no enum migration
    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('emp_code', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False, server_default='EMPLOYEE'),
        sa.Column('department_id', sa.Integer(), nullable=True),
        sa.Column('reporting_manager_id', sa.Integer(), nullable=True),
        sa.Column('join_date', sa.Date(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id'], ),
        sa.ForeignKeyConstraint(['reporting_manager_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_employees_id'), 'employees', ['id'], unique=False)
    op.create_index(op.f('ix_employees_emp_code'), 'employees', ['emp_code'], unique=True)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('entity_id', sa.String(), nullable=True),
        sa.Column('meta_json', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['actor_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_logs_id'), 'audit_logs', ['id'], unique=False)

    op.create_table(
        'leave_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_type', sa.Enum(*LEAVE_TYPES, name='leavetype'), nullable=False),
        sa.Column('from_date', sa.Date(), nullable=False),
        sa.Column('to_date', sa.Date(), nullable=False),
        sa.Column('total_days', sa.Numeric(6, 2), nullable=False),
        sa.Column('is_half_day', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('status', sa.Enum(*LEAVE_STATUSES, name='leavestatus'), nullable=False),
        sa.Column('applied_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_by_id', sa.Integer(), nullable=True),
        sa.Column('approved_remark', sa.Text(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_by_id', sa.Integer(), nullable=True),
        sa.Column('rejected_remark', sa.Text(), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_by_id', sa.Integer(), nullable=True),
        sa.Column('cancelled_remark', sa.Text(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('from_date <= to_date', name='check_from_date_le_to_date'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['approved_by_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['rejected_by_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['cancelled_by_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_leave_requests_id'), 'leave_requests', ['id'], unique=False)
    op.create_index(op.f('ix_leave_requests_employee_id'), 'leave_requests', ['employee_id'], unique=False)
    op.create_index('ix_leave_requests_employee_dates', 'leave_requests', ['employee_id', 'from_date', 'to_date'], unique=False)

    op.create_table(
        'leave_approvals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('leave_request_id', sa.Integer(), nullable=False),
        sa.Column('action_by', sa.Integer(), nullable=True),
        sa.Column('action', sa.Enum(*APPROVAL_ACTIONS, name='approvalaction'), nullable=False),
        sa.Column('automated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('action_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['leave_request_id'], ['leave_requests.id'], ),
        sa.ForeignKeyConstraint(['action_by'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_leave_approvals_id'), 'leave_approvals', ['id'], unique=False)
    op.create_index(op.f('ix_leave_approvals_leave_request_id'), 'leave_approvals', ['leave_request_id'], unique=False)

    op.create_table(
        'leave_balances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_type', sa.Enum(*LEAVE_TYPES, name='leavetype', create_type=False), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('total_entitlement', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('used', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('available', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('carry_forward', sa.Numeric(6, 2), nullable=False, server_default='0'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('employee_id', 'leave_type', 'year', name='uq_leave_balances_employee_type_year')
    )
    op.create_index(op.f('ix_leave_balances_id'), 'leave_balances', ['id'], unique=False)
    op.create_index(op.f('ix_leave_balances_employee_id'), 'leave_balances', ['employee_id'], unique=False)
    op.create_index(op.f('ix_leave_balances_year'), 'leave_balances', ['year'], unique=False)

    op.create_table(
        'leave_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_id', sa.Integer(), nullable=True),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('leave_type', sa.Enum(*LEAVE_TYPES, name='leavetype', create_type=False), nullable=False),
        sa.Column('delta_days', sa.Numeric(6, 2), nullable=False),
        sa.Column('action', sa.String(30), nullable=False),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('action_by_employee_id', sa.Integer(), nullable=True),
        sa.Column('action_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['leave_id'], ['leave_requests.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['action_by_employee_id'], ['employees.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_leave_transactions_id'), 'leave_transactions', ['id'], unique=False)
    op.create_index(op.f('ix_leave_transactions_employee_id'), 'leave_transactions', ['employee_id'], unique=False)
    op.create_index(op.f('ix_leave_transactions_leave_id'), 'leave_transactions', ['leave_id'], unique=False)
    op.create_index(op.f('ix_leave_transactions_year'), 'leave_transactions', ['year'], unique=False)

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('recipient_id', sa.Integer(), nullable=True),
        sa.Column('recipient_email', sa.String(), nullable=True),
        sa.Column('channel', sa.String(10), nullable=False, server_default='IN_APP'),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('meta_json', sa.JSON(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['recipient_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notifications_id'), 'notifications', ['id'], unique=False)
    op.create_index(op.f('ix_notifications_recipient_id'), 'notifications', ['recipient_id'], unique=False)

    # Conditions and actions are stored as JSON documents
    op.create_table(
        'automation_rules',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('trigger_type', sa.String(30), nullable=False),
        sa.Column('trigger_conditions', sa.JSON(), nullable=False),
        sa.Column('actions', sa.JSON(), nullable=False),
        sa.Column('validation_rules', sa.JSON(), nullable=True),
        sa.Column('created_by', sa.String(64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_executed', sa.DateTime(timezone=True), nullable=True),
        sa.Column('execution_count', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_automation_rules_enabled'), 'automation_rules', ['enabled'], unique=False)
    op.create_index(op.f('ix_automation_rules_trigger_type'), 'automation_rules', ['trigger_type'], unique=False)
    op.create_index('ix_automation_rules_trigger_priority', 'automation_rules', ['trigger_type', 'priority'], unique=False)

    op.create_table(
        'rule_executions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('rule_id', sa.String(64), nullable=False),
        sa.Column('trigger_type', sa.String(30), nullable=False),
        sa.Column('trigger_context', sa.JSON(), nullable=True),
        sa.Column('result', sa.JSON(), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('execution_time_ms', sa.Float(), nullable=False, server_default='0'),
        sa.Column('actions_executed', sa.JSON(), nullable=False),
        sa.Column('errors', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['rule_id'], ['automation_rules.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_rule_executions_id'), 'rule_executions', ['id'], unique=False)
    op.create_index(op.f('ix_rule_executions_rule_id'), 'rule_executions', ['rule_id'], unique=False)


def downgrade() -> None:
    op.drop_table('rule_executions')
    op.drop_table('automation_rules')
    op.drop_table('notifications')
    op.drop_table('leave_transactions')
    op.drop_table('leave_balances')
    op.drop_table('leave_approvals')
    op.drop_table('leave_requests')
    op.drop_table('audit_logs')
    op.drop_table('employees')
    op.drop_table('departments')
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        op.execute('DROP TYPE IF EXISTS approvalaction')
        op.execute('DROP TYPE IF EXISTS leavestatus')
        op.execute('DROP TYPE IF EXISTS leavetype')

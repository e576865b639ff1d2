"""add employee compensation tables

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('ssid', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('performance', sa.String(), nullable=False),
        sa.Column('experience', sa.String(), nullable=False),
        sa.Column('salary', sa.Numeric(14, 2), nullable=False),
        sa.Column('revenue', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('suggestion', sa.JSON(), nullable=True),
        sa.Column('last_analyzed', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revision', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('ssid', name='uq_employees_ssid'),
    )
    op.create_index('idx_employees_status', 'employees', ['status'], unique=False)
    op.create_index('idx_employees_status_ssid', 'employees', ['status', 'ssid'], unique=False)

    op.create_table(
        'action_records',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('ssid', sa.String(), sa.ForeignKey('employees.ssid'), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.Column('applied_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        'idx_action_records_ssid_applied', 'action_records', ['ssid', 'applied_at'], unique=False
    )


def downgrade() -> None:
    op.drop_index('idx_action_records_ssid_applied', table_name='action_records')
    op.drop_table('action_records')
    op.drop_index('idx_employees_status_ssid', table_name='employees')
    op.drop_index('idx_employees_status', table_name='employees')
    op.drop_table('employees')

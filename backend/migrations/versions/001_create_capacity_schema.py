"""Create capacity schema

Revision ID: 001_capacity_schema
Revises:
Create Date: 2026-10-18

This migration creates:
- departments and employees tables, with weekly capacity, cost and skills
- projects table with required skills and budget
- assignments table with canonical hours_per_week and lifecycle status
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_capacity_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'departments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )

    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=120), nullable=True),
        sa.Column('department_id', sa.Integer(), nullable=True),
        sa.Column('weekly_capacity', sa.Float(), nullable=False, server_default='40'),
        sa.Column('hourly_cost', sa.Float(), nullable=True),
        sa.Column('skills', sa.Text(), nullable=True),
        sa.Column('seniority', sa.String(length=20), nullable=True),
        sa.Column('success_rate', sa.Float(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id'], name='fk_employees_department_id'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    op.create_table(
        'projects',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='planning'),
        sa.Column('required_skills', sa.Text(), nullable=True),
        sa.Column('budget', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'assignments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('hours_per_week', sa.Float(), nullable=False, server_default='40'),
        sa.Column('allocation_type', sa.String(length=20), nullable=False, server_default='hours'),
        sa.Column('allocation_percentage', sa.Float(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='tentative'),
        sa.Column('role_on_project', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('actual_hours', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], name='fk_assignments_employee_id'),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], name='fk_assignments_project_id'),
        sa.PrimaryKeyConstraint('id')
    )

    # Conflict detection reads assignments per employee and date window
    op.create_index('ix_assignments_employee_id', 'assignments', ['employee_id'])
    op.create_index('ix_assignments_project_id', 'assignments', ['project_id'])
    op.create_index('ix_assignments_employee_dates', 'assignments', ['employee_id', 'start_date', 'end_date'])


def downgrade():
    op.drop_index('ix_assignments_employee_dates', table_name='assignments')
    op.drop_index('ix_assignments_project_id', table_name='assignments')
    op.drop_index('ix_assignments_employee_id', table_name='assignments')
    op.drop_table('assignments')
    op.drop_table('projects')
    op.drop_table('employees')
    op.drop_table('departments')

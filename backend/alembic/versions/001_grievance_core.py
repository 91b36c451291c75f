"""grievance core schema

Revision ID: 001_grievance_core
Revises:
Create Date: 2026-10-17 09:00:00

Profiles, role assignments, complaints, timeline and identity lockers.
Roles live only in user_roles; profiles have no role column.
Timeline is append-only (UPDATE rejected by trigger on PostgreSQL).
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_grievance_core'
down_revision = None
branch_labels = None
depends_on = None


app_role = sa.Enum('student', 'staff', 'admin', name='app_role')
complaint_category = sa.Enum('hostel', 'academic', 'food', 'infrastructure', 'other', name='complaint_category')
complaint_severity = sa.Enum('low', 'medium', 'high', name='complaint_severity')
complaint_status = sa.Enum('submitted', 'in_progress', 'resolved', name='complaint_status')
reveal_status = sa.Enum('not_revealed', 'requested', 'revealed', name='reveal_status')


def upgrade():
    op.create_table(
        'profiles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('phone', sa.String(32), nullable=True),
        sa.Column('hostel', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'user_roles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', app_role, nullable=False),
        sa.UniqueConstraint('user_id', 'role', name='uq_user_roles_user_role'),
    )
    op.create_index('ix_user_roles_user_id', 'user_roles', ['user_id'])

    op.create_table(
        'complaints',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('student_id', sa.Uuid(), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('category', complaint_category, nullable=False),
        sa.Column('severity', complaint_severity, nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('is_anonymous', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', complaint_status, nullable=False, server_default='submitted'),
        sa.Column('staff_assigned', sa.Uuid(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('withdrawn_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('withdrawal_reason', sa.Text(), nullable=True),
        sa.CheckConstraint('rating IS NULL OR (rating >= 1 AND rating <= 5)', name='complaint_rating_range'),
    )
    op.create_index('ix_complaints_student_id', 'complaints', ['student_id'])
    op.create_index('ix_complaints_status', 'complaints', ['status'])
    op.create_index('ix_complaints_staff_assigned', 'complaints', ['staff_assigned'])
    op.create_index('idx_complaints_student_created', 'complaints', ['student_id', 'created_at'])

    op.create_table(
        'complaint_timeline',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('complaint_id', sa.Uuid(), sa.ForeignKey('complaints.id', ondelete='CASCADE'), nullable=False),
        sa.Column('updated_by', sa.Uuid(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_complaint_timeline_complaint_id', 'complaint_timeline', ['complaint_id'])

    op.create_table(
        'identity_lockers',
        sa.Column('complaint_id', sa.Uuid(), sa.ForeignKey('complaints.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('real_student_id', sa.Uuid(), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False),
        sa.Column('reveal_status', reveal_status, nullable=False, server_default='not_revealed'),
        sa.Column('reveal_reason', sa.Text(), nullable=True),
        sa.Column('reveal_requested_by', sa.Uuid(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('revealed_by', sa.Uuid(), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('revealed_at', sa.DateTime(timezone=True), nullable=True),
    )

    # Append-only timeline
    if op.get_bind().dialect.name == 'postgresql':
        op.execute("""
            CREATE OR REPLACE FUNCTION reject_timeline_mutation()
            RETURNS TRIGGER AS $$
            BEGIN
                RAISE EXCEPTION 'Timeline entries are append-only. Operation % is forbidden on complaint_timeline.', TG_OP;
            END;
            $$ LANGUAGE plpgsql;
        """)
        op.execute("""
            CREATE TRIGGER prevent_timeline_mutation
            BEFORE UPDATE ON complaint_timeline
            FOR EACH ROW EXECUTE FUNCTION reject_timeline_mutation();
        """)


def downgrade():
    if op.get_bind().dialect.name == 'postgresql':
        op.execute("DROP TRIGGER IF EXISTS prevent_timeline_mutation ON complaint_timeline")
        op.execute("DROP FUNCTION IF EXISTS reject_timeline_mutation()")

    op.drop_table('identity_lockers')
    op.drop_index('ix_complaint_timeline_complaint_id', table_name='complaint_timeline')
    op.drop_table('complaint_timeline')
    op.drop_index('idx_complaints_student_created', table_name='complaints')
    op.drop_index('ix_complaints_staff_assigned', table_name='complaints')
    op.drop_index('ix_complaints_status', table_name='complaints')
    op.drop_index('ix_complaints_student_id', table_name='complaints')
    op.drop_table('complaints')
    op.drop_index('ix_user_roles_user_id', table_name='user_roles')
    op.drop_table('user_roles')
    op.drop_table('profiles')

    bind = op.get_bind()
    for enum in (reveal_status, complaint_status, complaint_severity, complaint_category, app_role):
        enum.drop(bind, checkfirst=True)

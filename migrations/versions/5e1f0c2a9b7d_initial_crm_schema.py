"""initial_crm_schema

Create the CRM collections: users, clients, projects (+ phases and
phase assignments), developers, work items, messages and the audit log.

Revision ID: 5e1f0c2a9b7d
Revises:
Create Date: 2026-10-16 22:45:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5e1f0c2a9b7d"
down_revision = None
branch_labels = None
depends_on = None


def _record_columns():
    return [
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False, server_default="0"),
    ]


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            *_record_columns(),
            sa.Column("username", sa.String(length=150), nullable=False),
            sa.Column("password_hash", sa.String(length=256), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_users_seq", "users", ["seq"])
        op.create_index("ix_users_username_active", "users", ["username", "is_active"])
        op.create_index("ix_users_role", "users", ["role"])

    if "clients" not in existing_tables:
        op.create_table(
            "clients",
            *_record_columns(),
            sa.Column("full_name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("phone", sa.String(length=50), nullable=True),
            sa.Column("company", sa.String(length=200), nullable=True),
            sa.Column("website", sa.String(length=500), nullable=True),
            sa.Column("services_needed", sa.Text(), nullable=True),
            sa.Column("project_description", sa.Text(), nullable=True),
            sa.Column("company_summary", sa.Text(), nullable=True),
            sa.Column("source", sa.String(length=20), nullable=False, server_default="manual"),
            sa.Column("source_id", sa.String(length=100), nullable=True),
            sa.Column("status", sa.String(length=10), nullable=False, server_default="valid"),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_clients_seq", "clients", ["seq"])
        op.create_index("ix_clients_email", "clients", ["email"])
        op.create_index("ix_clients_status", "clients", ["status"])

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            *_record_columns(),
            sa.Column("client_id", sa.String(length=36), nullable=False),
            sa.Column("manager_id", sa.String(length=36), nullable=True),
            sa.Column("client_user_id", sa.String(length=36), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("earnings", sa.Numeric(12, 2), nullable=True),
            sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
            sa.ForeignKeyConstraint(["manager_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["client_user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_projects_seq", "projects", ["seq"])
        op.create_index("ix_projects_client_id", "projects", ["client_id"])
        op.create_index("ix_projects_client_user_id", "projects", ["client_user_id"])
        op.create_index("ix_projects_status", "projects", ["status"])
        op.create_index("ix_projects_manager", "projects", ["manager_id"])

    if "project_phases" not in existing_tables:
        op.create_table(
            "project_phases",
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="not_started"),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("end_date", sa.Date(), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("project_id", "id"),
        )

    if "developers" not in existing_tables:
        op.create_table(
            "developers",
            *_record_columns(),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("specialization", sa.String(length=50), nullable=False, server_default="general"),
            sa.Column("manager_id", sa.String(length=36), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["manager_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id"),
        )
        op.create_index("ix_developers_seq", "developers", ["seq"])
        op.create_index("ix_developers_manager", "developers", ["manager_id"])

    if "phase_assignments" not in existing_tables:
        op.create_table(
            "phase_assignments",
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("phase_id", sa.String(length=36), nullable=False),
            sa.Column("developer_id", sa.String(length=36), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(
                ["project_id", "phase_id"],
                ["project_phases.project_id", "project_phases.id"],
                ondelete="CASCADE",
            ),
            sa.ForeignKeyConstraint(["developer_id"], ["developers.id"]),
            sa.PrimaryKeyConstraint("project_id", "phase_id", "developer_id"),
        )
        op.create_index("ix_phase_assignments_developer", "phase_assignments", ["developer_id"])

    if "tasks" not in existing_tables:
        op.create_table(
            "tasks",
            *_record_columns(),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("developer_id", sa.String(length=36), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="todo"),
            sa.Column("priority", sa.String(length=10), nullable=False, server_default="medium"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
            sa.ForeignKeyConstraint(["developer_id"], ["developers.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_tasks_seq", "tasks", ["seq"])
        op.create_index("idx_tasks_project_status", "tasks", ["project_id", "status"])
        op.create_index("idx_tasks_developer", "tasks", ["developer_id"])

    if "progress_logs" not in existing_tables:
        op.create_table(
            "progress_logs",
            *_record_columns(),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("developer_id", sa.String(length=36), nullable=False),
            sa.Column("short_update", sa.Text(), nullable=False),
            sa.Column("hours", sa.Float(), nullable=False, server_default="0"),
            sa.Column("date", sa.Date(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
            sa.ForeignKeyConstraint(["developer_id"], ["developers.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_progress_logs_seq", "progress_logs", ["seq"])
        op.create_index("idx_progress_project", "progress_logs", ["project_id"])
        op.create_index("idx_progress_developer", "progress_logs", ["developer_id"])

    if "issues" not in existing_tables:
        op.create_table(
            "issues",
            *_record_columns(),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("reporter_id", sa.String(length=36), nullable=False),
            sa.Column("reporter_role", sa.String(length=20), nullable=False, server_default="developer"),
            sa.Column("type", sa.String(length=10), nullable=False, server_default="query"),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="open"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_issues_seq", "issues", ["seq"])
        op.create_index("idx_issues_project_status", "issues", ["project_id", "status"])

    if "feedback" not in existing_tables:
        op.create_table(
            "feedback",
            *_record_columns(),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("client_user_id", sa.String(length=36), nullable=False),
            sa.Column("phase_id", sa.String(length=36), nullable=False),
            sa.Column("rating", sa.Integer(), nullable=False),
            sa.Column("comments", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
            sa.ForeignKeyConstraint(["client_user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_feedback_seq", "feedback", ["seq"])
        op.create_index("ix_feedback_project_id", "feedback", ["project_id"])

    if "messages" not in existing_tables:
        op.create_table(
            "messages",
            *_record_columns(),
            sa.Column("from_user_id", sa.String(length=36), nullable=False),
            sa.Column("to_user_id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=True),
            sa.Column("subject", sa.String(length=200), nullable=False),
            sa.Column("content", sa.Text(), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["from_user_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["to_user_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_messages_seq", "messages", ["seq"])
        op.create_index("idx_messages_to", "messages", ["to_user_id", "is_read"])
        op.create_index("idx_messages_from", "messages", ["from_user_id"])

    if "audit_logs" not in existing_tables:
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.Column("actor_user_id", sa.String(length=36), nullable=False, server_default="system"),
            sa.Column("actor", sa.String(length=150), nullable=False, server_default="system"),
            sa.Column("actor_role", sa.String(length=20), nullable=False, server_default="system"),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("description", sa.Text(), nullable=False, server_default=""),
            sa.Column("project_id", sa.String(length=36), nullable=True),
            sa.Column("diff_json", sa.Text(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_audit_actor", "audit_logs", ["actor_user_id"])
        op.create_index("idx_audit_action", "audit_logs", ["action"])
        op.create_index("idx_audit_project", "audit_logs", ["project_id"])
        op.create_index("idx_audit_ts", "audit_logs", ["timestamp"])


def downgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    for table in (
        "audit_logs", "messages", "feedback", "issues", "progress_logs", "tasks",
        "phase_assignments", "developers", "project_phases", "projects", "clients", "users",
    ):
        if table in existing_tables:
            op.drop_table(table)

"""Initial approval schema: workflows, requests, history, delegations"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261019000000"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "approval_workflows",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("workflow_type", sa.String(length=100), nullable=False, server_default="general"),
        sa.Column("steps", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("auto_approve", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("max_duration_hours", sa.Integer(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_approval_workflows_workflow_type", "approval_workflows", ["workflow_type"])
    op.create_index("ix_approval_workflows_is_active", "approval_workflows", ["is_active"])
    op.create_index("ix_approval_workflows_created_at", "approval_workflows", ["created_at"])

    op.create_table(
        "approval_requests",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "workflow_id",
            sa.Uuid(),
            sa.ForeignKey("approval_workflows.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("requester_id", sa.String(length=255), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("request_type", sa.String(length=100), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default="medium"),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("steps_snapshot", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("current_step", sa.Integer(), nullable=True),
        sa.Column("current_approver_role", sa.String(length=100), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_approval_requests_workflow_id", "approval_requests", ["workflow_id"])
    op.create_index("ix_approval_requests_requester_id", "approval_requests", ["requester_id"])
    op.create_index("ix_approval_requests_request_type", "approval_requests", ["request_type"])
    op.create_index("ix_approval_requests_priority", "approval_requests", ["priority"])
    op.create_index("ix_approval_requests_status", "approval_requests", ["status"])
    op.create_index("ix_approval_requests_current_approver_role", "approval_requests", ["current_approver_role"])
    op.create_index("ix_approval_requests_created_at", "approval_requests", ["created_at"])

    op.create_table(
        "approval_history",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "request_id",
            sa.Uuid(),
            sa.ForeignKey("approval_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("actor_role", sa.String(length=100), nullable=False),
        sa.Column("on_behalf_of", sa.String(length=255), nullable=True),
        sa.Column("action", sa.String(length=20), nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("step_number", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_approval_history_request_id", "approval_history", ["request_id"])
    op.create_index("ix_approval_history_actor_id", "approval_history", ["actor_id"])
    op.create_index("ix_approval_history_created_at", "approval_history", ["created_at"])

    op.create_table(
        "approval_delegations",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("delegator_id", sa.String(length=255), nullable=False),
        sa.Column("delegator_role", sa.String(length=100), nullable=False),
        sa.Column("delegate_id", sa.String(length=255), nullable=False),
        sa.Column("workflow_type", sa.String(length=100), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_approval_delegations_delegator_id", "approval_delegations", ["delegator_id"])
    op.create_index("ix_approval_delegations_delegate_id", "approval_delegations", ["delegate_id"])
    op.create_index("ix_approval_delegations_is_active", "approval_delegations", ["is_active"])


def downgrade():
    op.drop_table("approval_delegations")
    op.drop_table("approval_history")
    op.drop_table("approval_requests")
    op.drop_table("approval_workflows")

"""Snapshot the template's workflow_type onto each approval request"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261019000001"
down_revision = "20261019000000"
branch_labels = None
depends_on = None


def upgrade():
    op.add_column("approval_requests", sa.Column("workflow_type", sa.String(length=100), nullable=True))
    op.execute(
        """
        UPDATE approval_requests
        SET workflow_type = COALESCE(
            (SELECT w.workflow_type FROM approval_workflows w WHERE w.id = approval_requests.workflow_id),
            request_type
        )
        """
    )
    op.alter_column(
        "approval_requests",
        "workflow_type",
        existing_type=sa.String(length=100),
        nullable=False,
        server_default="general",
    )
    op.create_index("ix_approval_requests_workflow_type", "approval_requests", ["workflow_type"])


def downgrade():
    op.drop_index("ix_approval_requests_workflow_type", table_name="approval_requests")
    op.drop_column("approval_requests", "workflow_type")

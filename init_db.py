"""
Initialize the approval database schema.
Creates all tables from SQLAlchemy models (use Alembic for managed deployments).
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from approvalflow.api.db.base import Base
from approvalflow.api.db.session import engine

# Import all models to ensure they're registered
from approvalflow.api.models.workflow import WorkflowTemplate  # noqa: F401
from approvalflow.api.models.approval_request import ApprovalRequest  # noqa: F401
from approvalflow.api.models.approval_history import ApprovalHistoryEntry  # noqa: F401
from approvalflow.api.models.delegation import Delegation  # noqa: F401

print("Creating all database tables...")
print(f"Database URL: {engine.url.render_as_string(hide_password=True)}")

try:
    Base.metadata.create_all(bind=engine)
    print("✅ All tables created successfully!")

    print("\nCreated tables:")
    for table in Base.metadata.sorted_tables:
        print(f"  - {table.name}")

except Exception as e:
    print(f"❌ Error creating tables: {e}")
    sys.exit(1)

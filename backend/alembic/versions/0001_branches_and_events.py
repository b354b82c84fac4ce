"""Create branch metadata and lifecycle event tables."""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | Sequence[str] | None = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create the branches and events tables."""

    op.create_table(
        "branches",
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("resource", sa.String(), nullable=False),
        sa.Column("parent", sa.String(), nullable=False),
        sa.Column("strategy", sa.String(), nullable=False),
        sa.Column("configuration", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("name", "resource"),
    )
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("branch", sa.String(), nullable=False),
        sa.Column("resource", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_events_branch_resource_timestamp",
        "events",
        ["branch", "resource", "timestamp", "id"],
    )


def downgrade() -> None:
    """Drop the branches and events tables."""

    op.drop_index("ix_events_branch_resource_timestamp", table_name="events")
    op.drop_table("events")
    op.drop_table("branches")

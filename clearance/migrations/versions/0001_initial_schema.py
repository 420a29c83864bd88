"""Initial schema: submissions, submission_history, case_completions

Revision ID: 0001
Revises: None
Create Date: 2026-10-12

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the clearance workflow tables."""

    # --- submissions (one row per person and stage) ---
    op.create_table(
        "submissions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("person_id", sa.String(255), nullable=False),
        sa.Column("stage_id", sa.String(100), nullable=False),
        sa.Column("scope", sa.String(255), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="pending"),
        sa.Column("round", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("documents", sa.JSON(), nullable=False),
        sa.Column("reviewer_id", sa.String(255), nullable=True),
        sa.Column("reviewer_comment", sa.Text(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_submissions"),
        sa.UniqueConstraint("person_id", "stage_id", name="uq_submissions_person_stage"),
    )
    op.create_index("ix_submissions_person_id", "submissions", ["person_id"])
    op.create_index("ix_submissions_stage_id", "submissions", ["stage_id"])
    op.create_index("ix_submissions_scope", "submissions", ["scope"])
    op.create_index("ix_submissions_status", "submissions", ["status"])
    op.create_index("ix_submissions_created_at", "submissions", ["created_at"])

    # --- submission_history (FK -> submissions) ---
    op.create_table(
        "submission_history",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("submission_id", sa.Uuid(), nullable=False),
        sa.Column("from_status", sa.String(50), nullable=False),
        sa.Column("to_status", sa.String(50), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("round", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("actor_id", sa.String(255), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("extra_data", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_submission_history"),
        sa.ForeignKeyConstraint(
            ["submission_id"],
            ["submissions.id"],
            name="fk_submission_history_submission_id_submissions",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_submission_history_submission_id", "submission_history", ["submission_id"])
    op.create_index("ix_submission_history_created_at", "submission_history", ["created_at"])

    # --- case_completions (one row per completed person) ---
    op.create_table(
        "case_completions",
        sa.Column("person_id", sa.String(255), nullable=False),
        sa.Column("submission_id", sa.Uuid(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("person_id", name="pk_case_completions"),
        sa.ForeignKeyConstraint(
            ["submission_id"],
            ["submissions.id"],
            name="fk_case_completions_submission_id_submissions",
            ondelete="SET NULL",
        ),
    )


def downgrade() -> None:
    op.drop_table("case_completions")
    op.drop_index("ix_submission_history_created_at", table_name="submission_history")
    op.drop_index("ix_submission_history_submission_id", table_name="submission_history")
    op.drop_table("submission_history")
    op.drop_index("ix_submissions_created_at", table_name="submissions")
    op.drop_index("ix_submissions_status", table_name="submissions")
    op.drop_index("ix_submissions_scope", table_name="submissions")
    op.drop_index("ix_submissions_stage_id", table_name="submissions")
    op.drop_index("ix_submissions_person_id", table_name="submissions")
    op.drop_table("submissions")

"""Create calls and transcription_entries tables

Revision ID: 0001_create_calls
Revises:
Create Date: 2026-10-19

- calls: one row per delegated phone call, status is compare-and-set
- transcription_entries: append-only transcript lines ordered by id
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_create_calls"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create calls and transcription_entries tables."""
    call_status_enum = sa.Enum(
        "calling",
        "on_hold",
        "connected_to_human",
        "callback_in_progress",
        "completed",
        "failed",
        name="callstatus",
    )

    transcript_speaker_enum = sa.Enum(
        "ai",
        "human",
        "user",
        name="transcriptspeaker",
    )

    op.create_table(
        "calls",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("phone_number", sa.String(), nullable=False),
        sa.Column("issue_description", sa.String(), nullable=False),
        sa.Column("user_phone", sa.String(), nullable=True),
        sa.Column("status", call_status_enum, nullable=False),
        sa.Column("provider_call_sid", sa.String(), nullable=True),
        sa.Column("callback_requested", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("call_duration", sa.Integer(), nullable=True),
        sa.Column("human_detected_at", sa.DateTime(), nullable=True),
        sa.Column("ai_responses_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_calls_status", "calls", ["status"])
    op.create_index("ix_calls_provider_call_sid", "calls", ["provider_call_sid"])
    op.create_index("ix_calls_created_at", "calls", ["created_at"])

    op.create_table(
        "transcription_entries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("call_id", sa.String(), nullable=False),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("speaker", transcript_speaker_enum, nullable=False),
        sa.Column("text", sa.String(), nullable=False),
        sa.ForeignKeyConstraint(["call_id"], ["calls.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_transcription_entries_call_id", "transcription_entries", ["call_id"]
    )


def downgrade() -> None:
    """Drop transcription_entries and calls tables."""
    op.drop_index("ix_transcription_entries_call_id", table_name="transcription_entries")
    op.drop_table("transcription_entries")
    op.drop_index("ix_calls_created_at", table_name="calls")
    op.drop_index("ix_calls_provider_call_sid", table_name="calls")
    op.drop_index("ix_calls_status", table_name="calls")
    op.drop_table("calls")

"""create voice_notes table

Revision ID: 4c1e7b9a2d10
Revises:
Create Date: 2026-10-19 09:12:41.518204

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "4c1e7b9a2d10"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "voice_notes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("audio_data", sa.LargeBinary(), nullable=False),
        sa.Column("audio_mime_type", sa.String(length=50), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("duration_seconds", sa.Float(), nullable=False),
        sa.Column("telegram_message_id", sa.String(length=50), nullable=False),
        sa.Column("telegram_chat_id", sa.String(length=50), nullable=False),
        sa.Column("telegram_user_id", sa.String(length=50), nullable=False),
        sa.Column("telegram_username", sa.String(length=255), nullable=True),
        sa.Column("sender_name", sa.String(length=255), nullable=False),
        sa.Column("transcription", sa.Text(), nullable=False),
        sa.Column("transcription_confidence", sa.Float(), nullable=True),
        sa.Column("language_code", sa.String(length=10), nullable=True),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("sentiment", sa.String(length=20), nullable=False),
        sa.Column("priority_level", sa.Integer(), nullable=False),
        sa.Column("reasoning", sa.Text(), nullable=True),
        sa.Column("confidence_scores", sa.JSON(), nullable=False),
        sa.Column("extracted_dates", sa.JSON(), nullable=False),
        sa.Column("analysis_source", sa.String(length=20), nullable=False),
        sa.Column("analysis_error", sa.String(length=50), nullable=True),
        sa.Column("needs_review", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_voice_notes_id"), "voice_notes", ["id"], unique=False)
    op.create_index(op.f("ix_voice_notes_category"), "voice_notes", ["category"], unique=False)
    op.create_index(op.f("ix_voice_notes_status"), "voice_notes", ["status"], unique=False)
    op.create_index(
        op.f("ix_voice_notes_telegram_user_id"), "voice_notes", ["telegram_user_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_voice_notes_telegram_user_id"), table_name="voice_notes")
    op.drop_index(op.f("ix_voice_notes_status"), table_name="voice_notes")
    op.drop_index(op.f("ix_voice_notes_category"), table_name="voice_notes")
    op.drop_index(op.f("ix_voice_notes_id"), table_name="voice_notes")
    op.drop_table("voice_notes")

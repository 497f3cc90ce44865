"""add suggested_dates to voice_notes

Revision ID: 9b2f6d3e8a41
Revises: 4c1e7b9a2d10
Create Date: 2026-10-19 15:40:07.203118

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "9b2f6d3e8a41"
down_revision: str | None = "4c1e7b9a2d10"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.add_column(
        "voice_notes",
        sa.Column(
            "suggested_dates",
            sa.JSON(),
            server_default=sa.text("'[]'"),
            nullable=False,
        ),
    )


def downgrade() -> None:
    op.drop_column("voice_notes", "suggested_dates")

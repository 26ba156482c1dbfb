"""killmails: killmail references (id + hash) with processing status."""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

from mkb.db.base import generated_uuid

revision: str = "0002_killmails"
down_revision: Union[str, None] = "0001_users"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "killmails",
        sa.Column("id", sa.Uuid(), server_default=generated_uuid(), nullable=False),
        sa.Column("killmail_id", sa.BigInteger(), nullable=False),
        sa.Column("killmail_hash", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), server_default="pending", nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_killmails"),
        sa.UniqueConstraint("killmail_id", name="uq_killmails_killmail_id"),
    )
    # The resolve job scans by status.
    op.create_index("ix_killmails_status", "killmails", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_killmails_status", table_name="killmails")
    op.drop_table("killmails")

"""entities: killmail participants keyed by their ESI id."""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0003_entities"
down_revision: Union[str, None] = "0002_killmails"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "entities",
        sa.Column("id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("name", sa.Text(), server_default="", nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_entities"),
    )


def downgrade() -> None:
    op.drop_table("entities")

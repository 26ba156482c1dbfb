"""killmails_x_entities: which entity took part in which killmail, and on which side."""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

from mkb.db.base import generated_uuid

revision: str = "0004_killmails_x_entities"
down_revision: Union[str, None] = "0003_entities"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "killmails_x_entities",
        sa.Column("id", sa.Uuid(), server_default=generated_uuid(), nullable=False),
        sa.Column("killmail_id", sa.Uuid(), nullable=False),
        sa.Column("entity_id", sa.BigInteger(), nullable=False),
        sa.Column("entity_side", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_killmails_x_entities"),
        sa.ForeignKeyConstraint(
            ["killmail_id"], ["killmails.id"], name="fk_killmails_x_entities_killmail_id_killmails"
        ),
        sa.ForeignKeyConstraint(
            ["entity_id"], ["entities.id"], name="fk_killmails_x_entities_entity_id_entities"
        ),
        sa.UniqueConstraint(
            "killmail_id", "entity_id", "entity_side", name="uq_killmails_x_entities_link"
        ),
    )
    op.create_index(
        "ix_killmails_x_entities_killmail_id", "killmails_x_entities", ["killmail_id"]
    )
    op.create_index("ix_killmails_x_entities_entity_id", "killmails_x_entities", ["entity_id"])


def downgrade() -> None:
    op.drop_index("ix_killmails_x_entities_entity_id", table_name="killmails_x_entities")
    op.drop_index("ix_killmails_x_entities_killmail_id", table_name="killmails_x_entities")
    op.drop_table("killmails_x_entities")

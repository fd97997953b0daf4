import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "entities",
        sa.Column("pk", sa.String(length=255), primary_key=True),
        sa.Column("sk", sa.String(length=255), primary_key=True),
        sa.Column(
            "entity_type",
            sa.String(length=32),
            nullable=False,
            server_default="unknown",
        ),
        sa.Column("submitted_by", sa.String(length=255), nullable=True),
        sa.Column("review_state", sa.String(length=32), nullable=True),
        sa.Column("label", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.String(length=40), nullable=True),
        sa.Column(
            "data",
            sa.JSON().with_variant(postgresql.JSONB, "postgresql"),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_entities_submitted_by", "entities", ["submitted_by", "created_at"]
    )
    op.create_index(
        "ix_entities_review_state", "entities", ["review_state", "created_at"]
    )
    op.create_index("ix_entities_label", "entities", ["label", "created_at"])
    op.create_index("ix_entities_sk", "entities", ["sk"])


def downgrade() -> None:
    op.drop_index("ix_entities_sk", table_name="entities")
    op.drop_index("ix_entities_label", table_name="entities")
    op.drop_index("ix_entities_review_state", table_name="entities")
    op.drop_index("ix_entities_submitted_by", table_name="entities")
    op.drop_table("entities")

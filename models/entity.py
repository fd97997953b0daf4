import enum

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

json_type = sa.JSON().with_variant(JSONB, "postgresql")


class EntityType(str, enum.Enum):
    DATASET = "dataset"
    MEMBERSHIP = "membership"
    USER_DATASET_LINK = "user_dataset_link"
    PROBLEM = "problem"
    PROBLEM_LOCATOR = "problem_locator"
    UNKNOWN = "unknown"


class Entity(Base):
    """One row of the shared key-value table.

    ``data`` holds the full item; the remaining columns are top-level
    projections of it that back the secondary indices.
    """

    __tablename__ = "entities"

    pk: Mapped[str] = mapped_column(sa.String(255), primary_key=True)
    sk: Mapped[str] = mapped_column(sa.String(255), primary_key=True)
    entity_type: Mapped[str] = mapped_column(
        sa.String(32), nullable=False, default=EntityType.UNKNOWN.value
    )
    submitted_by: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    review_state: Mapped[str | None] = mapped_column(sa.String(32), nullable=True)
    label: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    created_at: Mapped[str | None] = mapped_column(sa.String(40), nullable=True)
    data: Mapped[dict] = mapped_column(json_type, nullable=False, default=dict)

    __table_args__ = (
        sa.Index("ix_entities_submitted_by", "submitted_by", "created_at"),
        sa.Index("ix_entities_review_state", "review_state", "created_at"),
        sa.Index("ix_entities_label", "label", "created_at"),
        sa.Index("ix_entities_sk", "sk"),
    )

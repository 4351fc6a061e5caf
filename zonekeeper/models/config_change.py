from __future__ import annotations

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from zonekeeper.db.base import Base

# Use JSONB on PostgreSQL, plain JSON on SQLite (for tests)
JSONVariant = sa.JSON().with_variant(JSONB, "postgresql")


class ConfigChange(Base):
    """Audit trail row for zone, record and proxy mutations."""

    __tablename__ = "config_changes"

    id: Mapped[int] = mapped_column(
        sa.BigInteger().with_variant(sa.Integer(), "sqlite"), primary_key=True
    )

    entity_type: Mapped[str] = mapped_column(sa.String(50), index=True)
    entity_id: Mapped[int | None] = mapped_column(sa.BigInteger(), nullable=True, index=True)

    action: Mapped[str] = mapped_column(sa.String(30))
    actor_user_id: Mapped[int | None] = mapped_column(
        sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    before_data: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    after_data: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)

    comment: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), index=True
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "actor_user_id": self.actor_user_id,
            "before": self.before_data,
            "after": self.after_data,
            "comment": self.comment,
            "created_at": self.created_at,
        }

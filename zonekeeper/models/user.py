from __future__ import annotations

from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zonekeeper.db.base import Base

if TYPE_CHECKING:
    from zonekeeper.models.zone import Zone


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    name: Mapped[str] = mapped_column(sa.String(255), server_default="", nullable=False)
    is_verified: Mapped[bool] = mapped_column(sa.Boolean(), server_default=sa.false())
    created_at: Mapped[object] = mapped_column(sa.DateTime(), server_default=sa.func.now())
    last_login: Mapped[object | None] = mapped_column(sa.DateTime(), nullable=True)

    zones: Mapped[list["Zone"]] = relationship("Zone", back_populates="user")

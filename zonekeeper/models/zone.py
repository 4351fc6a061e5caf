from __future__ import annotations

from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zonekeeper.db.base import Base

if TYPE_CHECKING:
    from zonekeeper.models.proxy_route import ProxyRoute
    from zonekeeper.models.record import Record
    from zonekeeper.models.user import User

ZONE_STATUSES = ("active", "pending", "disabled")


class Zone(Base):
    __tablename__ = "app_zones"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(
        sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    domain: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(sa.String(20), server_default="active", nullable=False)

    created_at: Mapped[object] = mapped_column(sa.DateTime(), server_default=sa.func.now())
    updated_at: Mapped[object | None] = mapped_column(
        sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()
    )

    user: Mapped[User] = relationship("User", back_populates="zones")
    records: Mapped[list["Record"]] = relationship(
        "Record", back_populates="zone", cascade="all"
    )
    proxy_routes: Mapped[list["ProxyRoute"]] = relationship(
        "ProxyRoute", back_populates="zone", cascade="all"
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "domain": self.domain,
            "status": self.status,
            "record_count": len(self.records),
            "created_at": self.created_at,
        }

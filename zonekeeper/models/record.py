from __future__ import annotations

from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zonekeeper.db.base import Base

if TYPE_CHECKING:
    from zonekeeper.models.proxy_route import ProxyRoute
    from zonekeeper.models.zone import Zone


class Record(Base):
    """User-facing DNS record.

    ``content`` always carries the value the user entered (the origin for
    proxied records); the authoritative store answers with the shared proxy
    IP while ``proxied`` is set.
    """

    __tablename__ = "app_records"

    id: Mapped[int] = mapped_column(primary_key=True)
    zone_id: Mapped[int] = mapped_column(
        sa.Integer(), sa.ForeignKey("app_zones.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    type: Mapped[str] = mapped_column(sa.String(10), nullable=False)
    content: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    ttl: Mapped[int] = mapped_column(sa.Integer(), server_default="3600", nullable=False)
    priority: Mapped[int | None] = mapped_column(sa.Integer(), nullable=True)
    disabled: Mapped[bool] = mapped_column(sa.Boolean(), server_default=sa.false())

    proxied: Mapped[bool] = mapped_column(sa.Boolean(), server_default=sa.false())
    origin_ip: Mapped[str | None] = mapped_column(sa.String(45), nullable=True)

    created_at: Mapped[object] = mapped_column(sa.DateTime(), server_default=sa.func.now())
    updated_at: Mapped[object | None] = mapped_column(
        sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()
    )

    zone: Mapped[Zone] = relationship("Zone", back_populates="records")
    proxy_route: Mapped[ProxyRoute | None] = relationship(
        "ProxyRoute", back_populates="record", uselist=False, cascade="all"
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "zone_id": self.zone_id,
            "name": self.name,
            "type": self.type,
            "content": self.content,
            "ttl": self.ttl,
            "priority": self.priority,
            "disabled": bool(self.disabled),
            "proxied": bool(self.proxied),
            "origin_ip": self.origin_ip,
        }

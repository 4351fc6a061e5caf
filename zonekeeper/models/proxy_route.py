from __future__ import annotations

from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zonekeeper.db.base import Base

if TYPE_CHECKING:
    from zonekeeper.models.record import Record
    from zonekeeper.models.zone import Zone


class ProxyRoute(Base):
    __tablename__ = "app_proxy_routes"

    id: Mapped[int] = mapped_column(primary_key=True)
    zone_id: Mapped[int] = mapped_column(
        sa.Integer(), sa.ForeignKey("app_zones.id", ondelete="CASCADE"), index=True
    )
    # At most one route per record
    record_id: Mapped[int] = mapped_column(
        sa.Integer(), sa.ForeignKey("app_records.id", ondelete="CASCADE"), unique=True
    )
    domain: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    origin_ip: Mapped[str] = mapped_column(sa.String(45), nullable=False)
    origin_port: Mapped[int] = mapped_column(sa.Integer(), server_default="80", nullable=False)

    created_at: Mapped[object] = mapped_column(sa.DateTime(), server_default=sa.func.now())
    updated_at: Mapped[object | None] = mapped_column(
        sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()
    )

    zone: Mapped[Zone] = relationship("Zone", back_populates="proxy_routes")
    record: Mapped[Record] = relationship("Record", back_populates="proxy_route")

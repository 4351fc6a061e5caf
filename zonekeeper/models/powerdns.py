"""PowerDNS generic SQL backend tables.

These mirror the ``domains``/``records`` schema that the authoritative
server reads. Only the columns the sync layer writes are required; the
rest exist so the same tables can be served by PowerDNS unchanged.
"""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from zonekeeper.db.base import Base


class PDNSDomain(Base):
    __tablename__ = "domains"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    master: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)
    last_check: Mapped[int | None] = mapped_column(sa.Integer(), nullable=True)
    type: Mapped[str] = mapped_column(sa.String(8), nullable=False)
    notified_serial: Mapped[int | None] = mapped_column(sa.BigInteger(), nullable=True)
    account: Mapped[str | None] = mapped_column(sa.String(40), nullable=True)


class PDNSRecord(Base):
    __tablename__ = "records"
    __table_args__ = (
        sa.UniqueConstraint("domain_id", "name", "type", "content", name="uq_records_natural_key"),
        sa.Index("ix_records_name_type", "name", "type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    domain_id: Mapped[int] = mapped_column(
        sa.Integer(), sa.ForeignKey("domains.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    type: Mapped[str] = mapped_column(sa.String(10), nullable=False)
    content: Mapped[str] = mapped_column(sa.String(1024), nullable=False)
    ttl: Mapped[int] = mapped_column(sa.Integer(), nullable=False)
    prio: Mapped[int | None] = mapped_column(sa.Integer(), nullable=True)
    disabled: Mapped[bool] = mapped_column(sa.Boolean(), server_default=sa.false())
    ordername: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    auth: Mapped[bool] = mapped_column(sa.Boolean(), server_default=sa.true())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "content": self.content,
            "ttl": self.ttl,
            "prio": self.prio,
            "disabled": bool(self.disabled),
        }

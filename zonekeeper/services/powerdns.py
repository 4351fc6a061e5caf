"""Sync layer for the PowerDNS generic SQL backend.

Every function here is idempotent and runs inside the caller's session
transaction; committing is left to the caller. Database errors propagate
unchanged.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from zonekeeper.models.powerdns import PDNSDomain, PDNSRecord

log = logging.getLogger(__name__)

DOMAIN_TYPE = "NATIVE"
DOMAIN_ACCOUNT = "admin"

SOA_REFRESH = 10800
SOA_RETRY = 3600
SOA_EXPIRE = 604800
SOA_MINIMUM = 3600
SOA_TTL = 3600
NS_TTL = 86400
DEFAULT_TTL = 3600

_NATURAL_KEY = ["domain_id", "name", "type", "content"]


def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    elif dialect in ("mysql", "mariadb"):
        from sqlalchemy.dialects.mysql import insert
    else:
        raise NotImplementedError(f"Unsupported database dialect: {dialect}")
    return dialect, insert


def get_domain_id(db: Session, name: str) -> int | None:
    return db.execute(select(PDNSDomain.id).where(PDNSDomain.name == name)).scalar_one_or_none()


def ensure_domain(db: Session, name: str) -> int:
    """Return the id of domain ``name``, creating it if needed."""
    domain_id = get_domain_id(db, name)
    if domain_id is not None:
        return domain_id

    dialect, insert = _dialect_insert(db)
    stmt = insert(PDNSDomain).values(name=name, type=DOMAIN_TYPE, account=DOMAIN_ACCOUNT)
    if dialect in ("mysql", "mariadb"):
        stmt = stmt.prefix_with("IGNORE")
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=["name"])
    db.execute(stmt)

    domain_id = get_domain_id(db, name)
    if domain_id is None:
        raise RuntimeError(f"Failed to create authoritative domain {name}")
    log.info(f"Created authoritative domain {name} (id={domain_id})")
    return domain_id


def upsert_record(
    db: Session,
    domain_id: int,
    name: str,
    rtype: str,
    content: str,
    ttl: int = DEFAULT_TTL,
    prio: int | None = None,
    disabled: bool = False,
) -> int:
    """Insert or update the row keyed by (domain_id, name, type, content).

    A single conflict-resolving statement, so concurrent upserts of the same
    record converge on one row.
    """
    dialect, insert = _dialect_insert(db)
    values = dict(
        domain_id=domain_id,
        name=name,
        type=rtype,
        content=content,
        ttl=ttl,
        prio=prio,
        disabled=bool(disabled),
        auth=True,
    )
    stmt = insert(PDNSRecord).values(**values)

    if dialect in ("mysql", "mariadb"):
        stmt = stmt.on_duplicate_key_update(
            ttl=stmt.inserted.ttl, prio=stmt.inserted.prio, disabled=stmt.inserted.disabled
        )
        db.execute(stmt)
        return db.execute(
            select(PDNSRecord.id).where(
                PDNSRecord.domain_id == domain_id,
                PDNSRecord.name == name,
                PDNSRecord.type == rtype,
                PDNSRecord.content == content,
            )
        ).scalar_one()

    stmt = stmt.on_conflict_do_update(
        index_elements=_NATURAL_KEY,
        set_={
            "ttl": stmt.excluded.ttl,
            "prio": stmt.excluded.prio,
            "disabled": stmt.excluded.disabled,
        },
    ).returning(PDNSRecord.id)
    return db.execute(stmt).scalar_one()


def delete_record(db: Session, domain_id: int, name: str, rtype: str, content: str) -> int:
    """Delete the matching row; returns the number of rows removed."""
    result = db.execute(
        delete(PDNSRecord).where(
            PDNSRecord.domain_id == domain_id,
            PDNSRecord.name == name,
            PDNSRecord.type == rtype,
            PDNSRecord.content == content,
        )
    )
    return result.rowcount or 0


def replace_record(
    db: Session,
    domain_id: int,
    name: str,
    rtype: str,
    old_content: str,
    new_content: str,
    ttl: int = DEFAULT_TTL,
    prio: int | None = None,
    disabled: bool = False,
) -> int:
    """Move a row to new content: delete the old key, upsert the new one."""
    if old_content != new_content:
        delete_record(db, domain_id, name, rtype, old_content)
    return upsert_record(db, domain_id, name, rtype, new_content, ttl, prio, disabled)


def delete_domain(db: Session, name: str) -> bool:
    domain_id = get_domain_id(db, name)
    if domain_id is None:
        return False

    db.execute(delete(PDNSRecord).where(PDNSRecord.domain_id == domain_id))
    db.execute(delete(PDNSDomain).where(PDNSDomain.id == domain_id))
    log.info(f"Deleted authoritative domain {name}")
    return True


def generate_serial(today: date | None = None) -> int:
    """Date-encoded SOA serial: YYYYMMDD followed by the fixed sequence 01."""
    if today is None:
        today = datetime.now(timezone.utc).date()
    return int(today.strftime("%Y%m%d") + "01")


def build_soa_content(domain: str, ns1: str, serial: int) -> str:
    return (
        f"{ns1}. hostmaster.{domain}. {serial} "
        f"{SOA_REFRESH} {SOA_RETRY} {SOA_EXPIRE} {SOA_MINIMUM}"
    )


def seed_defaults(
    db: Session,
    domain_id: int,
    domain: str,
    ns1: str,
    ns2: str,
    primary_ip: str,
) -> None:
    """Create SOA, NS, apex A and www A records for a new zone."""
    soa = build_soa_content(domain, ns1, generate_serial())

    upsert_record(db, domain_id, domain, "SOA", soa, SOA_TTL)
    upsert_record(db, domain_id, domain, "NS", f"{ns1}.", NS_TTL)
    upsert_record(db, domain_id, domain, "NS", f"{ns2}.", NS_TTL)
    upsert_record(db, domain_id, domain, "A", primary_ip, DEFAULT_TTL)
    upsert_record(db, domain_id, f"www.{domain}", "A", primary_ip, DEFAULT_TTL)


def get_zone_records(db: Session, domain: str) -> list[PDNSRecord]:
    domain_id = get_domain_id(db, domain)
    if domain_id is None:
        return []
    return list(
        db.execute(
            select(PDNSRecord)
            .where(PDNSRecord.domain_id == domain_id)
            .order_by(PDNSRecord.type, PDNSRecord.name)
        ).scalars()
    )


def guarded_sync(db: Session, what: str, fn: Callable[[], object]) -> bool:
    """Run ``fn`` and commit; on failure roll back, log and report False.

    Used by the orchestrators: an authoritative-store failure must not undo
    the application change that was already committed.
    """
    try:
        fn()
        db.commit()
        return True
    except SQLAlchemyError:
        db.rollback()
        log.exception(f"PowerDNS sync failed for {what}")
        return False

"""Record mutations and their propagation.

Each operation validates, commits the application row, then mirrors the
change into the authoritative store (failures there are logged, not
raised) and finally regenerates the proxy config when a route changed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from zonekeeper.models.record import Record
from zonekeeper.models.user import User
from zonekeeper.models.zone import Zone
from zonekeeper.services import powerdns
from zonekeeper.services.config_audit import ENTITY_RECORD, record_change, snapshot
from zonekeeper.services.errors import DuplicateError, NotFoundError, RecordValidationError
from zonekeeper.services.proxy import ProxyError, ProxyManager
from zonekeeper.services.validation import (
    PROXYABLE_TYPES,
    RECORD_TYPES,
    build_record_name,
    validate_record_content,
)

log = logging.getLogger(__name__)

DEFAULT_TTL = 3600


@dataclass
class RecordResult:
    record: Record
    authoritative_synced: bool = True
    config_error: str | None = None
    proxy_error: str | None = None


def get_owned_record(db: Session, user: User, record_id: int) -> Record:
    record = (
        db.query(Record)
        .join(Zone, Record.zone_id == Zone.id)
        .filter(Record.id == record_id, Zone.user_id == user.id)
        .one_or_none()
    )
    if record is None:
        raise NotFoundError("Record not found")
    return record


def list_records(db: Session, zone: Zone) -> list[Record]:
    return (
        db.query(Record)
        .filter(Record.zone_id == zone.id)
        .order_by(Record.type, Record.name)
        .all()
    )


def _validate_content(rtype: str, content: str) -> None:
    result = validate_record_content(rtype, content)
    if not result.valid:
        raise RecordValidationError(result.error)


def _check_duplicate(
    db: Session,
    zone_id: int,
    name: str,
    rtype: str,
    content: str,
    exclude_id: int | None = None,
) -> None:
    # Two records with one natural key would share a single authoritative row
    query = db.query(Record.id).filter(
        Record.zone_id == zone_id,
        Record.name == name,
        Record.type == rtype,
        Record.content == content,
    )
    if exclude_id is not None:
        query = query.filter(Record.id != exclude_id)
    if query.first() is not None:
        raise DuplicateError("Record already exists")


def create_record(
    db: Session,
    zone: Zone,
    proxy: ProxyManager,
    *,
    name: str,
    rtype: str,
    content: str,
    ttl: int | None = None,
    priority: int | None = None,
    proxied: bool = False,
    actor_user_id: int | None = None,
) -> RecordResult:
    rtype = (rtype or "").upper()
    content = (content or "").strip()
    if not content:
        raise RecordValidationError("Record content is required")
    if rtype not in RECORD_TYPES:
        raise RecordValidationError("Invalid record type")
    _validate_content(rtype, content)
    if proxied and rtype not in PROXYABLE_TYPES:
        raise RecordValidationError("Only A and AAAA records can be proxied")

    full_name = build_record_name(name, zone.domain)
    _check_duplicate(db, zone.id, full_name, rtype, content)

    record = Record(
        zone=zone,
        name=full_name,
        type=rtype,
        content=content,
        ttl=ttl or DEFAULT_TTL,
        priority=priority,
        disabled=False,
        proxied=False,
    )
    db.add(record)
    db.flush()
    record_change(
        db,
        entity_type=ENTITY_RECORD,
        entity_id=record.id,
        action="create",
        actor_user_id=actor_user_id,
        after_data=snapshot(record),
    )
    db.commit()

    def push() -> None:
        domain_id = powerdns.ensure_domain(db, zone.domain)
        powerdns.upsert_record(
            db, domain_id, record.name, record.type, record.content, record.ttl, record.priority
        )

    result = RecordResult(record, powerdns.guarded_sync(db, f"record {full_name}", push))

    if proxied:
        try:
            toggle = proxy.toggle(db, record.id, True, actor_user_id=actor_user_id)
            result.config_error = toggle.config_error
        except (ProxyError, SQLAlchemyError) as e:
            log.exception(f"Record {record.id} created but proxy could not be enabled")
            result.proxy_error = str(e) if isinstance(e, ProxyError) else "Proxy could not be enabled"
        db.refresh(record)

    return result


def update_record(
    db: Session,
    record: Record,
    proxy: ProxyManager,
    *,
    content: str | None = None,
    ttl: int | None = None,
    priority: int | None = None,
    disabled: bool | None = None,
    actor_user_id: int | None = None,
) -> RecordResult:
    if content is not None:
        content = content.strip()
        if not content:
            raise RecordValidationError("Record content is required")
        _validate_content(record.type, content)
        if content != record.content:
            _check_duplicate(db, record.zone_id, record.name, record.type, content, exclude_id=record.id)

    before = snapshot(record)
    old_served = proxy.served_content(record)
    route_changed = False

    if ttl is not None:
        record.ttl = ttl
    if priority is not None:
        record.priority = priority
    if disabled is not None:
        record.disabled = disabled

    if content is not None and content != record.content:
        if record.proxied:
            # Authoritative answer stays on the proxy IP; only the origin moves
            proxy.update_origin(db, record, content)
            route_changed = True
        else:
            record.content = content

    record_change(
        db,
        entity_type=ENTITY_RECORD,
        entity_id=record.id,
        action="update",
        actor_user_id=actor_user_id,
        before_data=before,
        after_data=snapshot(record),
    )
    db.commit()

    def push() -> None:
        domain_id = powerdns.ensure_domain(db, record.zone.domain)
        powerdns.replace_record(
            db,
            domain_id,
            record.name,
            record.type,
            old_served,
            proxy.served_content(record),
            record.ttl,
            record.priority,
            bool(record.disabled),
        )

    result = RecordResult(record, powerdns.guarded_sync(db, f"record {record.name}", push))
    if route_changed:
        _, result.config_error = proxy.regenerate(db)
    return result


def delete_record(
    db: Session,
    record: Record,
    proxy: ProxyManager,
    actor_user_id: int | None = None,
) -> RecordResult:
    zone = record.zone
    zone_id = record.zone_id
    name = record.name
    rtype = record.type
    was_proxied = bool(record.proxied)

    record_change(
        db,
        entity_type=ENTITY_RECORD,
        entity_id=record.id,
        action="delete",
        actor_user_id=actor_user_id,
        before_data=snapshot(record),
    )
    served = proxy.detach(db, record)
    db.delete(record)
    db.commit()

    def remove() -> None:
        domain_id = powerdns.get_domain_id(db, zone.domain)
        if domain_id is None:
            return
        # A proxy row shared with another proxied record must stay
        if was_proxied and proxy.proxy_row_shared(db, zone_id, name, rtype):
            return
        powerdns.delete_record(db, domain_id, name, rtype, served)

    result = RecordResult(record, powerdns.guarded_sync(db, f"record {name}", remove))
    if was_proxied:
        _, result.config_error = proxy.regenerate(db)
    return result

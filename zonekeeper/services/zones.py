from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from zonekeeper.models.record import Record
from zonekeeper.models.user import User
from zonekeeper.models.zone import Zone
from zonekeeper.services import powerdns
from zonekeeper.services.config_audit import ENTITY_ZONE, record_change, snapshot
from zonekeeper.services.errors import DuplicateError, NotFoundError, RecordValidationError
from zonekeeper.services.proxy import ProxyManager
from zonekeeper.services.validation import normalize_domain, validate_domain_name
from zonekeeper.settings import Settings

log = logging.getLogger(__name__)


@dataclass
class ZoneResult:
    zone: Zone
    authoritative_synced: bool
    config_error: str | None = None


def list_zones(db: Session, user: User) -> list[Zone]:
    return db.query(Zone).filter(Zone.user_id == user.id).order_by(Zone.created_at.desc()).all()


def get_owned_zone(db: Session, user: User, zone_id: int) -> Zone:
    zone = db.query(Zone).filter(Zone.id == zone_id, Zone.user_id == user.id).one_or_none()
    if zone is None:
        raise NotFoundError("Zone not found")
    return zone


def create_zone(db: Session, user: User, domain: str, settings: Settings) -> ZoneResult:
    domain = normalize_domain(domain or "")
    result = validate_domain_name(domain)
    if not result.valid:
        raise RecordValidationError(result.error)

    if db.query(Zone.id).filter(Zone.domain == domain).first() is not None:
        raise DuplicateError("Domain already exists")

    zone = Zone(user_id=user.id, domain=domain, status="active")
    db.add(zone)
    try:
        db.flush()
        record_change(
            db,
            entity_type=ENTITY_ZONE,
            entity_id=zone.id,
            action="create",
            actor_user_id=user.id,
            after_data=snapshot(zone),
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateError("Domain already exists")

    def seed() -> None:
        domain_id = powerdns.ensure_domain(db, domain)
        powerdns.seed_defaults(
            db,
            domain_id,
            domain,
            settings.ns1_hostname,
            settings.ns2_hostname,
            settings.ns_ip_primary,
        )

    synced = powerdns.guarded_sync(db, f"zone {domain}", seed)
    log.info(f"Zone {domain} created by user {user.id} (authoritative synced={synced})")
    return ZoneResult(zone, synced)


def delete_zone(db: Session, zone: Zone, proxy: ProxyManager, actor_user_id: int | None) -> ZoneResult:
    domain = zone.domain
    had_routes = bool(zone.proxy_routes)

    synced = powerdns.guarded_sync(
        db, f"zone {domain}", lambda: powerdns.delete_domain(db, domain)
    )

    record_change(
        db,
        entity_type=ENTITY_ZONE,
        entity_id=zone.id,
        action="delete",
        actor_user_id=actor_user_id,
        before_data=snapshot(zone),
    )
    db.delete(zone)
    db.commit()
    log.info(f"Zone {domain} deleted (authoritative synced={synced})")

    config_error = None
    if had_routes:
        _, config_error = proxy.regenerate(db)
    return ZoneResult(zone, synced, config_error)


def resync_zone(db: Session, zone: Zone, proxy: ProxyManager) -> int:
    """Make the authoritative store answer exactly what the zone's records serve.

    Every record's served content is upserted. For each (name, type) that the
    zone manages, rows matching no record are deleted; SOA and apex NS rows
    are kept. Returns the number of records written.
    """
    records = db.query(Record).filter(Record.zone_id == zone.id).all()
    served = {(r.name, r.type, proxy.served_content(r)) for r in records}
    managed = {(r.name, r.type) for r in records}
    removed = 0
    try:
        domain_id = powerdns.ensure_domain(db, zone.domain)
        for record in records:
            powerdns.upsert_record(
                db,
                domain_id,
                record.name,
                record.type,
                proxy.served_content(record),
                record.ttl,
                record.priority,
                bool(record.disabled),
            )

        for row in powerdns.get_zone_records(db, zone.domain):
            if row.type == "SOA" or (row.type == "NS" and row.name == zone.domain):
                continue
            if (row.name, row.type) in managed and (row.name, row.type, row.content) not in served:
                removed += powerdns.delete_record(db, domain_id, row.name, row.type, row.content)
        db.commit()
    except Exception:
        db.rollback()
        raise

    log.info(f"Resynced {len(records)} records of zone {zone.domain}, removed {removed} stale rows")
    return len(records)

"""Proxied/unproxied state of A and AAAA records.

A proxied record answers with the shared proxy IP in the authoritative
store and has exactly one ProxyRoute pointing at its origin. Transitions
update the application row, the route and the authoritative row in a
single session transaction; the nginx config is regenerated only after
that transaction has committed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from zonekeeper.models.proxy_route import ProxyRoute
from zonekeeper.models.record import Record
from zonekeeper.models.zone import Zone
from zonekeeper.services import powerdns
from zonekeeper.services.config_audit import ENTITY_RECORD, record_change, snapshot
from zonekeeper.services.nginx import (
    ConfigApplyError,
    NginxConfigGenerator,
    RegenerateResult,
    ShellProxyController,
)
from zonekeeper.services.validation import PROXYABLE_TYPES, validate_record_content
from zonekeeper.settings import ProxyConfig, get_settings

log = logging.getLogger(__name__)


class ProxyError(Exception):
    pass


class ProxyValidationError(ProxyError):
    pass


class ProxyTypeError(ProxyValidationError):
    pass


class ProxyRecordNotFound(ProxyError):
    pass


@dataclass(frozen=True)
class ToggleResult:
    record_id: int
    proxied: bool
    displayed_ip: str
    origin_ip: str
    config: RegenerateResult | None = None
    config_error: str | None = None


@dataclass(frozen=True)
class SyncSummary:
    success: int
    failed: int
    removed: int = 0
    config_error: str | None = None


class ProxyManager:
    def __init__(self, config: ProxyConfig, generator: NginxConfigGenerator):
        self.config = config
        self.generator = generator

    @property
    def proxy_ip(self) -> str:
        return self.config.proxy_ip

    def served_content(self, record: Record) -> str:
        """What the authoritative store answers for ``record``."""
        return self.config.proxy_ip if record.proxied else record.content

    def proxy_row_shared(
        self, db: Session, zone_id: int, name: str, rtype: str, exclude_id: int | None = None
    ) -> bool:
        """True when another proxied record still answers via the same proxy row."""
        query = select(Record.id).where(
            Record.zone_id == zone_id,
            Record.name == name,
            Record.type == rtype,
            Record.proxied.is_(True),
        )
        if exclude_id is not None:
            query = query.where(Record.id != exclude_id)
        return db.execute(query.limit(1)).first() is not None

    def regenerate(self, db: Session) -> tuple[RegenerateResult | None, str | None]:
        try:
            return self.generator.regenerate(db), None
        except (ConfigApplyError, OSError) as e:
            log.error(f"Proxy config regeneration failed: {e}")
            return None, str(e)
        except Exception:
            db.rollback()
            log.exception("Proxy config regeneration failed")
            return None, "Proxy configuration could not be generated"

    def toggle(
        self,
        db: Session,
        record_id: int,
        proxied: bool,
        origin_ip: str | None = None,
        actor_user_id: int | None = None,
    ) -> ToggleResult:
        try:
            # Reload the row under the lock even if the session already holds it
            record = db.execute(
                select(Record)
                .where(Record.id == record_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if record is None:
                raise ProxyRecordNotFound("Record not found")
            if record.type not in PROXYABLE_TYPES:
                raise ProxyTypeError("Only A and AAAA records can be proxied")
            origin_ip = (origin_ip or "").strip() or None
            if origin_ip:
                result = validate_record_content(record.type, origin_ip)
                if not result.valid:
                    raise ProxyValidationError(result.error)

            before = snapshot(record)
            domain_id = powerdns.ensure_domain(db, record.zone.domain)
            if proxied:
                self._enable(db, record, domain_id, origin_ip)
            else:
                self._disable(db, record, domain_id)

            record_change(
                db,
                entity_type=ENTITY_RECORD,
                entity_id=record.id,
                action="proxy_enable" if proxied else "proxy_disable",
                actor_user_id=actor_user_id,
                before_data=before,
                after_data=snapshot(record),
            )
            db.commit()
        except (ProxyError, SQLAlchemyError):
            db.rollback()
            raise

        log.info(f"Record {record.id} ({record.name} {record.type}) proxied={record.proxied}")

        config, config_error = self.regenerate(db)
        return ToggleResult(
            record_id=record.id,
            proxied=bool(record.proxied),
            displayed_ip=self.served_content(record),
            origin_ip=record.content,
            config=config,
            config_error=config_error,
        )

    def _enable(self, db: Session, record: Record, domain_id: int, origin_ip: str | None) -> None:
        previous = self.served_content(record)
        if origin_ip:
            origin = origin_ip
        elif record.proxied:
            origin = record.origin_ip or record.content
        else:
            origin = record.content

        record.proxied = True
        record.origin_ip = origin
        record.content = origin

        route = record.proxy_route
        if route is None:
            record.proxy_route = ProxyRoute(
                zone_id=record.zone_id,
                domain=record.name,
                origin_ip=origin,
                origin_port=self.config.origin_port,
            )
        else:
            route.domain = record.name
            route.origin_ip = origin
        db.flush()

        if previous != self.config.proxy_ip:
            powerdns.delete_record(db, domain_id, record.name, record.type, previous)
        powerdns.upsert_record(
            db,
            domain_id,
            record.name,
            record.type,
            self.config.proxy_ip,
            record.ttl,
            record.priority,
            bool(record.disabled),
        )

    def _disable(self, db: Session, record: Record, domain_id: int) -> None:
        was_proxied = bool(record.proxied)
        restore = (record.origin_ip or record.content) if was_proxied else record.content

        record.proxied = False
        record.origin_ip = None
        record.content = restore

        route = record.proxy_route
        if route is not None:
            db.delete(route)
        db.flush()
        db.expire(record, ["proxy_route"])

        if not self.proxy_row_shared(db, record.zone_id, record.name, record.type):
            powerdns.delete_record(db, domain_id, record.name, record.type, self.config.proxy_ip)
        powerdns.upsert_record(
            db,
            domain_id,
            record.name,
            record.type,
            restore,
            record.ttl,
            record.priority,
            bool(record.disabled),
        )

    def update_origin(self, db: Session, record: Record, new_origin: str) -> None:
        """Point a proxied record at a new origin.

        The authoritative row keeps answering with the proxy IP, so only the
        application row and the route change. Runs in the caller's transaction.
        """
        record.origin_ip = new_origin
        record.content = new_origin

        route = record.proxy_route
        if route is None:
            record.proxy_route = ProxyRoute(
                zone_id=record.zone_id,
                domain=record.name,
                origin_ip=new_origin,
                origin_port=self.config.origin_port,
            )
        else:
            route.origin_ip = new_origin

    def detach(self, db: Session, record: Record) -> str:
        """Drop the route of a record that is about to be deleted.

        Returns the authoritative content keyed by the record, which is the
        proxy IP while it is proxied.
        """
        route = record.proxy_route
        if route is not None:
            db.delete(route)
        return self.served_content(record)

    def proxy_status(self, db: Session, zone: Zone) -> list[dict]:
        records = (
            db.query(Record)
            .filter(Record.zone_id == zone.id, Record.type.in_(PROXYABLE_TYPES))
            .order_by(Record.name)
            .all()
        )
        return [
            {
                "id": r.id,
                "name": r.name,
                "type": r.type,
                "content": r.content,
                "proxied": bool(r.proxied),
                "origin_ip": r.origin_ip,
                "displayed_ip": self.served_content(r),
            }
            for r in records
        ]

    def sync_all_proxied(self, db: Session) -> SyncSummary:
        """Re-create missing or stale routes and proxy rows, then regenerate."""
        records = (
            db.query(Record)
            .filter(Record.proxied.is_(True), Record.type.in_(PROXYABLE_TYPES))
            .all()
        )

        success = 0
        failed = 0
        for record in records:
            try:
                origin = record.origin_ip or record.content
                self.update_origin(db, record, origin)
                record.proxy_route.domain = record.name
                domain_id = powerdns.ensure_domain(db, record.zone.domain)
                powerdns.upsert_record(
                    db,
                    domain_id,
                    record.name,
                    record.type,
                    self.config.proxy_ip,
                    record.ttl,
                    record.priority,
                    bool(record.disabled),
                )
                db.commit()
                success += 1
            except SQLAlchemyError:
                db.rollback()
                log.exception(f"Failed to sync proxied record {record.id}")
                failed += 1

        stale = (
            db.query(ProxyRoute)
            .join(Record, ProxyRoute.record_id == Record.id)
            .filter(Record.proxied.is_(False))
            .all()
        )
        for route in stale:
            db.delete(route)
        db.commit()
        if stale:
            log.warning(f"Removed {len(stale)} proxy routes of unproxied records")

        _, config_error = self.regenerate(db)
        return SyncSummary(success, failed, len(stale), config_error)


@lru_cache
def get_proxy_manager() -> ProxyManager:
    config = ProxyConfig.from_settings(get_settings())
    return ProxyManager(config, NginxConfigGenerator(config, ShellProxyController(config)))

"""Audit trail for zone, record and proxy mutations."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.orm import Session

from zonekeeper.models.config_change import ConfigChange
from zonekeeper.models.zone import Zone

ENTITY_ZONE = "zone"
ENTITY_RECORD = "record"


def record_change(
    db: Session,
    *,
    entity_type: str,
    entity_id: int | None,
    action: str,
    actor_user_id: int | None = None,
    before_data: dict[str, Any] | None = None,
    after_data: dict[str, Any] | None = None,
    comment: str | None = None,
) -> ConfigChange:
    """Stage an audit row in the caller's transaction; committing is left to the caller."""
    change = ConfigChange(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_user_id=actor_user_id,
        before_data=before_data,
        after_data=after_data,
        comment=comment,
    )
    db.add(change)
    return change


def get_entity_history(
    db: Session,
    entity_type: str,
    entity_id: int | None = None,
    limit: int = 50,
) -> list[ConfigChange]:
    query = db.query(ConfigChange).filter(ConfigChange.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(ConfigChange.entity_id == entity_id)
    return query.order_by(ConfigChange.id.desc()).limit(limit).all()


def get_recent_changes(db: Session, limit: int = 100) -> list[ConfigChange]:
    return db.query(ConfigChange).order_by(ConfigChange.id.desc()).limit(limit).all()


def get_user_changes(
    db: Session,
    user_id: int,
    entity_type: str | None = None,
    entity_id: int | None = None,
    limit: int = 50,
) -> list[ConfigChange]:
    """Changes a tenant may see: their own, plus any touching a zone they own."""
    owned_zones = sa.select(Zone.id).where(Zone.user_id == user_id)
    query = db.query(ConfigChange).filter(
        sa.or_(
            ConfigChange.actor_user_id == user_id,
            sa.and_(
                ConfigChange.entity_type == ENTITY_ZONE,
                ConfigChange.entity_id.in_(owned_zones),
            ),
        )
    )
    if entity_type:
        query = query.filter(ConfigChange.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(ConfigChange.entity_id == entity_id)
    return query.order_by(ConfigChange.id.desc()).limit(limit).all()


def snapshot(obj: Any, exclude: set[str] | None = None) -> dict[str, Any]:
    """Column values of a mapped object in a JSON-safe form."""
    exclude = exclude or set()

    result: dict[str, Any] = {}
    for attr in sa.inspect(obj).mapper.column_attrs:
        if attr.key in exclude:
            continue
        val = getattr(obj, attr.key, None)
        if isinstance(val, (datetime, date)):
            val = val.isoformat()
        result[attr.key] = val
    return result

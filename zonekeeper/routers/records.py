from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from zonekeeper.db.session import get_db
from zonekeeper.routers.auth import get_current_user, unauthorized
from zonekeeper.services.errors import SyncError
from zonekeeper.services.proxy import ProxyManager, get_proxy_manager
from zonekeeper.services.records import (
    RecordResult,
    create_record,
    delete_record,
    get_owned_record,
    list_records,
    update_record,
)
from zonekeeper.services.zones import get_owned_zone

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/records", tags=["records"])


class RecordCreate(BaseModel):
    zone_id: int
    name: str
    type: str
    content: str
    ttl: int = Field(default=3600, ge=60, le=604800)
    priority: int | None = Field(default=None, ge=0, le=65535)
    proxied: bool = False


class RecordUpdate(BaseModel):
    id: int
    content: str | None = None
    ttl: int | None = Field(default=None, ge=60, le=604800)
    priority: int | None = Field(default=None, ge=0, le=65535)
    disabled: bool | None = None


def _error(e: SyncError) -> JSONResponse:
    return JSONResponse({"error": str(e)}, status_code=e.status_code)


def _response(message: str, result: RecordResult, include_record: bool = True):
    body: dict = {
        "success": True,
        "message": message,
        "authoritative_synced": result.authoritative_synced,
    }
    if include_record:
        body["record"] = result.record.to_dict()
    if result.proxy_error:
        body["proxy_error"] = result.proxy_error
    if result.config_error:
        body.update(error=result.config_error, committed=True)
        return JSONResponse(body, status_code=502)
    return body


@router.get("")
def records_list(zone_id: int, request: Request, db: Session = Depends(get_db)):
    user = get_current_user(request, db)
    if not user:
        return unauthorized()

    try:
        zone = get_owned_zone(db, user, zone_id)
    except SyncError as e:
        return _error(e)

    return {
        "zone": {"id": zone.id, "domain": zone.domain, "status": zone.status},
        "records": [r.to_dict() for r in list_records(db, zone)],
    }


@router.post("")
def records_create(
    payload: RecordCreate,
    request: Request,
    db: Session = Depends(get_db),
    proxy: ProxyManager = Depends(get_proxy_manager),
):
    user = get_current_user(request, db)
    if not user:
        return unauthorized()

    try:
        zone = get_owned_zone(db, user, payload.zone_id)
        result = create_record(
            db,
            zone,
            proxy,
            name=payload.name,
            rtype=payload.type,
            content=payload.content,
            ttl=payload.ttl,
            priority=payload.priority,
            proxied=payload.proxied,
            actor_user_id=user.id,
        )
    except SyncError as e:
        return _error(e)
    except Exception:
        log.exception("Create record error")
        return JSONResponse({"error": "Internal error"}, status_code=500)

    return _response("Record created", result)


@router.put("")
def records_update(
    payload: RecordUpdate,
    request: Request,
    db: Session = Depends(get_db),
    proxy: ProxyManager = Depends(get_proxy_manager),
):
    user = get_current_user(request, db)
    if not user:
        return unauthorized()

    try:
        record = get_owned_record(db, user, payload.id)
        result = update_record(
            db,
            record,
            proxy,
            content=payload.content,
            ttl=payload.ttl,
            priority=payload.priority,
            disabled=payload.disabled,
            actor_user_id=user.id,
        )
    except SyncError as e:
        return _error(e)
    except Exception:
        log.exception("Update record error")
        return JSONResponse({"error": "Internal error"}, status_code=500)

    return _response("Record updated", result)


@router.delete("")
def records_delete(
    id: int,
    request: Request,
    db: Session = Depends(get_db),
    proxy: ProxyManager = Depends(get_proxy_manager),
):
    user = get_current_user(request, db)
    if not user:
        return unauthorized()

    try:
        record = get_owned_record(db, user, id)
        result = delete_record(db, record, proxy, actor_user_id=user.id)
    except SyncError as e:
        return _error(e)
    except Exception:
        log.exception("Delete record error")
        return JSONResponse({"error": "Internal error"}, status_code=500)

    return _response("Record deleted", result, include_record=False)

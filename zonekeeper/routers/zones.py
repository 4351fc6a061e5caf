from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from zonekeeper.db.session import get_db
from zonekeeper.routers.auth import get_current_user, unauthorized
from zonekeeper.services import powerdns
from zonekeeper.services.errors import SyncError
from zonekeeper.services.proxy import ProxyManager, get_proxy_manager
from zonekeeper.services.zones import (
    create_zone,
    delete_zone,
    get_owned_zone,
    list_zones,
    resync_zone,
)
from zonekeeper.settings import get_settings

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/zones", tags=["zones"])


class ZoneCreate(BaseModel):
    domain: str


def _error(e: SyncError) -> JSONResponse:
    return JSONResponse({"error": str(e)}, status_code=e.status_code)


@router.get("")
def zones_list(request: Request, db: Session = Depends(get_db)):
    user = get_current_user(request, db)
    if not user:
        return unauthorized()
    return {"zones": [z.to_dict() for z in list_zones(db, user)]}


@router.post("")
def zones_create(payload: ZoneCreate, request: Request, db: Session = Depends(get_db)):
    user = get_current_user(request, db)
    if not user:
        return unauthorized()

    try:
        result = create_zone(db, user, payload.domain, get_settings())
    except SyncError as e:
        return _error(e)
    except Exception:
        log.exception("Create zone error")
        return JSONResponse({"error": "Internal error"}, status_code=500)

    zone = result.zone
    return {
        "success": True,
        "message": "Zone created",
        "zone": {"id": zone.id, "domain": zone.domain, "status": zone.status},
        "authoritative_synced": result.authoritative_synced,
    }


@router.delete("")
def zones_delete(
    id: int,
    request: Request,
    db: Session = Depends(get_db),
    proxy: ProxyManager = Depends(get_proxy_manager),
):
    user = get_current_user(request, db)
    if not user:
        return unauthorized()

    try:
        zone = get_owned_zone(db, user, id)
        result = delete_zone(db, zone, proxy, actor_user_id=user.id)
    except SyncError as e:
        return _error(e)
    except Exception:
        log.exception("Delete zone error")
        return JSONResponse({"error": "Internal error"}, status_code=500)

    body = {
        "success": True,
        "message": "Zone deleted",
        "authoritative_synced": result.authoritative_synced,
    }
    if result.config_error:
        body.update(error=result.config_error, committed=True)
        return JSONResponse(body, status_code=502)
    return body


@router.get("/authoritative")
def zones_authoritative(id: int, request: Request, db: Session = Depends(get_db)):
    user = get_current_user(request, db)
    if not user:
        return unauthorized()

    try:
        zone = get_owned_zone(db, user, id)
    except SyncError as e:
        return _error(e)

    rows = powerdns.get_zone_records(db, zone.domain)
    return {"zone": zone.domain, "records": [r.to_dict() for r in rows]}


@router.post("/resync")
def zones_resync(
    id: int,
    request: Request,
    db: Session = Depends(get_db),
    proxy: ProxyManager = Depends(get_proxy_manager),
):
    user = get_current_user(request, db)
    if not user:
        return unauthorized()

    try:
        zone = get_owned_zone(db, user, id)
        count = resync_zone(db, zone, proxy)
    except SyncError as e:
        return _error(e)
    except Exception:
        log.exception("Resync zone error")
        return JSONResponse({"error": "Authoritative resync failed"}, status_code=500)

    return {"success": True, "message": f"Resynced {count} records", "count": count}

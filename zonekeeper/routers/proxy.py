from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from zonekeeper.db.session import get_db
from zonekeeper.routers.auth import get_current_user, unauthorized
from zonekeeper.services.errors import SyncError
from zonekeeper.services.proxy import (
    ProxyManager,
    ProxyRecordNotFound,
    ProxyValidationError,
    get_proxy_manager,
)
from zonekeeper.services.records import get_owned_record
from zonekeeper.services.zones import get_owned_zone

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/proxy", tags=["proxy"])


class ProxyToggle(BaseModel):
    record_id: int
    proxied: bool
    origin_ip: str | None = None


@router.post("")
def proxy_toggle(
    payload: ProxyToggle,
    request: Request,
    db: Session = Depends(get_db),
    proxy: ProxyManager = Depends(get_proxy_manager),
):
    user = get_current_user(request, db)
    if not user:
        return unauthorized()

    try:
        get_owned_record(db, user, payload.record_id)
        result = proxy.toggle(
            db,
            payload.record_id,
            payload.proxied,
            origin_ip=payload.origin_ip,
            actor_user_id=user.id,
        )
    except SyncError as e:
        return JSONResponse({"error": str(e)}, status_code=e.status_code)
    except ProxyRecordNotFound as e:
        return JSONResponse({"error": str(e)}, status_code=404)
    except ProxyValidationError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    except Exception:
        log.exception("Proxy toggle error")
        return JSONResponse({"error": "Failed to update proxy status"}, status_code=500)

    data = {
        "proxied": result.proxied,
        "displayed_ip": result.displayed_ip,
        "origin_ip": result.origin_ip,
    }
    if result.config_error:
        return JSONResponse(
            {"error": result.config_error, "committed": True, "data": data},
            status_code=502,
        )

    return {
        "success": True,
        "message": "Proxy enabled" if result.proxied else "Proxy disabled",
        "data": data,
    }


@router.get("")
def proxy_status(
    zone_id: int,
    request: Request,
    db: Session = Depends(get_db),
    proxy: ProxyManager = Depends(get_proxy_manager),
):
    user = get_current_user(request, db)
    if not user:
        return unauthorized()

    try:
        zone = get_owned_zone(db, user, zone_id)
    except SyncError as e:
        return JSONResponse({"error": str(e)}, status_code=e.status_code)

    return {"proxy_ip": proxy.proxy_ip, "records": proxy.proxy_status(db, zone)}


@router.put("")
def proxy_regenerate(
    request: Request,
    db: Session = Depends(get_db),
    proxy: ProxyManager = Depends(get_proxy_manager),
):
    user = get_current_user(request, db)
    if not user:
        return unauthorized()

    result, error = proxy.regenerate(db)
    if error:
        return JSONResponse({"error": error}, status_code=502)

    return {
        "success": True,
        "message": "Proxy configuration regenerated",
        "routes": result.route_count,
        "path": result.path,
    }


@router.post("/sync")
def proxy_sync(
    request: Request,
    db: Session = Depends(get_db),
    proxy: ProxyManager = Depends(get_proxy_manager),
):
    user = get_current_user(request, db)
    if not user:
        return unauthorized()

    try:
        summary = proxy.sync_all_proxied(db)
    except Exception:
        log.exception("Proxy sync error")
        return JSONResponse({"error": "Internal error"}, status_code=500)

    body = {
        "success": True,
        "synced": summary.success,
        "failed": summary.failed,
        "removed": summary.removed,
    }
    if summary.config_error:
        body.update(error=summary.config_error, committed=True)
        return JSONResponse(body, status_code=502)
    return body

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from zonekeeper.db.session import get_db
from zonekeeper.routers.auth import get_current_user, unauthorized
from zonekeeper.services.config_audit import get_user_changes

router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.get("")
def audit_history(
    request: Request,
    entity_type: str | None = Query(None),
    entity_id: int | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    user = get_current_user(request, db)
    if not user:
        return unauthorized()

    changes = get_user_changes(db, user.id, entity_type, entity_id, limit=limit)
    return {"changes": [c.to_dict() for c in changes]}

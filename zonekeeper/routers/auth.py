from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from zonekeeper.db.session import get_db
from zonekeeper.models.user import User
from zonekeeper.security import verify_password

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: str
    password: str


def get_current_user(request: Request, db: Session) -> User | None:
    user_id = request.session.get("user_id")
    if not user_id:
        return None
    return db.get(User, int(user_id))


def unauthorized() -> JSONResponse:
    return JSONResponse({"error": "Unauthorized"}, status_code=401)


@router.post("/login")
def login(payload: LoginRequest, request: Request, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    user = db.query(User).filter(User.email == email).one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        return JSONResponse({"error": "Invalid credentials"}, status_code=401)

    user.last_login = datetime.now(timezone.utc)
    db.commit()

    request.session["user_id"] = user.id
    return {"success": True, "user": {"id": user.id, "email": user.email, "name": user.name}}


@router.post("/logout")
def logout(request: Request):
    request.session.clear()
    return {"success": True}


@router.get("/me")
def me(request: Request, db: Session = Depends(get_db)):
    user = get_current_user(request, db)
    if not user:
        return unauthorized()
    return {"id": user.id, "email": user.email, "name": user.name}

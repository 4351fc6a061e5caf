from __future__ import annotations

import logging
import os
import sys
from contextlib import asynccontextmanager

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s [%(name)s] %(message)s",
    stream=sys.stdout,
)

from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from zonekeeper.routers.audit import router as audit_router
from zonekeeper.routers.auth import router as auth_router
from zonekeeper.routers.proxy import router as proxy_router
from zonekeeper.routers.records import router as records_router
from zonekeeper.routers.zones import router as zones_router
from zonekeeper.security import hash_password
from zonekeeper.settings import get_settings

settings = get_settings()
log = logging.getLogger(__name__)

INSECURE_DEFAULTS = {"change-me", "password", "admin", "secret", ""}


def validate_security_settings() -> None:
    """Refuse to start with default secrets unless explicitly allowed."""
    allow_insecure = os.environ.get("ZONEKEEPER_ALLOW_INSECURE", "").lower() == "true"

    issues: list[str] = []

    if settings.admin_password in INSECURE_DEFAULTS:
        issues.append("ADMIN_PASSWORD is set to a default/weak value")
    if settings.admin_secret_key in INSECURE_DEFAULTS:
        issues.append("ADMIN_SECRET_KEY is set to a default/weak value")

    if not issues:
        return

    msg = "\n".join(f"  - {issue}" for issue in issues)
    if allow_insecure:
        log.warning(
            f"SECURITY WARNING (bypassed via ZONEKEEPER_ALLOW_INSECURE):\n{msg}\n"
            "This is UNSAFE for production use!"
        )
    else:
        log.error(
            f"SECURITY ERROR - Cannot start with insecure configuration:\n{msg}\n\n"
            "Set ADMIN_PASSWORD and ADMIN_SECRET_KEY to secure random values.\n\n"
            "To bypass (DEVELOPMENT ONLY): Set ZONEKEEPER_ALLOW_INSECURE=true"
        )
        sys.exit(1)


def bootstrap_admin() -> None:
    # Best-effort: migrations create the users table; if it is missing, skip.
    from sqlalchemy import text

    from zonekeeper.db.session import engine

    with engine.begin() as conn:
        try:
            conn.execute(text("SELECT 1 FROM users LIMIT 1"))
        except Exception:
            return

        email = settings.admin_email.strip().lower()
        existing = conn.execute(
            text("SELECT id FROM users WHERE email = :e"),
            {"e": email},
        ).fetchone()
        if existing is None:
            conn.execute(
                text(
                    "INSERT INTO users (email, password_hash, name, is_verified) "
                    "VALUES (:e, :p, :n, :v)"
                ),
                {
                    "e": email,
                    "p": hash_password(settings.admin_password),
                    "n": settings.admin_name,
                    "v": True,
                },
            )
            log.info(f"Created bootstrap admin {email}")


@asynccontextmanager
async def lifespan(_: FastAPI):
    from zonekeeper.services.scheduler import start_scheduler, stop_scheduler

    validate_security_settings()
    bootstrap_admin()
    start_scheduler()
    yield
    stop_scheduler()


app = FastAPI(title="Zonekeeper", version=settings.zk_version, lifespan=lifespan)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.admin_secret_key,
    same_site="lax",
    https_only=False,
)

app.include_router(auth_router)
app.include_router(zones_router)
app.include_router(records_router)
app.include_router(proxy_router)
app.include_router(audit_router)


@app.get("/health")
def health():
    return {"ok": True}

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler  # type: ignore[import-untyped]
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore[import-untyped]

from zonekeeper.db.session import SessionLocal
from zonekeeper.services.proxy import get_proxy_manager
from zonekeeper.settings import get_settings

log = logging.getLogger(__name__)

_scheduler: BackgroundScheduler | None = None


def reconcile_proxies_job() -> None:
    db = SessionLocal()
    try:
        summary = get_proxy_manager().sync_all_proxied(db)
        log.info(
            f"Proxy reconcile job: {summary.success} synced, {summary.failed} failed, "
            f"{summary.removed} stale routes removed"
        )
        if summary.config_error:
            log.warning(f"Proxy reconcile job could not apply config: {summary.config_error}")
    except Exception as e:
        log.error(f"Proxy reconcile job failed: {e}")
        db.rollback()
    finally:
        db.close()


def start_scheduler() -> None:
    global _scheduler

    if _scheduler is not None:
        return

    interval = get_settings().resync_interval_minutes
    if interval <= 0:
        log.info("Proxy reconcile job disabled")
        return

    _scheduler = BackgroundScheduler(timezone="UTC")
    _scheduler.add_job(
        reconcile_proxies_job,
        IntervalTrigger(minutes=interval),
        id="proxy_reconcile",
        name="Reconcile proxy routes",
        replace_existing=True,
    )
    _scheduler.start()
    log.info("Background scheduler started")


def stop_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        log.info("Background scheduler stopped")

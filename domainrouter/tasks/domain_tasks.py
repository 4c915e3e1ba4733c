import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from domainrouter.celery_app import celery_app
from domainrouter.config import settings
from domainrouter.crud import crud_tenant
from domainrouter.db.session import SessionLocal

logger = logging.getLogger(__name__)


@celery_app.task
def reset_stale_verifications(stale_after: Optional[int] = None) -> int:
    """
    Periodic sweep: tenants stuck in "verifying" longer than
    VERIFICATION_STALE_AFTER seconds are moved to "failed" (SSL back to
    "pending") so the owner can retry. Each reset is recorded in the
    verification history with error_message STALE.
    """
    stale_after = stale_after if stale_after is not None else settings.VERIFICATION_STALE_AFTER
    now = datetime.now(timezone.utc)
    stale_before = now - timedelta(seconds=stale_after)

    db = SessionLocal()
    try:
        count = crud_tenant.fail_stale_verifications(
            db, stale_before=stale_before, expected_value=settings.cname_target, now=now,
        )
    finally:
        db.close()

    if count:
        logger.warning("Reset %d stale domain verification(s) older than %ds", count, stale_after)
    return count

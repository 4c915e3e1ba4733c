import logging

from domainrouter.config import settings
from domainrouter.core.security import create_access_token
from domainrouter.crud import crud_tenant
from domainrouter.db.session import SessionLocal

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_SLUG = "demo-lodge"


def init_db() -> None:
    db = SessionLocal()
    try:
        tenant = crud_tenant.get_by_slug(db, DEMO_SLUG)
        if not tenant:
            logger.info("Creating demo property")
            tenant = crud_tenant.create(db, name="Demo Lodge", business_name="Demo Lodge", slug=DEMO_SLUG)
        else:
            logger.info("Demo property already exists")

        token = create_access_token("demo-owner", tenant_id=str(tenant.id), role="owner")
        logger.info("Property %s → https://%s.%s", tenant.id, tenant.slug, settings.apex_domain)
        logger.info("Owner token: %s", token)
    finally:
        db.close()


if __name__ == "__main__":
    init_db()

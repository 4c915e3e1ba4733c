"""Create all database tables (development shortcut for `alembic upgrade head`)"""
import logging
from domainrouter.db.session import engine
# Import all models so they are registered with Base.metadata
from domainrouter.models import Base

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

def create_tables():
    logger.info("Creating all database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("All tables created successfully!")

if __name__ == "__main__":
    create_tables()

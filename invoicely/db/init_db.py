"""Create all tables. Run on app startup."""
import logging

from invoicely.db.base import Base
from invoicely.db.session import engine
from invoicely.models import user, client, product, invoice  # noqa: F401 - register models

logger = logging.getLogger(__name__)


def init_db():
    Base.metadata.create_all(bind=engine)
    logger.info(f"Database ready ({engine.url.get_backend_name()})")


def drop_db():
    """Drop every table. Used by tests and local resets only."""
    Base.metadata.drop_all(bind=engine)

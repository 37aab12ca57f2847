# init_db.py
"""
Initialize the incident database tables.
"""

from sqlalchemy import inspect

from anchor_incidents.database import init_db, engine
from anchor_incidents.utils.logging import get_logger

logger = get_logger(__name__)

if __name__ == "__main__":
    logger.info("database_init_started", url=engine.url.render_as_string(hide_password=True))
    init_db()

    inspector = inspect(engine)
    logger.info("database_init_completed", tables=inspector.get_table_names())

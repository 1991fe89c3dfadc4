import logging

import psycopg2
from psycopg2 import sql
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT
from sqlalchemy.engine import make_url

from ticketbox.core.config import settings

logger = logging.getLogger(__name__)


def create_database():
    """Create the PostgreSQL database named in DATABASE_URL if it is missing."""
    url = make_url(settings.DATABASE_URL)
    if not url.drivername.startswith("postgresql"):
        return

    try:
        # Connect to the maintenance database to check/create the target
        con = psycopg2.connect(
            user=url.username,
            password=url.password,
            host=url.host,
            port=url.port or 5432,
            dbname="postgres",
        )
        con.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
        cur = con.cursor()

        cur.execute(
            "SELECT 1 FROM pg_catalog.pg_database WHERE datname = %s", (url.database,)
        )
        if cur.fetchone():
            logger.info("Database %s already exists.", url.database)
        else:
            logger.info("Database %s does not exist. Creating...", url.database)
            cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(url.database)))
            logger.info("Database %s created.", url.database)

        cur.close()
        con.close()
    except psycopg2.Error:
        # The target may already exist and the maintenance DB be unreachable;
        # create_all() will surface a real connection problem.
        logger.exception("Could not verify database %s", url.database)


if __name__ == "__main__":
    logging.basicConfig(level=settings.LOG_LEVEL)
    create_database()

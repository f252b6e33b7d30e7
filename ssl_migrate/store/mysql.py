"""PyMySQL connection factory."""
from __future__ import annotations

import pymysql

from ssl_migrate.config import DatabaseConfig
from ssl_migrate.errors import PreconditionError
from ssl_migrate.logger import get_logger

logger = get_logger("store")


def connect(db: DatabaseConfig) -> pymysql.connections.Connection:
    """Open a read-mostly connection with explicit timeouts."""
    try:
        conn = pymysql.connect(
            host=db.host,
            port=db.port,
            user=db.user,
            password=db.password.get_secret_value(),
            database=db.name,
            charset=db.charset,
            connect_timeout=db.connect_timeout,
            read_timeout=db.read_timeout,
            write_timeout=db.write_timeout,
            autocommit=True,
        )
    except pymysql.MySQLError as exc:
        raise PreconditionError(f"Failed to connect to MySQL {db.host}:{db.port}/{db.name}: {exc}") from exc
    logger.debug("Connected to %s:%s/%s", db.host, db.port, db.name)
    return conn

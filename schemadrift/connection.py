"""
connection
==========

MySQL connection helpers.

The rest of the codebase treats database access as:

- input: :class:`~schemadrift.connection.MySqlTarget`
- output: a SQLAlchemy :class:`~sqlalchemy.engine.Engine`

Connection settings are always passed in explicitly as a target; nothing in
this package keeps connection state at module level.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

DRIVER = "mysql+pymysql"
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10


@dataclass(frozen=True)
class MySqlTarget:
    """MySQL server and database to introspect.

    Parameters
    ----------
    host:
        Server host name or address.
    port:
        Server port.
    user:
        Account name.
    password:
        Account password (may be empty).
    database:
        Database (schema) whose structure is captured.
    label:
        Human label for logs and reporting.
    """

    host: str
    port: int
    user: str
    password: str
    database: str
    label: str = "current"

    def describe(self) -> str:
        """Return a human-readable description with the password masked."""
        secret = "***" if self.password else ""
        return f"{self.label.upper()}: mysql://{self.user}:{secret}@{self.host}:{self.port}/{self.database}"


def build_url(target: MySqlTarget) -> URL:
    """Build the SQLAlchemy URL for *target*.

    Special characters in the password are escaped by SQLAlchemy.
    """
    return URL.create(
        DRIVER,
        username=target.user,
        password=target.password or None,
        host=target.host,
        port=target.port,
        database=target.database,
    )


def create_engine_for(target: MySqlTarget, connect_timeout: int | None = None) -> Engine:
    """Create an engine for *target*.

    Parameters
    ----------
    target:
        The server/database to connect to.
    connect_timeout:
        Seconds to wait for the TCP connection. Defaults to 10 seconds.
    """
    if connect_timeout is None:
        connect_timeout = DEFAULT_CONNECT_TIMEOUT_SECONDS

    logger.debug("creating engine for %s", target.describe())
    return create_engine(
        build_url(target),
        pool_pre_ping=True,
        connect_args={"connect_timeout": connect_timeout},
    )


def connection_test(target: MySqlTarget) -> tuple[bool, str]:
    """Perform a lightweight connectivity test.

    Returns
    -------
    tuple[bool, str]
        ``(ok, message)`` where message is ``version<TAB>database<TAB>user``
        on success, or the error text on failure.
    """
    engine = create_engine_for(target)
    try:
        with engine.connect() as conn:
            row = conn.execute(text("SELECT VERSION(), DATABASE(), CURRENT_USER()")).one()
    except SQLAlchemyError as exc:
        logger.warning("connection test failed for %s: %s", target.describe(), exc)
        return False, str(exc).strip()
    finally:
        engine.dispose()
    return True, "\t".join(str(v) for v in row)

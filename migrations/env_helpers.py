"""Database URL helpers for Alembic migrations.

Kept out of env.py so they can be tested without triggering alembic.context
at import time.
"""

from __future__ import annotations

import os
from urllib.parse import quote_plus, urlsplit, urlunsplit

from psycopg2.extensions import parse_dsn

DRIVER_SCHEME = "postgresql+psycopg2"


def libpq_dsn_to_url(dsn: str) -> str:
    """Convert a libpq key=value DSN to a SQLAlchemy URL.

    Unix socket hosts (host=/var/run/postgresql) are passed as a ?host= query
    parameter; TCP hosts default to port 5432.
    """
    params = parse_dsn(dsn)
    password = params.get("password") or os.environ.get("DB_PASSWORD", "")

    credentials = quote_plus(params.get("user", ""))
    if password:
        credentials = f"{credentials}:{quote_plus(password)}"
    dbname = quote_plus(params.get("dbname", ""))
    host = params.get("host", "localhost")

    if host.startswith("/"):
        return f"{DRIVER_SCHEME}://{credentials}@/{dbname}?host={quote_plus(host)}"
    port = params.get("port", "5432")
    return f"{DRIVER_SCHEME}://{credentials}@{host}:{port}/{dbname}"


def _normalize_url(url: str) -> str:
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            url = f"{DRIVER_SCHEME}://" + url[len(prefix):]
            break

    db_password = os.environ.get("DB_PASSWORD", "")
    parts = urlsplit(url)
    if not db_password or parts.password or not parts.hostname:
        return url

    netloc = f"{quote_plus(parts.username or '')}:{quote_plus(db_password)}@{parts.hostname}"
    if parts.port:
        netloc += f":{parts.port}"
    return urlunsplit(parts._replace(netloc=netloc))


def database_url() -> str:
    """SQLAlchemy URL for DATABASE_URL (URL or libpq DSN form).

    Raises:
        RuntimeError: If DATABASE_URL is not set.
    """
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is required to run migrations")
    if "://" in url:
        return _normalize_url(url)
    return libpq_dsn_to_url(url)

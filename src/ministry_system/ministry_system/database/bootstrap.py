"""Schema setup and tenant registration for the MySQL partition store."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable

import mysql.connector

from .connection import DBConfig

logger = logging.getLogger(__name__)

# schema.sql names its own database; the configured one is used instead.
_DB_DIRECTIVE_RE = re.compile(r"(?im)^\s*(?:CREATE\s+DATABASE|USE)\b[^;]*;\s*$")
_STATEMENT_END_RE = re.compile(r";\s*(?:\n|$)")


def _open(db_config: dict, *, with_database: bool = True):
    cfg = DBConfig.from_dict({"host": "localhost", "user": "root", "password": "", **db_config})
    return mysql.connector.connect(
        host=cfg.host,
        port=cfg.port,
        user=cfg.user,
        password=cfg.password,
        use_pure=True,
        **({"database": cfg.database} if with_database else {}),
    )


def split_statements(sql: str) -> list[str]:
    """Split a DDL script on statement-ending semicolons.

    Only meant for schema files: a ``;`` followed by a newline inside a
    string literal would be split too.
    """

    body = _DB_DIRECTIVE_RE.sub("", sql)
    lines = [ln for ln in body.splitlines() if not ln.lstrip().startswith("--")]
    return [s.strip() for s in _STATEMENT_END_RE.split("\n".join(lines)) if s.strip()]


def ensure_database_exists(db_config: dict) -> None:
    name = str(db_config["database"])
    conn = _open(db_config, with_database=False)
    try:
        cur = conn.cursor()
        cur.execute(f"CREATE DATABASE IF NOT EXISTS `{name}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci")
        conn.commit()
    finally:
        conn.close()


def apply_schema(db_config: dict, *, schema_path: str | Path) -> None:
    ensure_database_exists(db_config)
    statements = split_statements(Path(schema_path).read_text(encoding="utf-8"))

    conn = _open(db_config)
    try:
        cur = conn.cursor()
        for stmt in statements:
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()
    logger.info("Applied %d schema statement(s) to %s", len(statements), db_config.get("database"))


def register_tenants(
    db_config: dict,
    tenant_ids: Iterable[str],
    *,
    ministry_tenant_ids: Iterable[str] = (),
) -> int:
    """Insert tenant partitions; ministry tenants are hidden from discovery."""

    rows = [(t, t, 0) for t in tenant_ids if t]
    rows += [(t, t, 1) for t in ministry_tenant_ids if t]
    if not rows:
        return 0

    conn = _open(db_config)
    try:
        cur = conn.cursor()
        cur.executemany(
            """
            INSERT INTO tenants(tenant_id, name, is_ministry_tenant)
            VALUES(%s,%s,%s)
            ON DUPLICATE KEY UPDATE is_ministry_tenant=VALUES(is_ministry_tenant)
            """,
            rows,
        )
        conn.commit()
    finally:
        conn.close()
    return len(rows)


def list_tables(db_config: dict) -> list[str]:
    conn = _open(db_config)
    try:
        cur = conn.cursor()
        cur.execute("SHOW TABLES")
        return [row[0] for row in cur.fetchall()]
    finally:
        conn.close()

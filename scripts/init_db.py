from __future__ import annotations

import importlib
import os
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.ministry_system.ministry_system.database.bootstrap import apply_schema, list_tables, register_tenants


def _csv_env(name: str) -> list[str]:
    return [part.strip() for part in os.getenv(name, "").split(",") if part.strip()]


def main() -> None:
    """Apply schema.sql, then register the tenants named in TENANTS / MINISTRY_TENANTS."""

    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    db_config = dict(settings.DB_CONFIG)

    apply_schema(db_config, schema_path=REPO_ROOT / "database" / "schema.sql")
    registered = register_tenants(
        db_config, _csv_env("TENANTS"), ministry_tenant_ids=_csv_env("MINISTRY_TENANTS")
    )
    print(
        f"OK: {db_config.get('user')}@{db_config.get('host')}:{db_config.get('port', 3306)}/{db_config.get('database')} "
        f"tables={len(list_tables(db_config))} tenants_registered={registered}"
    )


if __name__ == "__main__":
    main()

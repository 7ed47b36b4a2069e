"""Example: follow a ministry live from a script (no Flask).

Usage: python -m examples.example_usage "Choir" <current_tenant_id> [home_tenant_id]
"""

import asyncio
import importlib
import logging
import sys

from config import get_settings_module

from src.ministry_system.ministry_system.container import build_container


async def follow(ministry: str, current_tenant_id: str, home_tenant_id: str | None, seconds: float) -> None:
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG, settings=settings)

    def on_update(aggregate):
        print(
            f"{len(aggregate.members)} members, {len(aggregate.attendance_records)} attendance records "
            f"from {aggregate.source_tenants}"
        )

    session = container.sync_service.start_ministry_session(ministry, home_tenant_id, current_tenant_id, on_update)
    try:
        await asyncio.sleep(seconds)
    finally:
        session.stop()


def main():
    logging.basicConfig(level=logging.INFO)
    ministry, current = sys.argv[1], sys.argv[2]
    home = sys.argv[3] if len(sys.argv) > 3 else None
    asyncio.run(follow(ministry, current, home, seconds=30.0))


if __name__ == "__main__":
    main()

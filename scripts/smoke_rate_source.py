"""Smoke script for rate source switching against a local database.

Sequence:
 1. Fetch rates from the configured URL (network).
 2. Switch to an inline table and read rates again (no network).
 3. Switch back to URL mode; the session cache is cleared.
"""

import asyncio
import sys
from pprint import pprint

from cost_manager.core.config import get_settings
from cost_manager.core.errors import CostManagerError
from cost_manager.db.dal import Database
from cost_manager.db.migrate import apply_migrations
from cost_manager.services.rates.provider import RateProvider

INLINE = {"USD": 1, "GBP": 0.79, "EURO": 0.92, "ILS": 3.7}


async def run() -> int:
    settings = get_settings()
    apply_migrations(settings.db_path)
    provider = RateProvider(
        Database(settings.db_path),
        default_url=settings.default_rates_url,
        timeout=settings.http_timeout_seconds,
    )
    output = {}
    try:
        output["url"] = (await provider.get_active_rates()).as_dict()
    except CostManagerError as e:
        output["url_error"] = e.message

    await provider.set_source("inline", INLINE)
    output["inline"] = (await provider.get_active_rates()).as_dict()

    source = await provider.set_source("url", None)
    output["back_to_url"] = source.as_dict()
    output["cache_after_switch"] = provider.cached_rates()
    pprint(output)
    return 0 if "url" in output else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(run()))

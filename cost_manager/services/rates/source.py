"""Persisted rate source configuration backed by the metadata table.

Metadata keys:
  - rates_source: 'url' | 'inline'
  - rates_url: configured fetch URL (falls back to the default when unset)
  - rates_inline: JSON object {"USD":..,"GBP":..,"EURO":..,"ILS":..}

Loading is tolerant: a missing or unreadable inline table loads as ``None``
and is reported when the provider is actually asked for rates.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from cost_manager.core.errors import ValidationError
from cost_manager.db.dal import Database
from cost_manager.models.rates import RateTable

SOURCE_KEY = "rates_source"
URL_KEY = "rates_url"
INLINE_KEY = "rates_inline"


class SourceMode(str, Enum):
    URL = "url"
    INLINE = "inline"

    @classmethod
    def parse(cls, value: object) -> "SourceMode":
        if isinstance(value, cls):
            return value
        # 'inline-json' is the name older exports and clients used
        if value in ("inline", "inline-json"):
            return cls.INLINE
        if value == "url":
            return cls.URL
        raise ValidationError(f"unsupported rate source mode {value!r}", field="mode")


@dataclass(frozen=True)
class RateSource:
    mode: SourceMode
    url: str
    inline: Optional[RateTable] = None
    default_url: str = ""

    def as_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "url": self.url,
            "default_url": self.default_url,
            "inline": self.inline.as_dict() if self.inline is not None else None,
        }


def _parse_inline(raw: Optional[str]) -> Optional[RateTable]:
    if not raw:
        return None
    try:
        return RateTable(json.loads(raw))
    except (ValueError, ValidationError):
        return None


def load_source(db: Database, default_url: str) -> RateSource:
    data = db.get_metadata((SOURCE_KEY, URL_KEY, INLINE_KEY))
    mode = (
        SourceMode.INLINE
        if data.get(SOURCE_KEY) in ("inline", "inline-json")
        else SourceMode.URL
    )
    return RateSource(
        mode=mode,
        url=data.get(URL_KEY) or default_url,
        inline=_parse_inline(data.get(INLINE_KEY)),
        default_url=default_url,
    )


def save_url_source(db: Database, url: str) -> None:
    db.set_metadata({SOURCE_KEY: SourceMode.URL.value, URL_KEY: url})


def save_inline_source(db: Database, table: RateTable) -> None:
    db.set_metadata(
        {
            SOURCE_KEY: SourceMode.INLINE.value,
            INLINE_KEY: json.dumps(table.as_dict(), separators=(",", ":")),
        }
    )

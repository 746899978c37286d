"""Rate acquisition: persisted source config, session cache, conversion."""

from .conversion import convert, require_rate
from .provider import RateProvider
from .source import RateSource, SourceMode

__all__ = ["convert", "require_rate", "RateProvider", "RateSource", "SourceMode"]

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RATES_URL = (
    "https://raw.githubusercontent.com/Dor11126/"
    "Cost-Manager-Front-End-exchange-rates/main/rates.json"
)


class Settings(BaseSettings):
    """Application settings loaded from environment with defaults.

    Environment variable mapping follows pydantic's rules (e.g., APP_NAME, DEBUG,
    DATA_DIR, DB_FILENAME, DEFAULT_RATES_URL, HTTP_TIMEOUT_SECONDS).
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Basic app metadata
    app_name: str = "Cost Manager"
    debug: bool = False
    version: str = "0.1.0"

    # Data & persistence
    data_dir: Path = Path("data")
    db_filename: str = "costs.sqlite3"
    db_path: Optional[Path] = None  # derived if not provided

    # Exchange rates
    default_rates_url: str = DEFAULT_RATES_URL
    http_timeout_seconds: float = 5.0
    http_retries: int = 1

    # Warm the rate table on startup (URL mode fetches once per process)
    prime_rates_on_startup: bool = True

    def init_post_load(self) -> None:
        """Finalize derived fields and ensure directories exist."""
        if self.db_path is None:
            self.db_path = self.data_dir / self.db_filename
        self.db_path = Path(self.db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        if self.http_timeout_seconds <= 0:
            raise ValueError("http_timeout_seconds must be positive")
        if self.http_retries < 0:
            raise ValueError("http_retries cannot be negative")


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    settings.init_post_load()
    return settings

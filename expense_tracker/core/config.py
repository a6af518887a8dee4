from functools import lru_cache
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

from expense_tracker.models.constants import CURRENCIES

PROVIDER_DEFAULT_URLS = {
    "exchangerate-api": "https://v6.exchangerate-api.com/v6",
    "exchangerate-api-open": "https://api.exchangerate-api.com/v4/latest",
    "static": "",
}
CONVERSION_STRATEGIES = {"direct", "triangulated"}


class Settings(BaseSettings):
    """Application settings loaded from environment with defaults.

    Environment variable mapping follows pydantic's rules (e.g., APP_NAME, DEBUG,
    DB_PATH, EXCHANGE_RATE_PROVIDER, CURRENCY_API_KEY, RATES_CACHE_TTL_SECONDS).
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Basic app metadata
    app_name: str = "Expense Tracker"
    debug: bool = False
    version: str = "0.1.0"

    # Data & persistence
    data_dir: Path = Path("data")
    db_filename: str = "expenses.sqlite3"
    db_path: Optional[Path] = None  # derived if not provided

    # Exchange rates / caching
    # Allowed: 'exchangerate-api' (keyed v6), 'exchangerate-api-open' (keyless v4), 'static'
    exchange_rate_provider: str = "exchangerate-api"
    exchange_api_base_url: Optional[str] = None  # provider default when unset
    currency_api_key: str = ""
    rates_cache_ttl_seconds: int = 300  # server tier: 5 minutes
    http_timeout_seconds: float = 5.0
    http_retries: int = 1

    # Conversion
    conversion_strategy: str = "direct"
    reference_currency: str = "USD"
    default_currency: str = "USD"

    # Identity (auth is handled upstream; the user id arrives in a header)
    default_user_id: str = "local"

    def init_post_load(self) -> None:
        """Finalize derived fields, validate choices, ensure directories exist."""
        if self.db_path is None:
            self.db_path = self.data_dir / self.db_filename
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        if self.exchange_rate_provider not in PROVIDER_DEFAULT_URLS:
            raise ValueError(
                f"Unsupported exchange_rate_provider '{self.exchange_rate_provider}'. "
                f"Allowed: {sorted(PROVIDER_DEFAULT_URLS)}"
            )
        if self.exchange_api_base_url is None:
            self.exchange_api_base_url = PROVIDER_DEFAULT_URLS[self.exchange_rate_provider]
        if self.conversion_strategy not in CONVERSION_STRATEGIES:
            raise ValueError(
                f"Unsupported conversion_strategy '{self.conversion_strategy}'. "
                f"Allowed: {sorted(CONVERSION_STRATEGIES)}"
            )
        self.reference_currency = self.reference_currency.upper()
        self.default_currency = self.default_currency.upper()
        for name in ("reference_currency", "default_currency"):
            if getattr(self, name) not in CURRENCIES:
                raise ValueError(f"{name} must be a supported currency code")
        if self.rates_cache_ttl_seconds <= 0:
            raise ValueError("rates_cache_ttl_seconds must be positive")


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    settings.init_post_load()
    return settings

# rentcrunch/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Runtime ---
    ENV: str = "dev"  # dev|prod

    # --- Listings provider (Zillow via RapidAPI today; stub_json offline) ---
    LISTING_PROVIDER: str = "zillow"  # zillow|stub_json
    RAPIDAPI_KEY: str | None = None
    RAPIDAPI_HOST: str = "zillow-com1.p.rapidapi.com"
    ZILLOW_BASE_URL: str = "https://zillow-com1.p.rapidapi.com"
    ZILLOW_LISTING_URL_BASE: str = "https://www.zillow.com"
    STUB_LISTINGS_DIR: str = "data/stub_listings"

    # --- Search session ---
    PAGE_SIZE: int = 42  # provider page size (approx)
    COUNT_TIMEOUT_S: float = 15.0
    PAGE_TIMEOUT_S: float = 30.0
    DRAIN_IDLE_TIMEOUT_S: float = 20.0

    # --- HTTP resilience ---
    HTTP_TIMEOUT_S: float = 10.0
    HTTP_RENT_TIMEOUT_S: float = 15.0
    HTTP_MAX_RETRIES: int = 2
    HTTP_BACKOFF_BASE_S: float = 0.5
    HTTP_RATE_LIMIT_RPS: float = 1.0  # provider allows 2/s; stay at half
    HTTP_CIRCUIT_FAIL_THRESHOLD: int = 5
    HTTP_CIRCUIT_RESET_S: float = 60.0

    # --- Response caches ---
    SEARCH_CACHE_TTL_S: float = 30 * 60
    RENT_CACHE_TTL_S: float = 60 * 60

    # --- Background rent enrichment ---
    ENRICH_BATCH_SIZE: int = 5
    ENRICH_BATCH_INTERVAL_S: float = 5.0
    ENRICH_MAX_RETRIES: int = 3

    # Rent fallback when the provider has no estimate (0.7% rule)
    RENT_FALLBACK_RATIO: float = 0.007

    # --- Default cash-flow assumptions ---
    DEFAULT_INTEREST_RATE: float = 7.0
    DEFAULT_LOAN_TERM: int = 30
    DEFAULT_DOWN_PAYMENT_PERCENT: float = 20.0
    DEFAULT_TAX_INSURANCE_PERCENT: float = 1.7  # 1.2 tax + 0.5 insurance
    DEFAULT_VACANCY_PERCENT: float = 5.0
    DEFAULT_CAPEX_PERCENT: float = 5.0
    DEFAULT_PROPERTY_MANAGEMENT_PERCENT: float = 8.0
    DEFAULT_REHAB_AMOUNT: float = 0.0

    # --- Long-term projection ---
    PROJECTION_YEARS: int = 30
    PROJECTION_APPRECIATION_PERCENT: float = 3.0
    PROJECTION_RENT_GROWTH_PERCENT: float = 2.0


settings = Settings()

"""
Configuration Management for Household Ledger

One pydantic-settings class per outside concern (ledger rules, exchange
rates, Gemini, Google Sheets, the app itself), each read from its own
environment prefix or the .env file. Sections load lazily, so the app runs
with only the parts it needs configured.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CounterpartyProfile(BaseModel):
    """A recognized cousin and the nicknames people use for them."""

    name: str = Field(..., min_length=1)
    aliases: list[str] = Field(default_factory=list)


DEFAULT_COUNTERPARTIES = [
    CounterpartyProfile(name="Pablo", aliases=["pablo", "pablito"]),
    CounterpartyProfile(name="Camila", aliases=["camila", "cami"]),
    CounterpartyProfile(name="Marie", aliases=["marie", "marielena", "mari"]),
    CounterpartyProfile(name="Marian", aliases=["marian", "mariam"]),
    CounterpartyProfile(name="Rorro", aliases=["rorro", "rodrigo", "rodri"]),
    CounterpartyProfile(name="Martín", aliases=["martín", "martin", "tincho"]),
    CounterpartyProfile(name="Carolina", aliases=["carolina", "carol", "caro"]),
    CounterpartyProfile(name="Tony", aliases=["tony", "antonio"]),
    CounterpartyProfile(name="Joaquín", aliases=["joaquín", "joaquin", "joaco"]),
    CounterpartyProfile(name="Mica", aliases=["mica", "micaela", "miqui", "miki"]),
    CounterpartyProfile(name="Nico", aliases=["nico", "nicolás", "nicolas"]),
    CounterpartyProfile(name="Pauli", aliases=["pauli", "paula", "paulita", "pau"]),
]


class LedgerSettings(BaseSettings):
    """Ledger rules configuration: who counts as a cousin, fallback rate, thresholds."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    property_name: str = Field(
        default="El Eucalito",
        description="Name of the property; treated as a reserved box identity"
    )
    counterparties: list[CounterpartyProfile] = Field(
        default_factory=lambda: [p.model_copy() for p in DEFAULT_COUNTERPARTIES],
        description="Recognized cousins (JSON list of {name, aliases})"
    )
    fallback_uyu_rate: Decimal = Field(
        default=Decimal("42.5"),
        gt=0,
        description="UYU per USD used when no rate can be looked up"
    )

    # Validation thresholds
    max_transaction_usd: Decimal = Field(
        default=Decimal("100000"),
        gt=0,
        description="Maximum reasonable transaction amount (for sanity checking)"
    )
    future_date_tolerance_days: int = Field(
        default=7,
        ge=0,
        description="How many days in the future a transaction date can be"
    )


class RateSettings(BaseSettings):
    """Exchange rate lookup configuration."""

    model_config = SettingsConfigDict(
        env_prefix="RATES_",
        extra="ignore"
    )

    current_rate_url: str = Field(
        default="https://open.er-api.com/v6/latest/USD",
        description="Endpoint returning today's USD rates"
    )
    historical_rate_url: str = Field(
        default=(
            "https://cdn.jsdelivr.net/npm/@fawazahmed0/currency-api"
            "@{date}/v1/currencies/usd.json"
        ),
        description="Endpoint template for a past date; {date} is YYYY-MM-DD"
    )
    timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        le=60,
        description="HTTP timeout for a single rate request"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet for transactions"
    )
    bookings_sheet_name: str = Field(
        default="Bookings",
        description="Name of the sheet for bookings"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Receipt photo limits
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum upload file size in MB"
    )
    supported_image_formats: str = Field(
        default="jpg,jpeg,png,webp",
        description="Comma-separated list of supported image formats"
    )
    max_image_side_px: int = Field(
        default=2048,
        ge=256,
        description="Longest side an image is scaled down to before extraction"
    )

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_image_formats.split(",")]

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def rates(self) -> RateSettings:
        return RateSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus "<name>_error"
    entries describing what is missing. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("ledger", "rates", "google_sheets", "gemini", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results

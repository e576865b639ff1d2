from typing import Optional, List
from urllib.parse import urlsplit

from pydantic import Field, AliasChoices, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Known insecure default values that must be changed in production
_INSECURE_DB_PASSWORDS = {
    "postgres",
    "password",
    "changeme",
}

_INSECURE_ALLOWED_ORIGINS_DEFAULTS = {
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:5174",
    "http://localhost:5000",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
}


def _extract_password_from_database_url(database_url: str | None) -> str | None:
    if not database_url:
        return None
    try:
        parts = urlsplit(database_url)
        return parts.password
    except ValueError:
        return None


class Settings(BaseSettings):
    # Allow comma-separated env vars for list fields like ALLOWED_ORIGINS
    model_config = SettingsConfigDict(env_file=".env", env_parse_delimiter=",")
    PROJECT_NAME: str = "CompAdvisor"
    API_V1_STR: str = "/api"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # CORS
    # NOTE: Pydantic Settings treats list fields as "complex" env values (expects JSON).
    # We accept either a JSON array or a comma-separated string by allowing `str` here
    # and normalizing via the field validator below.
    ALLOWED_ORIGINS: List[str] | str = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://localhost:5174",
            "http://localhost:3000",
            "http://localhost:5000",
        ],
        validation_alias=AliasChoices("ALLOWED_ORIGINS", "BACKEND_CORS_ORIGINS"),
    )

    # Database settings
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_SERVER: str = Field(
        default="db",
        validation_alias=AliasChoices("POSTGRES_SERVER", "POSTGRES_HOST", "POSTGRES_HOSTNAME"),
    )
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "compadvisor"

    # Database connection pooling
    DB_POOL_SIZE: int = Field(default=20, description="Number of persistent DB connections")
    DB_MAX_OVERFLOW: int = Field(default=40, description="Max additional connections under load")

    # Full DB URL (preferred in CI/containers). If not provided, we build it from POSTGRES_*.
    DATABASE_URL: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DATABASE_URL", "SQLALCHEMY_DATABASE_URI"),
    )

    SQLALCHEMY_ECHO: bool = False

    # Logging; unset means DEBUG/INFO by DEBUG and JSON only in production
    LOG_LEVEL: Optional[str] = None
    LOG_JSON: Optional[bool] = None

    # Decision policy defaults. These are organizational tuning knobs, not
    # derived business rules; every analysis call receives them as an
    # explicit RuleConfig.
    DEFAULT_COMPANY_BUDGET: float = 50_000_000
    LOW_MARGIN_THRESHOLD: float = -0.5
    MARGINAL_MARGIN_THRESHOLD: float = 0.1
    PROMOTE_MARGIN_THRESHOLD: float = 0.4
    MARKET_RATES_PATH: Optional[str] = None  # JSON file overriding the market band table
    CURRENCY_DECIMALS: int = 2

    # Action ledger
    APPLY_ACTION_MAX_RETRIES: int = 3
    APPLY_ACTION_TIMEOUT_SECONDS: float = 10.0

    # Write recomputed suggestions back onto employee records after /analyze
    PERSIST_SUGGESTIONS: bool = True

    def model_post_init(self, __context):
        """
        Validate configuration on startup. In production, fail hard if insecure defaults are detected.
        """
        # Fill DATABASE_URL if it wasn't provided explicitly
        if not self.DATABASE_URL:
            self.DATABASE_URL = (
                f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
                f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )

        is_prod = self.ENVIRONMENT.lower() == "production"
        errors = []
        db_url_password = _extract_password_from_database_url(self.DATABASE_URL)

        # Threshold ordering holds in every environment
        if not (self.LOW_MARGIN_THRESHOLD < self.MARGINAL_MARGIN_THRESHOLD < self.PROMOTE_MARGIN_THRESHOLD):
            errors.append(
                "Margin thresholds must satisfy LOW_MARGIN_THRESHOLD < "
                "MARGINAL_MARGIN_THRESHOLD < PROMOTE_MARGIN_THRESHOLD."
            )

        if self.DEFAULT_COMPANY_BUDGET <= 0:
            errors.append("DEFAULT_COMPANY_BUDGET must be positive.")

        if self.APPLY_ACTION_MAX_RETRIES < 1:
            errors.append("APPLY_ACTION_MAX_RETRIES must be at least 1.")

        # Validate database credentials
        if is_prod:
            if db_url_password is not None and db_url_password in _INSECURE_DB_PASSWORDS:
                errors.append("DATABASE_URL contains an insecure password.")

        # Require explicit ALLOWED_ORIGINS in production (avoid accidental localhost defaults)
        if is_prod and (not self.ALLOWED_ORIGINS or set(self.ALLOWED_ORIGINS).issubset(_INSECURE_ALLOWED_ORIGINS_DEFAULTS)):
            errors.append(
                "ALLOWED_ORIGINS must be set to your domain(s) in production (not localhost defaults)."
            )

        # In production, DEBUG must be disabled
        if is_prod and self.DEBUG:
            errors.append("DEBUG must be False in production.")

        # Fail hard with all errors at once for easier debugging
        if errors:
            error_msg = "Configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            raise ValueError(error_msg)

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value

settings = Settings()

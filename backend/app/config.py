from pydantic_settings import BaseSettings
from typing import List
from pydantic import model_validator


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./nimbus_reorder.db"
    ENVIRONMENT: str = "development"
    AUTO_CREATE_TABLES: bool = True
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"
    DEBUG: bool = True
    APP_NAME: str = "NIMBUS Reorder Engine"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    ENABLE_REQUEST_ID: bool = True
    ENABLE_REQUEST_LOGGING: bool = True
    ENABLE_SECURITY_HEADERS: bool = True
    STRICT_TRANSPORT_SECURITY_SECONDS: int = 31536000
    READINESS_CHECK_DATABASE: bool = True

    # Demand forecasting
    FORECAST_HORIZON_DAYS: int = 30
    FORECAST_HISTORY_DAYS: int = 365
    FORECAST_MIN_SAMPLES: int = 7
    FORECAST_WINDOW_MIN_DAYS: int = 28
    FORECAST_SEASONALITY_CYCLE_DAYS: int = 7
    FORECAST_SEASONALITY_MIN: float = 0.5
    FORECAST_SEASONALITY_MAX: float = 2.0
    FORECAST_CONFIDENCE_FLOOR: float = 10.0
    FORECAST_CONFIDENCE_CEILING: float = 95.0
    FORECAST_INSUFFICIENT_CONFIDENCE_CAP: float = 20.0
    FORECAST_FALLBACK_DAILY_DEMAND: float = 1.0

    # Suggestion generation
    URGENCY_HIGH_MULTIPLIER: float = 1.5
    URGENCY_MEDIUM_MULTIPLIER: float = 3.0
    URGENCY_ONLY_STOCK_RATIO: float = 1.2
    SUGGESTION_MODEL_VERSION: str = "1.0.0"

    # Global policy seeded when none exists
    DEFAULT_POLICY_MIN_STOCK_MULTIPLIER: float = 1.0
    DEFAULT_POLICY_SAFETY_STOCK_DAYS: int = 7
    DEFAULT_POLICY_REVIEW_FREQUENCY_DAYS: int = 7

    # Reorder settings used until an operator saves their own
    DEFAULT_SETTINGS_AUTO_REORDER_ENABLED: bool = False
    DEFAULT_SETTINGS_ANALYSIS_FREQUENCY_HOURS: int = 24
    DEFAULT_SETTINGS_CONFIDENCE_THRESHOLD: float = 70.0
    DEFAULT_SETTINGS_MAX_AUTO_APPROVE_AMOUNT: float = 1000.0

    # Analysis jobs
    ANALYSIS_MAX_WORKERS: int = 2
    ANALYSIS_PRODUCT_WORKERS: int = 4
    ANALYSIS_PER_PRODUCT_BUDGET_SECONDS: float = 0.5
    ANALYSIS_JOB_TIMEOUT_SECONDS: float = 600.0
    ANALYSIS_JOB_RETENTION_DAYS: int = 30

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",")]

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() in {"prod", "production"}

    @model_validator(mode="after")
    def validate_engine_bounds(self):
        if self.FORECAST_SEASONALITY_MIN > self.FORECAST_SEASONALITY_MAX:
            raise ValueError("FORECAST_SEASONALITY_MIN must not exceed FORECAST_SEASONALITY_MAX.")
        if self.FORECAST_CONFIDENCE_FLOOR > self.FORECAST_CONFIDENCE_CEILING:
            raise ValueError("FORECAST_CONFIDENCE_FLOOR must not exceed FORECAST_CONFIDENCE_CEILING.")
        if self.URGENCY_HIGH_MULTIPLIER > self.URGENCY_MEDIUM_MULTIPLIER:
            raise ValueError("URGENCY_HIGH_MULTIPLIER must not exceed URGENCY_MEDIUM_MULTIPLIER.")
        return self

    @model_validator(mode="after")
    def validate_production_safety(self):
        if not self.is_production:
            return self

        if "sqlite" in self.DATABASE_URL.lower():
            raise ValueError("SQLite is not allowed when ENVIRONMENT is production.")

        if self.AUTO_CREATE_TABLES:
            raise ValueError("AUTO_CREATE_TABLES must be false in production; use Alembic migrations.")

        return self


settings = Settings()

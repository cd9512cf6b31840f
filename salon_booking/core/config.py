from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    BUSINESS_TIMEZONE: str = "Asia/Baku"

    MAX_BOOKING_DAYS: int = 7
    WORKING_HOURS_START: str = "09:00"
    WORKING_HOURS_END: str = "18:00"
    CLEANUP_BUFFER_PERCENT: float = 5.0
    CONFLICT_BUFFER_MINUTES: int = 0

    INVOICE_SCOPE: str = "date"  # "date" -> INV-YYYYMMDD-NNN, "sequence" -> INV-NNNNNN
    INVOICE_MAX_ATTEMPTS: int = 3
    INVOICE_SEQUENCE_START: int = 1

    STORE_PROVIDER: str = "memory"  # "memory" | "json"
    DATA_DIR: str = "./data/appointments"
    CATALOG_PATH: str | None = None


settings = Settings()

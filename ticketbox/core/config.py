from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Ticketbox API"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = "changeme"
    LOG_LEVEL: str = "INFO"

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "ticketbox_db"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: str = ""

    # Seat holds
    HOLD_MINUTES: int = 10
    MIN_HOLD_MINUTES: int = 1
    MAX_HOLD_MINUTES: int = 15
    MAX_SEATS_PER_REQUEST: int = 10

    # Background jobs
    SWEEP_INTERVAL_SECONDS: int = 30
    RECONCILE_INTERVAL_SECONDS: int = 300
    RECONCILE_GRACE_SECONDS: int = 120
    BACKGROUND_JOBS_ENABLED: bool = True

    # Seat-change event delivery
    EVENT_BUFFER_SIZE: int = 32

    # Pricing by seat type when the showtime carries no explicit price
    VIP_PRICE_MULTIPLIER: float = 1.5
    COUPLE_PRICE_MULTIPLIER: float = 2.0

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    def assemble_db_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

settings = Settings()
settings.DATABASE_URL = settings.assemble_db_url()

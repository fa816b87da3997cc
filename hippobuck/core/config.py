from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "Hotel Hippo Buck API"
    # Comma-separated origins for CORS. If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 8

    DATABASE_URL: str

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Hosting providers give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v
    REDIS_URL: str = "redis://localhost:6379/0"

    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 25
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = "reservations@hippobuck.local"

    SENDGRID_API_KEY: str = ""
    SENDGRID_FROM_EMAIL: str = ""

    # Booking policy
    BOOKING_NUMBER_PREFIX: str = "HHB"
    MAX_STAY_NIGHTS: int = 30
    DOMESTIC_CURRENCY: str = "KES"
    INTL_CURRENCY: str = "USD"
    # Guests from these countries are charged the domestic (East African) column.
    DOMESTIC_COUNTRIES: str = "Kenya,Uganda,Tanzania,Rwanda,Burundi,South Sudan"
    DEFAULT_GUEST_COUNTRY: str = "Kenya"
    # When true, PENDING bookings hold their rooms against other guests.
    # Off by default: only CONFIRMED and CHECKED_IN stays block a room.
    PENDING_BLOCKS_AVAILABILITY: bool = False
    # Extra attempts of allocate+create after losing a commit race.
    BOOKING_COMMIT_RETRIES: int = 1

    # M-Pesa callback: if set, the callback URL must carry ?token=<value>
    MPESA_CALLBACK_TOKEN: str = ""

    @property
    def domestic_countries(self) -> set[str]:
        return {c.strip().lower() for c in self.DOMESTIC_COUNTRIES.split(",") if c.strip()}


settings = Settings()

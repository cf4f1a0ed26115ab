from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    BUSINESS_NAME: str = "Kasar Studio"
    BUSINESS_TIMEZONE: str = "Europe/Paris"
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    OPENING_HOUR: int = 9
    STANDARD_CLOSING_HOUR: int = 21
    HARD_CLOSING_HOUR: int = 22
    SLOT_GRANULARITY_MINUTES: int = 60
    CLOSED_WEEKDAYS: str = "6"  # Python weekday numbers, Monday=0
    SAME_DAY_SAFETY_MARGIN_HOURS: int = 2
    CALENDAR_QUERY_MARGIN_HOURS: int = 12

    GOOGLE_CALENDAR_ID: str = "primary"
    GOOGLE_CLIENT_EMAIL: str | None = None
    GOOGLE_PRIVATE_KEY: str | None = None

    BOOKING_STORE: str = "memory"
    BOOKING_DATA_DIR: str = "./data/bookings"

    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None

    PAYPAL_CLIENT_ID: str | None = None
    PAYPAL_SECRET: str | None = None
    PAYPAL_BASE_URL: str = "https://api-m.sandbox.paypal.com"

    RESEND_API_KEY: str | None = None
    EMAIL_FROM: str = "Kasar Studio <onboarding@resend.dev>"
    ADMIN_EMAIL: str | None = None

    ADMIN_API_KEY: str | None = None

    @property
    def closed_weekdays(self) -> set[int]:
        days: set[int] = set()
        for token in self.CLOSED_WEEKDAYS.split(","):
            token = token.strip()
            if token.isdigit() and 0 <= int(token) <= 6:
                days.add(int(token))
        return days

    @property
    def is_dev(self) -> bool:
        return self.ENV.lower() in {"dev", "local"}


settings = Settings()

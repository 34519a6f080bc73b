from pydantic_settings import BaseSettings
from pathlib import Path
from zoneinfo import ZoneInfo


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"  # development | test | staging | production
    APP_NAME: str = "CoachOS"
    DATABASE_URL: str = "sqlite:///data/coachos.db"
    DATA_DIR: Path = Path("data")
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:8050",
        "https://localhost:8050",
    ]
    SECURITY_HEADERS_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"
    DEFAULT_TIMEZONE: str | None = None  # None -> host local zone
    STREAK_MAX_LOOKBACK_DAYS: int = 30
    HABIT_TREND_WINDOW_DAYS: int = 7
    HABIT_EDIT_WINDOW_DAYS: int = 6
    CHECKIN_DUE_WEEKDAYS: list[int] = [5, 6]  # Friday, Saturday (Sunday = 0)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def is_production_like(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() in {"production", "prod", "staging"}

    def validate_configuration(self) -> None:
        errors: list[str] = []
        if self.DEFAULT_TIMEZONE:
            try:
                ZoneInfo(self.DEFAULT_TIMEZONE)
            except Exception:
                errors.append(f"DEFAULT_TIMEZONE is not a known IANA zone: {self.DEFAULT_TIMEZONE}")
        if any(day not in range(7) for day in self.CHECKIN_DUE_WEEKDAYS):
            errors.append("CHECKIN_DUE_WEEKDAYS must only contain values 0-6")
        if self.STREAK_MAX_LOOKBACK_DAYS < 1:
            errors.append("STREAK_MAX_LOOKBACK_DAYS must be at least 1")
        if self.is_production_like and "*" in self.CORS_ORIGINS:
            errors.append("CORS_ORIGINS must not contain '*' in production-like environments")
        if errors:
            joined = "; ".join(errors)
            raise RuntimeError(f"Invalid configuration: {joined}")


settings = Settings()
settings.DATA_DIR.mkdir(parents=True, exist_ok=True)

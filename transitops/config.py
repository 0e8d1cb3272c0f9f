from pydantic_settings import BaseSettings
from typing import Literal

class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./transitops.db"
    DB_ECHO: bool = False
    
    # Application
    PROJECT_NAME: str = "Transport Operations Back Office"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    
    # Scheduling policy
    MIN_LEAD_DAYS: int = 1  # 1 = tomorrow or later
    BOOKING_WINDOW_DAYS_BEFORE: int = 1
    BOOKING_CUTOFF_HOUR: int = 19  # 7 PM on the booking day
    CALENDAR_MAX_DAYS: int = 366
    
    # Bulk operations
    BULK_MAX_WORKERS: int = 1
    
    # Completion sweep
    AUTO_COMPLETE_ENABLED: bool = False
    AUTO_COMPLETE_INTERVAL_SECONDS: int = 3600
    
    # Notifications
    NOTIFICATIONS_BACKEND: Literal["database", "log"] = "database"
    
    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()

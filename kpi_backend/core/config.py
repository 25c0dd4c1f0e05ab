import os
import logging
from pydantic import BaseModel, Field
from typing import List
from dotenv import load_dotenv

load_dotenv()


class DeadlineDefaults(BaseModel):
    """Fallback deadline rules used until HR saves their own."""
    standard_days: dict = {"self_eval": 7, "manager_eval": 5, "hr_review": 3, "final_confirm": 3}
    compressed_days: dict = {"self_eval": 3, "manager_eval": 3, "hr_review": 2, "final_confirm": 2}
    minimum_days: dict = {"self_eval": 1, "manager_eval": 1, "hr_review": 1, "final_confirm": 1}
    time_threshold: dict = {"standard": 30, "compressed": 20, "emergency": 10}
    auto_process_overdue: bool = False


class Config(BaseModel):
    app_name: str = "KPI Review Platform"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./kpi.db")

    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"
    actor_header: str = "X-User-ID"

    # CORS: comma-separated origins loaded from env
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if o.strip()
        ]
    )

    rate_limit_per_minute: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "120"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Performance rule
    auto_hr_comment: str = os.getenv("AUTO_HR_COMMENT", "Calculated automatically from the performance rule")
    weight_tolerance: float = 0.0001

    deadlines: DeadlineDefaults = DeadlineDefaults()

settings = Config()

_logger = logging.getLogger(__name__)
if settings.environment == "production" and settings.database_url.startswith("sqlite"):
    _logger.warning("Running production with SQLite; set DATABASE_URL to a PostgreSQL DSN.")

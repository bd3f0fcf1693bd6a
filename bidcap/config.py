"""Configuration management from environment variables."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Project root
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "data"


class Config:
    """Application configuration."""

    # Supabase
    SUPABASE_URL: str | None = os.getenv("SUPABASE_URL")
    SUPABASE_SERVICE_ROLE: str | None = os.getenv("SUPABASE_SERVICE_ROLE")
    FEES_TABLE: str = os.getenv("FEES_TABLE", "fees")
    FEES_AUDIT_TABLE: str = os.getenv("FEES_AUDIT_TABLE", "fees_audit")

    # Admin Basic auth
    ADMIN_USER: str | None = os.getenv("ADMIN_USER")
    ADMIN_PASS: str | None = os.getenv("ADMIN_PASS")

    # Fetcher
    ZENROWS_API_KEY: str | None = os.getenv("ZENROWS_API_KEY")
    FETCH_TIMEOUT: float = float(os.getenv("FETCH_TIMEOUT", "20"))

    # Notifications
    SLACK_WEBHOOK_URL: str | None = os.getenv("SLACK_WEBHOOK_URL")

    # Data files
    HOUSES_FILE: str | None = os.getenv("HOUSES_FILE")
    PRICING_TABLES_FILE: str | None = os.getenv("PRICING_TABLES_FILE")
    RUN_LOG_FILE: Path = Path(os.getenv("RUN_LOG_FILE", str(DATA_DIR / "fee_runs.jsonl")))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def validate(cls, require_supabase: bool = True, require_admin: bool = False) -> None:
        """Validate required configuration."""
        errors = []
        if require_supabase:
            if not cls.SUPABASE_URL:
                errors.append("SUPABASE_URL is required")
            if not cls.SUPABASE_SERVICE_ROLE:
                errors.append("SUPABASE_SERVICE_ROLE is required")
        if require_admin:
            if not cls.ADMIN_USER or not cls.ADMIN_PASS:
                errors.append("ADMIN_USER and ADMIN_PASS are required")
        if cls.FETCH_TIMEOUT <= 0:
            errors.append("FETCH_TIMEOUT must be positive")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")


config = Config()

import logging
import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: List[str] = field(
        default_factory=lambda: [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    )

    # Database settings
    database_file: str = os.getenv("LIBRARY_DB_FILE", "library.db")

    # Circulation settings
    loan_days: int = int(os.getenv("LOAN_DAYS", "14"))

    # Pagination settings
    default_page_size: int = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
    max_page_size: int = int(os.getenv("MAX_PAGE_SIZE", "100"))

    # QR code settings
    qr_box_size: int = int(os.getenv("QR_BOX_SIZE", "10"))
    qr_border: int = int(os.getenv("QR_BORDER", "4"))
    qr_error_correction: str = os.getenv("QR_ERROR_CORRECTION", "M")

    # Application settings
    app_name: str = os.getenv("APP_NAME", "QR Library")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = _env_bool("DEBUG")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    def __post_init__(self):
        if self.loan_days <= 0:
            raise ValueError("LOAN_DAYS must be positive")
        if not 1 <= self.default_page_size <= self.max_page_size:
            raise ValueError("DEFAULT_PAGE_SIZE must be between 1 and MAX_PAGE_SIZE")
        if self.qr_error_correction.upper() not in ("L", "M", "Q", "H"):
            raise ValueError("QR_ERROR_CORRECTION must be one of L, M, Q, H")
        self.qr_error_correction = self.qr_error_correction.upper()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the API and the CLI."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


settings = Settings()

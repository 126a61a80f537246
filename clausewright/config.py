from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All values come from .env file or environment. Validated at startup:
    missing required values cause an immediate error with a clear message.
    """

    # Database
    DATABASE_URL: str  # async driver (asyncpg)
    DATABASE_URL_SYNC: str  # sync driver (for Alembic CLI)

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"

    # Rendering
    RENDERER: Literal["pymupdf"] = "pymupdf"
    PAGE_SIZE: str = "letter"
    PAGE_MARGIN_PT: int = 72
    RENDER_TIMEOUT_SECONDS: float = 30.0
    DEFAULT_OUTPUT_FORMAT: Literal["pdf", "html", "txt"] = "pdf"

    # Generation
    PACKAGE_CONTRACT_TYPES: list[str] = ["ONE", "MANUFACTURING", "ONSITE"]
    COMPANY_NAME: str = ""

    # Ingestion
    SOURCE_DIR: str = "/app/sources"
    TOC_SCAN_BLOCKS: int = 40

    # App
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

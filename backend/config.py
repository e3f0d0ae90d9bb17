"""
Application configuration loaded from environment variables / .env file.
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # ── App ──
    APP_NAME: str = "Discovery Production API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Database ──
    DATABASE_URL: str = "sqlite:///./discovery.db"

    # ── Object storage ──
    STORAGE_BACKEND: str = "supabase"   # "supabase" | "local"
    LOCAL_STORAGE_DIR: str = "./storage"
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_KEY: str = ""
    SUPABASE_BUCKET: str = "documents"

    # ── Extraction / OCR / rasterization ──
    TIKA_SERVER_URL: str = ""           # e.g. http://localhost:9998 ; empty = local extractors only
    TIKA_TIMEOUT_SECONDS: float = 60.0
    OCR_BACKEND: str = "tesseract"      # "tesseract" | "none"
    OCR_LANGUAGE: str = "eng"
    PDF_RASTERIZER: str = "pymupdf"     # "pymupdf" | "none"
    PDF_RENDER_DPI: int = 300

    # ── Production ──
    BATES_PAD_LENGTH: int = 6
    PRODUCTION_OUTPUT_PREFIX: str = "productions"

    # ── Queues ──
    REDIS_URL: str = ""                 # empty = in-process queue
    INGESTION_WORKER_CONCURRENCY: int = 2
    INPROCESS_QUEUE_WORKERS: int = 4

    # ── Uploads ──
    MAX_FILE_SIZE_MB: int = 50

    # ── JWT (tokens are issued by the identity provider) ──
    SECRET_KEY: str = "discovery-secret-key-change-in-production"
    ALGORITHM: str = "HS256"

    # ── CORS ──
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # ── Rate Limiting ──
    RATE_LIMIT_DEFAULT: str = "60/minute"
    RATE_LIMIT_UPLOAD: str = "20/minute"
    RATE_LIMIT_PRODUCTION: str = "10/minute"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"          # ignore unknown vars in .env


settings = Settings()

# ── Security: reject the default placeholder secret in production ──
_DEFAULT_SECRET = "discovery-secret-key-change-in-production"
if settings.SECRET_KEY == _DEFAULT_SECRET and not settings.DEBUG:
    import warnings
    warnings.warn(
        "\nSECRET_KEY is set to the insecure default!\n"
        "   Set SECRET_KEY to the identity provider's signing secret in your .env file.\n",
        stacklevel=1,
    )

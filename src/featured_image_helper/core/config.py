"""Application configuration."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    app_name: str = "Featured Image Helper"
    debug: bool = False

    # Database
    database_url: str = "postgresql+asyncpg://localhost/featured_images"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Gemini API
    gemini_api_key: str | None = None
    gemini_api_base_url: str = "https://generativelanguage.googleapis.com/v1beta/models"
    gemini_text_model: str = "gemini-2.5-flash"
    gemini_image_model: str = "gemini-2.5-flash-image"
    gemini_auth_mode: str = "header"  # "header" or "query"
    gemini_text_timeout_seconds: float = 30.0
    gemini_image_timeout_seconds: float = 60.0
    concept_extraction_enabled: bool = True

    # Diagnostic log
    max_log_entries: int = 3

    # MinIO/S3 storage
    minio_endpoint: str | None = None
    minio_access_key: str | None = None
    minio_secret_key: str | None = None
    minio_bucket: str = "featured-images"
    minio_secure: bool = False

    # Completion email
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    mail_from: str = "featured-images@localhost"
    admin_email: str | None = None

    # Content webhook
    webhook_secret: str | None = None

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()

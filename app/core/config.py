"""Environment-driven settings for the MIMS API."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # dev | test | staging | prod
    ENV: str = "dev"

    VERSION: str = "1.0.0"

    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./mims.db"

    # Session cookie JWT; PREVIOUS keeps old tokens valid during a rotation
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""
    JWT_EXPIRES_HOURS: int = 720  # 30 days

    CORS_ORIGINS: str = "http://localhost:3000"

    # X-Internal-Secret for /internal/scheduled/*; empty disables those routes
    INTERNAL_SECRET: str = ""

    # Sentry, ignored in dev
    SENTRY_DSN: str = ""

    # Rate Limiting
    RATE_LIMIT_API: int = 100  # requests per minute, per IP
    RATE_LIMIT_AUTH: str = "5 per 15 minutes"
    RATE_LIMIT_WEBHOOK: str = "50/minute"
    RATE_LIMIT_UPLOAD: str = "10/minute"
    REDIS_URL: str = ""  # Empty = in-memory limiter storage

    # Attachment storage
    STORAGE_BACKEND: str = "local"  # "local" or "s3"
    LOCAL_STORAGE_PATH: str = "/tmp/mims-attachments"
    S3_BUCKET: str = "mims-attachments"
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str = ""  # For S3-compatible storage (MinIO, R2)
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    MAX_UPLOAD_SIZE_MB: int = 25

    # Line Messaging API
    LINE_API_BASE_URL: str = "https://api.line.me/v2/bot/message"
    LINE_TIMEOUT_SECONDS: float = 10.0

    # Outbound webhooks
    WEBHOOK_ALLOW_INSECURE_URLS: bool = False  # Dev only: allow http:// and private hosts
    OUTBOX_BATCH_SIZE: int = 50

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Verification order: current secret, then the previous one if set."""
        previous = [self.JWT_SECRET_PREVIOUS] if self.JWT_SECRET_PREVIOUS else []
        return [self.JWT_SECRET, *previous]

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only outside dev/test."""
        return self.ENV not in ("dev", "test")

    @property
    def max_upload_size_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024


settings = Settings()

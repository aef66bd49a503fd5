"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"
    VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str

    # Uploads
    MAX_FILE_SIZE: int = 10 * 1024 * 1024  # 10 MiB
    ALLOWED_FILE_TYPES: str = "image/jpeg,image/png,application/pdf"

    # Private storage root (never served directly) and staging area
    STORAGE_DIR: str = "/var/lib/formbuilder/uploads"
    TEMP_DIR: str = "/tmp/formbuilder-staging"

    # Content scanning
    ENABLE_FILE_SCANNING: bool = True
    MALWARE_HASHES_PATH: str = ""  # newline-separated MD5 hashes

    # Storage backend: local | s3
    STORAGE_BACKEND: str = "local"
    S3_BUCKET: str = "formbuilder-uploads"
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str = ""
    S3_URL_STYLE: str = ""  # path | virtual
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""

    # Session token issued by the identity provider (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""
    JWT_EXPIRES_HOURS: int = 4
    SESSION_COOKIE_NAME: str = "formbuilder_session"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    RATE_LIMIT_API: int = 120
    RATE_LIMIT_UPLOAD: int = 30
    RATE_LIMIT_SUBMIT: int = 30

    @property
    def allowed_file_types_list(self) -> list[str]:
        """Parse ALLOWED_FILE_TYPES into a list of lowercase MIME types."""
        return [t.strip().lower() for t in self.ALLOWED_FILE_TYPES.split(",") if t.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets


settings = Settings()

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

from core.exceptions import ConfigurationError

# Load environment variables from .env file
load_dotenv()

# Names of the storage settings that must be present before any upload
REQUIRED_STORAGE_SETTINGS = (
    "R2_ENDPOINT",
    "R2_ACCESS_KEY_ID",
    "R2_SECRET_ACCESS_KEY",
    "R2_BUCKET",
    "R2_PUBLIC_BASE_URL",
)


class Settings(BaseSettings):
    # Core App Settings
    PROJECT_NAME: str = "Listing Media Upload API"
    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    # Cloudflare R2 (S3 compatible) Configuration.
    # Optional here so the app can boot; uploads refuse to start without them.
    R2_ENDPOINT: str | None = None
    R2_ACCESS_KEY_ID: str | None = None
    R2_SECRET_ACCESS_KEY: str | None = None
    R2_BUCKET: str | None = None
    R2_PUBLIC_BASE_URL: str | None = None
    R2_REGION: str = "auto"
    R2_MAX_ATTEMPTS: int = 3

    # Upload admission limits
    MAX_FILES_PER_BATCH: int = 20
    MAX_IMAGE_SIZE_BYTES: int = 10 * 1024 * 1024
    MAX_VIDEO_SIZE_BYTES: int = 100 * 1024 * 1024
    ALLOWED_MEDIA_PREFIXES: list[str] = ["image/", "video/"]

    # Image normalization
    TRANSCODE_MAX_WIDTH: int = 1920
    TRANSCODE_MAX_HEIGHT: int = 1080
    TRANSCODE_QUALITY: int = 85

    # Object layout
    KEY_PREFIX: str = "properties"
    CACHE_CONTROL: str = "public, max-age=31536000, immutable"
    DELETE_ON_ABORT: bool = False

    # JWT Authentication Settings
    JWT_SECRET_KEY: str
    ALGORITHM: str = "HS256"
    MEDIA_UPLOAD_ROLES: list[str] = ["admin", "superadmin", "agent"]

    @property
    def missing_storage_settings(self) -> list[str]:
        return [
            name for name in REQUIRED_STORAGE_SETTINGS
            if not (getattr(self, name) or "").strip()
        ]

    @property
    def storage_configured(self) -> bool:
        return not self.missing_storage_settings

    def require_storage(self) -> None:
        """Raise ConfigurationError naming every missing storage setting."""
        missing = self.missing_storage_settings
        if missing:
            raise ConfigurationError(
                f"Storage configuration missing: {', '.join(missing)}"
            )


settings = Settings()

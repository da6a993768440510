"""Application configuration using Pydantic Settings."""

import re
from pydantic import BaseModel, ConfigDict, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings
from typing import Any, Dict, Mapping, Optional, Union

from ftp_storage.core.errors import ConfigurationError, ErrorCode


# Option keys read from the application's configuration source
OPTION_KEYS = {
    "storage_ftp_host": "host",
    "storage_ftp_port": "port",
    "storage_ftp_username": "username",
    "storage_ftp_password": "password",
    "storage_ftp_ssl": "use_tls",
    "storage_ftp_passive": "passive_mode",
    "storage_ftp_root": "root_prefix",
    "storage_ftp_timeout": "timeout",
}
REQUIRED_OPTION_KEYS = ("storage_ftp_host", "storage_ftp_port", "storage_ftp_username", "storage_ftp_password")


class ThumbnailSize(BaseModel):
    """Target box for a single thumbnail variant.

    Example:
        ThumbnailSize(width=200, height=200) with crop=True produces an exact
        200x200 center crop; crop=False fits the image inside the box while
        keeping its aspect ratio.
    """
    width: int
    height: int
    crop: bool = True

    @field_validator('width', 'height')
    @classmethod
    def validate_dimension(cls, v: int) -> int:
        """Ensure dimensions are positive and reasonable."""
        if v <= 0:
            raise ValueError(f"Thumbnail dimension must be positive, got {v}")
        if v > 8192:
            raise ValueError(f"Thumbnail dimension too large (max 8192), got {v}")
        return v

    @classmethod
    def coerce(cls, spec: Any) -> "ThumbnailSize":
        """Build a ThumbnailSize from the loose forms callers pass around.

        Accepts an existing ThumbnailSize, a mapping of fields, an int (square
        box) or a "WxH" string.
        """
        if isinstance(spec, cls):
            return spec
        if isinstance(spec, Mapping):
            return cls(**spec)
        if isinstance(spec, bool):
            raise ValueError(f"Unsupported thumbnail size spec: {spec!r}")
        if isinstance(spec, int):
            return cls(width=spec, height=spec)
        if isinstance(spec, str):
            match = re.fullmatch(r'\s*(\d+)\s*[xX]\s*(\d+)\s*', spec)
            if match:
                return cls(width=int(match.group(1)), height=int(match.group(2)))
        raise ValueError(f"Unsupported thumbnail size spec: {spec!r}")


class FtpConnectionConfig(BaseModel):
    """Connection settings for one FTP storage backend.

    Immutable once built; passed explicitly into the backend constructor.
    """
    model_config = ConfigDict(frozen=True)

    host: str
    port: int = 21
    username: str = "anonymous"
    password: SecretStr = SecretStr("")
    use_tls: bool = False
    passive_mode: bool = True
    root_prefix: str = ""
    timeout: float = 30.0

    @field_validator('host')
    @classmethod
    def validate_host(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("FTP host must not be empty")
        return v

    @field_validator('port')
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError(f"FTP port must be between 1 and 65535, got {v}")
        return v

    @field_validator('timeout')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"FTP timeout must be positive, got {v}")
        return v

    @field_validator('root_prefix', mode='before')
    @classmethod
    def validate_root_prefix(cls, v: Optional[str]) -> str:
        return v or ""

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "FtpConnectionConfig":
        """Build a connection config from ``storage_ftp_*`` option keys.

        Args:
            options: Mapping as supplied by the application's option store

        Returns:
            FtpConnectionConfig: Validated connection settings

        Raises:
            ConfigurationError: If a required key is missing or a value is malformed
        """
        missing = [key for key in REQUIRED_OPTION_KEYS if key not in options]
        if missing:
            raise ConfigurationError(
                ErrorCode.CONFIG_MISSING_OPTION,
                "Missing FTP storage options",
                {"missing": missing},
            )

        values = {
            field: options[key]
            for key, field in OPTION_KEYS.items()
            if key in options and options[key] is not None
        }

        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigurationError(
                ErrorCode.CONFIG_INVALID_OPTION,
                "Invalid FTP storage options",
                {"errors": [
                    {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                    for err in exc.errors()
                ]},
            ) from exc


def default_thumbnail_sizes() -> Dict[str, ThumbnailSize]:
    return {
        "small": ThumbnailSize(width=150, height=150),
        "medium": ThumbnailSize(width=600, height=600, crop=False),
    }


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Service Identity
    SERVICE_NAME: str = "ftp-image-storage"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, production

    # Logging Configuration
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_JSON: bool = True    # JSON logs (prod) vs pretty console (dev)
    DEBUG: bool = False      # Enable debug mode features

    # FTP Storage Configuration
    STORAGE_FTP_HOST: str = ""
    STORAGE_FTP_PORT: int = 21
    STORAGE_FTP_USERNAME: str = "anonymous"
    STORAGE_FTP_PASSWORD: SecretStr = SecretStr("")
    STORAGE_FTP_SSL: bool = False
    STORAGE_FTP_PASSIVE: bool = True
    STORAGE_FTP_ROOT: str = ""
    STORAGE_FTP_TIMEOUT: float = 30.0  # Connect/login/transfer timeout in seconds

    # Public URL the stored files are served from (independent of the FTP root)
    STORAGE_PUBLIC_URL: str = "http://localhost/uploads/"

    # Adapters kept by FtpStoragePool, one FTP session each
    STORAGE_POOL_SIZE: int = 4

    # Thumbnail Configuration
    THUMBNAIL_SIZES: Dict[str, ThumbnailSize] = default_thumbnail_sizes()
    THUMBNAIL_QUALITY: int = 85

    @field_validator('STORAGE_FTP_PORT')
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate the FTP port is a usable TCP port."""
        if not 1 <= v <= 65535:
            raise ValueError(f"STORAGE_FTP_PORT must be between 1 and 65535, got {v}")
        return v

    @field_validator('STORAGE_PUBLIC_URL')
    @classmethod
    def validate_public_url(cls, v: str) -> str:
        """Validate public URL format."""
        if not re.match(r'^https?://.+', v):
            raise ValueError(
                f"STORAGE_PUBLIC_URL must start with http:// or https://, got '{v}'"
            )
        return v

    @field_validator('STORAGE_POOL_SIZE')
    @classmethod
    def validate_pool_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"STORAGE_POOL_SIZE must be at least 1, got {v}")
        return v

    @field_validator('THUMBNAIL_QUALITY')
    @classmethod
    def validate_quality(cls, v: int) -> int:
        if not 1 <= v <= 100:
            raise ValueError(f"THUMBNAIL_QUALITY must be between 1 and 100, got {v}")
        return v

    def storage_options(self) -> Dict[str, Union[str, int, float, bool]]:
        """Expose FTP settings under the ``storage_ftp_*`` option keys."""
        return {
            "storage_ftp_host": self.STORAGE_FTP_HOST,
            "storage_ftp_port": self.STORAGE_FTP_PORT,
            "storage_ftp_username": self.STORAGE_FTP_USERNAME,
            "storage_ftp_password": self.STORAGE_FTP_PASSWORD.get_secret_value(),
            "storage_ftp_ssl": self.STORAGE_FTP_SSL,
            "storage_ftp_passive": self.STORAGE_FTP_PASSIVE,
            "storage_ftp_root": self.STORAGE_FTP_ROOT,
            "storage_ftp_timeout": self.STORAGE_FTP_TIMEOUT,
        }

    def ftp_connection_config(self) -> FtpConnectionConfig:
        """Build the explicit connection config handed to the FTP backend.

        Raises:
            ConfigurationError: If the FTP settings are incomplete or invalid
        """
        return FtpConnectionConfig.from_options(self.storage_options())

    @property
    def is_debug_mode(self) -> bool:
        """Check if application is in debug mode."""
        return self.DEBUG or self.LOG_LEVEL.upper() == "DEBUG"

    @property
    def use_json_logs(self) -> bool:
        """Determine if JSON logging should be used.

        In production, always use JSON logs.
        In development, allow override via LOG_JSON setting.
        """
        if self.ENVIRONMENT == "production":
            return True
        if self.DEBUG:
            return self.LOG_JSON
        return True

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()

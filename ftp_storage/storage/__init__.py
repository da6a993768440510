"""FTP storage backend for uploaded images and their thumbnails."""

from functools import lru_cache
from ftp_storage.core.config import Settings, settings
from ftp_storage.services.thumbnail_service import ThumbnailGenerator
from .protocol import StorageBackend
from .ftp import FtpStorageBackend
from .pool import FtpStoragePool
from .results import DeleteResult, StepResult, WriteResult, WriteStatus
from .urls import PublicUrlBuilder


def build_storage(config: Settings) -> FtpStorageBackend:
    """Create an FTP storage backend from application settings.

    Raises:
        ConfigurationError: If the FTP settings are incomplete or invalid
        StorageConnectionError: If the FTP server cannot be reached
    """
    return FtpStorageBackend(
        config.ftp_connection_config(),
        PublicUrlBuilder(config.STORAGE_PUBLIC_URL),
        ThumbnailGenerator(quality=config.THUMBNAIL_QUALITY),
        thumbnail_sizes=config.THUMBNAIL_SIZES,
    )


@lru_cache()
def get_storage() -> StorageBackend:
    """Factory function for the storage backend.

    Returns one shared backend built from the global settings. It holds a
    single FTP session, so concurrent callers should use ``get_storage_pool``.

    Returns:
        StorageBackend: Configured storage backend instance
    """
    return build_storage(settings)


@lru_cache()
def get_storage_pool() -> FtpStoragePool:
    """Factory function for a pool of storage backends sized by STORAGE_POOL_SIZE."""
    return FtpStoragePool(lambda: build_storage(settings), size=settings.STORAGE_POOL_SIZE)


__all__ = [
    "get_storage",
    "get_storage_pool",
    "build_storage",
    "StorageBackend",
    "FtpStorageBackend",
    "FtpStoragePool",
    "PublicUrlBuilder",
    "WriteResult",
    "WriteStatus",
    "DeleteResult",
    "StepResult",
]

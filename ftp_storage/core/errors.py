"""
Storage Error Handling System

Provides standardized error codes and exceptions for the storage backend.
Every exception carries a stable code plus structured details so callers can
log or branch on failures without parsing messages.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Standardized error codes for the storage backend."""

    # Configuration errors (CONFIG_xxx)
    CONFIG_MISSING_OPTION = "CONFIG_001"
    CONFIG_INVALID_OPTION = "CONFIG_002"
    CONFIG_UNSUPPORTED_PROTOCOL = "CONFIG_003"

    # Connection errors (CONN_xxx)
    CONN_UNREACHABLE = "CONN_001"
    CONN_LOGIN_REJECTED = "CONN_002"
    CONN_SESSION_LOST = "CONN_003"

    # Storage errors (STORAGE_xxx)
    STORAGE_WRITE_FAILED = "STORAGE_001"
    STORAGE_DIRECTORY_FAILED = "STORAGE_002"
    STORAGE_POOL_EXHAUSTED = "STORAGE_003"

    # Thumbnail errors (THUMB_xxx)
    THUMB_DECODE_FAILED = "THUMB_001"
    THUMB_INVALID_SIZE = "THUMB_002"
    THUMB_ENCODE_FAILED = "THUMB_003"


class StorageError(Exception):
    """
    Base class for storage backend errors.

    Carries a structure that serializes cleanly into logs and API responses:

    {
        "code": "STORAGE_001",
        "message": "Upload failed",
        "details": {"path": "uploads/2024/img.png"}
    }
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(StorageError):
    """Required settings are missing/malformed or the runtime lacks FTP support."""


class StorageConnectionError(StorageError):
    """The FTP server could not be reached or rejected the login."""


class SessionError(StorageError):
    """An established FTP session broke in the middle of an operation."""


class TransferError(StorageError):
    """An upload to the FTP server failed."""


class DirectoryProvisionError(StorageError):
    """A remote directory could not be created or entered."""


class ThumbnailError(StorageError):
    """The thumbnail generator could not produce a variant."""


# Convenience functions for common errors
def transfer_error(message: str, details: Optional[Dict[str, Any]] = None) -> TransferError:
    """Create an upload failure error."""
    return TransferError(ErrorCode.STORAGE_WRITE_FAILED, message, details)


def session_error(message: str, details: Optional[Dict[str, Any]] = None) -> SessionError:
    """Create a lost-session error."""
    return SessionError(ErrorCode.CONN_SESSION_LOST, message, details)


def directory_error(message: str, details: Optional[Dict[str, Any]] = None) -> DirectoryProvisionError:
    """Create a directory provisioning error."""
    return DirectoryProvisionError(ErrorCode.STORAGE_DIRECTORY_FAILED, message, details)

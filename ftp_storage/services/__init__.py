"""
Services package - collaborators used by the storage backend.
"""
from ftp_storage.services.thumbnail_service import ThumbnailGenerator, thumbnail_location

__all__ = ["ThumbnailGenerator", "thumbnail_location"]

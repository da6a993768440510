"""Storage backend protocol definition."""

from typing import Any, BinaryIO, Dict, Mapping, Optional, Protocol, Union
import os


class StorageBackend(Protocol):
    """Protocol defining the interface for image storage backends.

    Every backend stores an original object plus its thumbnail variants and
    can turn them back into public URLs, so application code can switch
    backends without changes.
    """

    def resolve(self, path: str, thumbnail_sizes: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
        """Get public URLs for an object and its thumbnails.

        Args:
            path: Object path relative to the storage root
            thumbnail_sizes: Mapping of size key to size spec (None: backend default)

        Returns:
            dict: ``{"original": url, <size_key>: url, ...}``
        """
        ...

    def write(
        self,
        path: str,
        source: Union[str, "os.PathLike[str]", BinaryIO],
        thumbnail_sizes: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Store an object and generate its thumbnails.

        Args:
            path: Object path relative to the storage root
            source: Local file path or binary file object
            thumbnail_sizes: Mapping of size key to size spec (None: backend default)

        Returns:
            Result object that is truthy when the original was stored
        """
        ...

    def delete(self, path: str, thumbnail_sizes: Optional[Mapping[str, Any]] = None) -> Any:
        """Delete an object and its thumbnails.

        Args:
            path: Object path relative to the storage root
            thumbnail_sizes: Mapping of size key to size spec (None: backend default)

        Returns:
            Result object; truthy even when nothing existed
        """
        ...

    def close(self) -> None:
        """Release any resources held by the backend."""
        ...

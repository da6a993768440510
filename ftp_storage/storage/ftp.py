"""FTP/FTPS storage backend."""

import time
from typing import Any, Callable, Dict, Mapping, Optional

from ftp_storage.core.config import FtpConnectionConfig
from ftp_storage.core.errors import (
    ConfigurationError,
    ErrorCode,
    SessionError,
    StorageError,
    ThumbnailError,
    session_error,
)
from ftp_storage.core.logging_config import get_logger, trace_context
from ftp_storage.services.thumbnail_service import ThumbnailGenerator, thumbnail_location
from ftp_storage.storage.paths import apply_prefix, normalize_prefix, parent_directory
from ftp_storage.storage.provisioner import ensure_directory
from ftp_storage.storage.results import DeleteResult, StepResult, WriteResult
from ftp_storage.storage.session import ByteSource, FtpSession, tls_supported
from ftp_storage.storage.urls import PublicUrlBuilder


logger = get_logger(__name__)

SessionFactory = Callable[[FtpConnectionConfig], FtpSession]


class FtpStorageBackend:
    """Stores originals and thumbnails on an FTP or FTPS server.

    Objects are laid out under the configured root exactly as their object
    paths read, with thumbnails as sibling files (``photo.jpg`` →
    ``photo_small.jpg``). Public URLs are computed from the unprefixed object
    path, so the FTP root never leaks into URLs.

    One instance owns one FTP session for its whole lifetime and is not safe
    for concurrent use; use ``FtpStoragePool`` to share storage between
    threads.
    """

    def __init__(
        self,
        config: FtpConnectionConfig,
        url_builder: PublicUrlBuilder,
        thumbnailer: Optional[ThumbnailGenerator] = None,
        session_factory: SessionFactory = FtpSession.connect,
        thumbnail_sizes: Optional[Mapping[str, Any]] = None,
    ):
        """Initialize FTP storage backend and open its session.

        Args:
            config: Connection settings
            url_builder: Builds public URLs from object paths
            thumbnailer: Thumbnail generator (Pillow-based default)
            session_factory: Opens the FTP session for ``config``
            thumbnail_sizes: Sizes used when a call passes ``None``

        Raises:
            ConfigurationError: If FTPS is requested but ftplib lacks TLS support
            StorageConnectionError: If the server is unreachable or rejects the login
        """
        self._session: Optional[FtpSession] = None

        if config.use_tls and not tls_supported():
            raise ConfigurationError(
                ErrorCode.CONFIG_UNSUPPORTED_PROTOCOL,
                "FTPS requested but this Python build has no TLS support",
                {"host": config.host},
            )

        self.config = config
        self.url_builder = url_builder
        self.thumbnailer = thumbnailer or ThumbnailGenerator()
        self.thumbnail_sizes: Dict[str, Any] = dict(thumbnail_sizes or {})
        self.path_prefix = normalize_prefix(config.root_prefix)
        self._session = session_factory(config)

        logger.info(
            "ftp_storage_backend_initialized",
            host=config.host,
            port=config.port,
            tls=config.use_tls,
            passive=config.passive_mode,
            path_prefix=self.path_prefix,
        )

    @property
    def session(self) -> FtpSession:
        if self._session is None:
            raise session_error("FTP storage backend is closed", {"host": self.config.host})
        return self._session

    @property
    def closed(self) -> bool:
        return self._session is None

    def apply_prefix(self, path: str) -> str:
        """Fully-qualified remote path for an object path."""
        return apply_prefix(self.path_prefix, path)

    def _sizes(self, thumbnail_sizes: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
        return self.thumbnail_sizes if thumbnail_sizes is None else thumbnail_sizes

    def resolve(self, path: str, thumbnail_sizes: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
        """Get public URLs for an object and its thumbnails.

        URLs are computed, not checked: no FTP traffic happens here.
        """
        urls = {"original": self.url_builder.build(path)}
        for size_key in self._sizes(thumbnail_sizes):
            urls[size_key] = self.url_builder.build(thumbnail_location(path, size_key))
        return urls

    def write(
        self,
        path: str,
        source: ByteSource,
        thumbnail_sizes: Optional[Mapping[str, Any]] = None,
    ) -> WriteResult:
        """Upload an object and its thumbnails.

        Steps run in order: provision the parent directory, upload the
        original, then generate and upload each thumbnail. A failure before
        the original is stored ends the write; thumbnail failures are recorded
        and the remaining thumbnails still run.

        Args:
            path: Object path relative to the storage root
            source: Local file path or binary file object
            thumbnail_sizes: Mapping of size key to size spec (None uses the
                backend's configured sizes)

        Returns:
            WriteResult: Truthy when the original was stored
        """
        with trace_context():
            return self._write(path, source, self._sizes(thumbnail_sizes))

    def _write(self, path: str, source: ByteSource, thumbnail_sizes: Mapping[str, Any]) -> WriteResult:
        start_time = time.time()
        location = self.apply_prefix(path)
        directory = parent_directory(location)
        result = WriteResult(path=path, location=location)
        session = self.session

        logger.debug(
            "ftp_storage_write_started",
            path=path,
            location=location,
            thumbnails=list(thumbnail_sizes),
        )

        stage, stage_path = "directory", directory
        try:
            if directory:
                created = ensure_directory(session, directory)
                result.steps.append(StepResult(kind="directory", path=directory))
                if created:
                    logger.debug("ftp_storage_directory_provisioned", directory=directory, created=created)

            stage, stage_path = "original", location
            bytes_sent = session.put_file(location, source)
            result.steps.append(StepResult(kind="original", path=location, bytes_sent=bytes_sent))
            result.original_stored = True
        except StorageError as exc:
            result.exception = exc
            result.steps.append(StepResult(kind=stage, path=stage_path, ok=False, error=exc.message))
            logger.error(
                "ftp_storage_write_failed",
                path=path,
                location=location,
                stage=stage,
                error_code=exc.code.value,
                error=exc.message,
            )
            if isinstance(exc, SessionError):
                # A dropped control connection cannot be resumed
                self.close()
            return result

        if thumbnail_sizes:
            self._write_thumbnails(result, source, thumbnail_sizes)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "ftp_storage_write_success",
            path=path,
            location=location,
            status=result.status.value,
            failed_steps=len(result.failed_steps),
            duration_ms=round(duration_ms, 2),
        )
        return result

    def _write_thumbnails(self, result: WriteResult, source: ByteSource, thumbnail_sizes: Mapping[str, Any]) -> None:
        session = self.session
        thumb_keys = {
            thumbnail_location(result.location, size_key): size_key
            for size_key in thumbnail_sizes
        }
        session_lost = False

        def upload(temp_path: str, thumb_location: str) -> None:
            nonlocal session_lost
            step = StepResult(kind="thumbnail", path=thumb_location, size_key=thumb_keys.get(thumb_location))
            if session_lost:
                step.ok = False
                step.error = "FTP session lost"
                result.steps.append(step)
                return
            try:
                step.bytes_sent = session.put_file(thumb_location, temp_path)
            except StorageError as exc:
                step.ok = False
                step.error = exc.message
                session_lost = isinstance(exc, SessionError)
            result.steps.append(step)

        def record_failure(size_key: str, thumb_location: str, exc: ThumbnailError) -> None:
            result.steps.append(StepResult(
                kind="thumbnail",
                path=thumb_location,
                size_key=size_key,
                ok=False,
                error=exc.message,
            ))

        try:
            self.thumbnailer.generate(source, thumbnail_sizes, result.location, upload, on_error=record_failure)
        except ThumbnailError as exc:
            result.steps.append(StepResult(
                kind="thumbnails",
                path=result.location,
                ok=False,
                error=exc.message,
            ))
            logger.warning(
                "ftp_storage_thumbnails_failed",
                path=result.path,
                location=result.location,
                error_code=exc.code.value,
                error=exc.message,
            )

        if session_lost:
            logger.error("ftp_storage_session_lost", path=result.path, location=result.location)
            self.close()

    def delete(self, path: str, thumbnail_sizes: Optional[Mapping[str, Any]] = None) -> DeleteResult:
        """Delete an object and its thumbnails.

        Missing files are not an error, so deleting twice (or deleting
        something never written) still succeeds.
        """
        with trace_context():
            location = self.apply_prefix(path)
            result = DeleteResult(path=path, location=location)
            session = self.session

            removed = session.delete_file(location)
            result.steps.append(StepResult(kind="original", path=location, ok=removed))

            for size_key in self._sizes(thumbnail_sizes):
                thumb = thumbnail_location(location, size_key)
                removed = session.delete_file(thumb)
                result.steps.append(StepResult(kind="thumbnail", path=thumb, size_key=size_key, ok=removed))

            logger.info(
                "ftp_storage_delete_completed",
                path=path,
                location=location,
                removed=len(result.removed),
                requested=len(result.steps),
            )
            return result

    def close(self) -> None:
        """Close the FTP session. Safe to call more than once."""
        session, self._session = self._session, None
        if session is not None:
            session.close()

    def __enter__(self) -> "FtpStorageBackend":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

"""FTP/FTPS session wrapper.

One ``FtpSession`` owns one authenticated control connection. The protocol is
stateful (a working-directory cursor and a single in-flight transfer), so a
session must never be used from two threads at once.
"""

import ftplib
import os
import time
from typing import BinaryIO, Optional, Union

from ftp_storage.core.config import FtpConnectionConfig
from ftp_storage.core.errors import (
    ErrorCode,
    StorageConnectionError,
    session_error,
    transfer_error,
)
from ftp_storage.core.logging_config import get_logger


logger = get_logger(__name__)

ByteSource = Union[str, os.PathLike, BinaryIO]

TRANSFER_BLOCK_SIZE = 64 * 1024


def tls_supported() -> bool:
    """FTPS needs ftplib built against the ssl module."""
    return hasattr(ftplib, "FTP_TLS")


class FtpSession:
    """Primitive remote filesystem operations over one FTP connection.

    Probing and best-effort calls report failure through their return value;
    only lost connections and failed uploads raise.
    """

    def __init__(self, ftp: ftplib.FTP, host: str = "", port: int = 0):
        self._ftp: Optional[ftplib.FTP] = ftp
        self.host = host
        self.port = port

    @classmethod
    def connect(cls, config: FtpConnectionConfig) -> "FtpSession":
        """Open and authenticate a session.

        Args:
            config: Connection settings

        Returns:
            FtpSession: Logged-in session with passive mode applied

        Raises:
            StorageConnectionError: If the server is unreachable or rejects the login
        """
        start_time = time.time()
        ftp = ftplib.FTP_TLS() if config.use_tls else ftplib.FTP()

        logger.debug(
            "ftp_connect_started",
            host=config.host,
            port=config.port,
            tls=config.use_tls,
            timeout=config.timeout,
        )

        try:
            ftp.connect(config.host, config.port, timeout=config.timeout)
        except (OSError, EOFError, ftplib.Error) as exc:
            _close_quietly(ftp)
            logger.error(
                "ftp_connect_failed",
                host=config.host,
                port=config.port,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise StorageConnectionError(
                ErrorCode.CONN_UNREACHABLE,
                f"Couldn't connect to FTP server {config.host}:{config.port}",
                {"host": config.host, "port": config.port, "error": str(exc)},
            ) from exc

        try:
            ftp.login(config.username, config.password.get_secret_value())
            if config.use_tls:
                # Encrypt the data channel too, not just the control channel
                ftp.prot_p()
        except (OSError, EOFError, ftplib.Error) as exc:
            _close_quietly(ftp)
            logger.error(
                "ftp_login_failed",
                host=config.host,
                port=config.port,
                username=config.username,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise StorageConnectionError(
                ErrorCode.CONN_LOGIN_REJECTED,
                f"FTP server {config.host}:{config.port} rejected the login",
                {"host": config.host, "port": config.port, "username": config.username, "error": str(exc)},
            ) from exc

        session = cls(ftp, host=config.host, port=config.port)
        session.set_passive(config.passive_mode)

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "ftp_connect_success",
            host=config.host,
            port=config.port,
            tls=config.use_tls,
            passive=config.passive_mode,
            duration_ms=round(duration_ms, 2),
        )
        return session

    @property
    def ftp(self) -> ftplib.FTP:
        if self._ftp is None:
            raise session_error("FTP session is closed", {"host": self.host, "port": self.port})
        return self._ftp

    @property
    def closed(self) -> bool:
        return self._ftp is None

    def set_passive(self, passive: bool) -> None:
        """Select passive or active data connections.

        ftplib only records the preference; a server refusing PASV surfaces
        on the next transfer as a TransferError.
        """
        self.ftp.set_pasv(passive)
        logger.debug("ftp_passive_mode_set", host=self.host, passive=passive)

    def change_directory(self, path: str) -> bool:
        """Enter ``path``; False when the server refuses (4xx/5xx reply, e.g. it does not exist)."""
        try:
            self.ftp.cwd(path)
            return True
        except (ftplib.error_perm, ftplib.error_temp) as exc:
            logger.debug("ftp_cwd_refused", path=path, reply=str(exc))
            return False
        except (OSError, EOFError, ftplib.Error) as exc:
            raise session_error(
                f"FTP session lost while changing directory to {path}",
                {"path": path, "error": str(exc)},
            ) from exc

    def make_directory(self, name: str) -> bool:
        """Create ``name`` in the working directory; failure is tolerated."""
        try:
            self.ftp.mkd(name)
            return True
        except (ftplib.error_perm, ftplib.error_temp) as exc:
            # Usually "already exists" or a concurrent creator winning the race
            logger.debug("ftp_mkdir_ignored", name=name, reply=str(exc))
            return False
        except (OSError, EOFError, ftplib.Error) as exc:
            raise session_error(
                f"FTP session lost while creating directory {name}",
                {"name": name, "error": str(exc)},
            ) from exc

    def working_directory(self) -> str:
        try:
            return self.ftp.pwd()
        except (OSError, EOFError, ftplib.Error) as exc:
            raise session_error(
                "FTP session lost while reading the working directory",
                {"error": str(exc)},
            ) from exc

    def put_file(self, remote_path: str, source: ByteSource) -> int:
        """Upload ``source`` to ``remote_path`` in binary mode.

        A 4xx/5xx reply to STOR (permission denied, disk full) is a refused
        transfer and leaves the session usable. A reset socket, a timeout or
        an out-of-sequence reply means the control connection is gone.

        Args:
            remote_path: Fully-qualified remote path
            source: Local file path or readable binary file object

        Returns:
            int: Number of bytes sent

        Raises:
            TransferError: If the local file is unreadable or the server refuses the upload
            SessionError: If the connection drops during the upload
        """
        if not isinstance(source, (str, os.PathLike)):
            if hasattr(source, "seek"):
                source.seek(0)
            return self._store(remote_path, source)

        try:
            with open(source, "rb") as fh:
                return self._store(remote_path, fh)
        except OSError as exc:
            logger.error("ftp_put_source_unreadable", path=remote_path, error=str(exc))
            raise transfer_error(
                f"Cannot read local source for {remote_path}",
                {"path": remote_path, "bytes_sent": 0, "error": str(exc)},
            ) from exc

    def _store(self, remote_path: str, fh: BinaryIO) -> int:
        sent = 0

        def count(block: bytes) -> None:
            nonlocal sent
            sent += len(block)

        logger.debug("ftp_put_started", path=remote_path)

        try:
            self.ftp.storbinary(f"STOR {remote_path}", fh, TRANSFER_BLOCK_SIZE, count)
        except (ftplib.error_perm, ftplib.error_temp) as exc:
            logger.error(
                "ftp_put_failed",
                path=remote_path,
                bytes_sent=sent,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise transfer_error(
                f"Upload to {remote_path} failed",
                {"path": remote_path, "bytes_sent": sent, "error": str(exc)},
            ) from exc
        except (OSError, EOFError, ftplib.Error) as exc:
            logger.error(
                "ftp_put_connection_lost",
                path=remote_path,
                bytes_sent=sent,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise session_error(
                f"FTP session lost while uploading {remote_path}",
                {"path": remote_path, "bytes_sent": sent, "error": str(exc)},
            ) from exc

        logger.info("ftp_put_success", path=remote_path, bytes_sent=sent)
        return sent

    def delete_file(self, remote_path: str) -> bool:
        """Remove ``remote_path``; True only if something was deleted."""
        try:
            self.ftp.delete(remote_path)
        except (OSError, EOFError, ftplib.Error) as exc:
            logger.warning("ftp_delete_ignored", path=remote_path, error=str(exc))
            return False

        logger.info("ftp_delete_success", path=remote_path)
        return True

    def close(self) -> None:
        """Release the connection. Never raises; safe to call repeatedly."""
        ftp, self._ftp = self._ftp, None
        if ftp is None:
            return
        try:
            ftp.quit()
        except (OSError, EOFError, ftplib.Error) as exc:
            logger.debug("ftp_quit_failed", host=self.host, error=str(exc))
            _close_quietly(ftp)
        logger.debug("ftp_session_closed", host=self.host, port=self.port)

    def __enter__(self) -> "FtpSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def _close_quietly(ftp: ftplib.FTP) -> None:
    try:
        ftp.close()
    except OSError as exc:
        logger.debug("ftp_close_failed", error=str(exc))

"""Recursive remote directory creation.

FTP has no "mkdir -p", so directories are walked one segment at a time:
try CWD, create with MKD when CWD is refused, then enter. The walk is
relative, so the session's working directory is restored afterwards.
"""

from typing import List, Protocol

from ftp_storage.core.errors import directory_error
from ftp_storage.core.logging_config import get_logger


logger = get_logger(__name__)


class DirectorySession(Protocol):
    """The session primitives provisioning relies on."""

    def change_directory(self, path: str) -> bool: ...

    def make_directory(self, name: str) -> bool: ...

    def working_directory(self) -> str: ...


def split_segments(directory: str) -> List[str]:
    """Non-empty ``/`` separated segments of ``directory``."""
    return [part for part in directory.split("/") if part]


def ensure_directory(session: DirectorySession, directory: str) -> List[str]:
    """Make sure ``directory`` exists on the remote side.

    Pre-existing segments are entered, missing ones created. If a segment
    can still not be entered after trying to create it, provisioning stops
    instead of building the rest of the tree in the wrong place.

    Args:
        session: Open FTP session
        directory: Directory path, relative to the session's working directory
            (or absolute when it starts with ``/``)

    Returns:
        List[str]: Segments that had to be created

    Raises:
        DirectoryProvisionError: If a segment cannot be created or entered
        SessionError: If the connection drops mid-walk
    """
    segments = split_segments(directory)
    if not segments:
        return []

    created: List[str] = []
    pwd = session.working_directory()

    try:
        if directory.startswith("/") and not session.change_directory("/"):
            raise directory_error(
                f"Cannot enter remote root for {directory}",
                {"directory": directory},
            )

        for index, segment in enumerate(segments):
            if session.change_directory(segment):
                continue

            if session.make_directory(segment):
                created.append(segment)

            if not session.change_directory(segment):
                logger.error(
                    "ftp_directory_unreachable",
                    directory=directory,
                    segment=segment,
                    depth=index,
                )
                raise directory_error(
                    f"Cannot create or enter {segment!r} while provisioning {directory}",
                    {"directory": directory, "segment": segment, "depth": index},
                )
    finally:
        if not session.change_directory(pwd):
            logger.warning("ftp_directory_restore_failed", directory=directory, pwd=pwd)

    if created:
        logger.info("ftp_directory_created", directory=directory, created=created)

    return created

"""
Pytest configuration and shared fixtures for ftp-image-storage tests.

This module provides:
- Connection config fixtures
- In-memory FTP server and session fixtures
- Storage backend fixtures
- Sample image fixtures
"""

from pathlib import Path

import pytest
from PIL import Image

from ftp_storage.core.config import FtpConnectionConfig
from ftp_storage.services.thumbnail_service import ThumbnailGenerator
from ftp_storage.storage.ftp import FtpStorageBackend
from ftp_storage.storage.urls import PublicUrlBuilder

from tests.fakes import PUBLIC_URL, FakeFtpServer, FakeThumbnailer


# ============================================================================
# Configuration fixtures
# ============================================================================

@pytest.fixture
def ftp_config() -> FtpConnectionConfig:
    """Connection config rooted at ``uploads``."""
    return FtpConnectionConfig(
        host="ftp.example.com",
        port=21,
        username="storage",
        password="secret",
        use_tls=False,
        passive_mode=True,
        root_prefix="uploads",
        timeout=5.0,
    )


@pytest.fixture
def url_builder() -> PublicUrlBuilder:
    return PublicUrlBuilder(PUBLIC_URL)


# ============================================================================
# FTP fixtures
# ============================================================================

@pytest.fixture
def ftp_server() -> FakeFtpServer:
    """Empty in-memory FTP server."""
    return FakeFtpServer()


@pytest.fixture
def fake_thumbnailer(tmp_path: Path) -> FakeThumbnailer:
    thumb_dir = tmp_path / "thumbs"
    thumb_dir.mkdir()
    return FakeThumbnailer(str(thumb_dir))


@pytest.fixture
def storage(ftp_config, url_builder, fake_thumbnailer, ftp_server) -> FtpStorageBackend:
    """Backend wired to the in-memory server and the fake thumbnailer."""
    backend = FtpStorageBackend(
        ftp_config,
        url_builder,
        thumbnailer=fake_thumbnailer,
        session_factory=ftp_server.connect,
    )
    yield backend
    backend.close()


@pytest.fixture
def image_storage(ftp_config, url_builder, ftp_server) -> FtpStorageBackend:
    """Backend wired to the in-memory server and the real Pillow thumbnailer."""
    backend = FtpStorageBackend(
        ftp_config,
        url_builder,
        thumbnailer=ThumbnailGenerator(quality=80),
        session_factory=ftp_server.connect,
    )
    yield backend
    backend.close()


# ============================================================================
# Test data fixtures
# ============================================================================

@pytest.fixture
def sample_file(tmp_path: Path) -> Path:
    """Ten-byte file standing in for an uploaded object."""
    path = tmp_path / "upload.bin"
    path.write_bytes(b"0123456789")
    return path


@pytest.fixture
def sample_png(tmp_path: Path) -> Path:
    """400x300 RGB PNG image."""
    path = tmp_path / "photo.png"
    Image.new("RGB", (400, 300), color=(200, 30, 30)).save(path, format="PNG")
    return path


@pytest.fixture
def sample_jpeg(tmp_path: Path) -> Path:
    """300x400 RGB JPEG image."""
    path = tmp_path / "portrait.jpg"
    Image.new("RGB", (300, 400), color=(30, 30, 200)).save(path, format="JPEG")
    return path

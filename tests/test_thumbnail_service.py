"""
Thumbnail generation tests.

Runs the Pillow-based generator against real images and collects the
variants through a recording sink.
"""

import io
import os

import pytest
from PIL import Image

from ftp_storage.core.config import ThumbnailSize
from ftp_storage.core.errors import ErrorCode, ThumbnailError
from ftp_storage.services import thumbnail_service
from ftp_storage.services.thumbnail_service import ThumbnailGenerator, render_variant


class RecordingSink:
    """Keeps a decoded copy of every variant handed over."""

    def __init__(self):
        self.received = {}
        self.temp_paths = []

    def __call__(self, temp_path, location):
        self.temp_paths.append(temp_path)
        with Image.open(temp_path) as image:
            image.load()
            self.received[location] = (image.size, image.format)


@pytest.fixture
def generator():
    return ThumbnailGenerator(quality=80)


@pytest.fixture
def sink():
    return RecordingSink()


# ============================================================================
# Size spec tests
# ============================================================================

@pytest.mark.unit
@pytest.mark.parametrize("spec, expected", [
    (100, (100, 100, True)),
    ("200x50", (200, 50, True)),
    (" 64 X 32 ", (64, 32, True)),
    ({"width": 80, "height": 60, "crop": False}, (80, 60, False)),
])
def test_thumbnail_size_coerce(spec, expected):
    """Test the loose size spec forms are accepted."""
    size = ThumbnailSize.coerce(spec)
    assert (size.width, size.height, size.crop) == expected


@pytest.mark.unit
@pytest.mark.parametrize("spec", [True, "big", 0, -5, {"width": 10}, 1.5, 9000])
def test_thumbnail_size_coerce_rejects(spec):
    """Test malformed size specs raise ValueError."""
    with pytest.raises(ValueError):
        ThumbnailSize.coerce(spec)


# ============================================================================
# Rendering tests
# ============================================================================

@pytest.mark.unit
def test_render_crop_fills_box():
    """Test cropping variants match the box exactly."""
    image = Image.new("RGB", (400, 300))

    assert render_variant(image, ThumbnailSize(width=100, height=100)).size == (100, 100)
    assert render_variant(image, ThumbnailSize(width=200, height=50)).size == (200, 50)


@pytest.mark.unit
def test_render_fit_keeps_aspect_ratio():
    """Test non-cropping variants fit inside the box."""
    image = Image.new("RGB", (400, 300))

    resized = render_variant(image, ThumbnailSize(width=100, height=100, crop=False))

    assert resized.size == (100, 75)


@pytest.mark.unit
def test_render_never_upscales():
    """Test boxes larger than the source keep the source size."""
    image = Image.new("RGB", (400, 300))

    assert render_variant(image, ThumbnailSize(width=1000, height=1000)).size == (400, 300)
    assert render_variant(image, ThumbnailSize(width=1000, height=1000, crop=False)).size == (400, 300)


# ============================================================================
# Generator tests
# ============================================================================

@pytest.mark.unit
def test_generate_hands_each_variant_to_sink(generator, sink, sample_png):
    """Test one variant per size key at its derived location."""
    variants = generator.generate(
        str(sample_png),
        {"small": 100, "wide": "200x50"},
        "uploads/2024/photo.png",
        sink,
    )

    assert sink.received == {
        "uploads/2024/photo_small.png": ((100, 100), "PNG"),
        "uploads/2024/photo_wide.png": ((200, 50), "PNG"),
    }
    assert variants["small"].width == 100
    assert variants["wide"].location == "uploads/2024/photo_wide.png"
    assert all(v.size_bytes > 0 for v in variants.values())


@pytest.mark.unit
def test_generate_keeps_jpeg_format(generator, sink, sample_jpeg):
    """Test variants are written in the source's format."""
    variants = generator.generate(str(sample_jpeg), {"small": 100}, "portrait.jpg", sink)

    assert sink.received["portrait_small.jpg"] == ((100, 100), "JPEG")
    assert variants["small"].format == "JPEG"


@pytest.mark.unit
def test_generate_removes_temp_files(generator, sink, sample_png):
    """Test temporary variant files are gone after generation."""
    generator.generate(str(sample_png), {"a": 50, "b": 60}, "photo.png", sink)

    assert len(sink.temp_paths) == 2
    assert not any(os.path.exists(path) for path in sink.temp_paths)


@pytest.mark.unit
def test_generate_removes_temp_file_when_sink_fails(generator, sample_png):
    """Test a failing sink does not leak the temporary file."""
    seen = []

    def failing_sink(temp_path, location):
        seen.append(temp_path)
        raise RuntimeError("upload exploded")

    with pytest.raises(RuntimeError):
        generator.generate(str(sample_png), {"small": 50}, "photo.png", failing_sink)

    assert seen and not os.path.exists(seen[0])


@pytest.mark.unit
def test_generate_reads_file_objects_from_start(generator, sink, sample_png):
    """Test a consumed stream is rewound before decoding."""
    stream = io.BytesIO(sample_png.read_bytes())
    stream.read()

    generator.generate(stream, {"small": 50}, "photo.png", sink)

    assert sink.received["photo_small.png"] == ((50, 50), "PNG")


@pytest.mark.unit
def test_generate_without_sizes_skips_decoding(generator, sink, sample_file):
    """Test nothing is decoded when no sizes are requested."""
    assert generator.generate(str(sample_file), {}, "upload.bin", sink) == {}
    assert sink.received == {}


@pytest.mark.unit
def test_generate_rejects_non_image(generator, sink, sample_file):
    """Test undecodable sources raise a decode error."""
    with pytest.raises(ThumbnailError) as exc_info:
        generator.generate(str(sample_file), {"small": 50}, "upload.bin", sink)

    assert exc_info.value.code == ErrorCode.THUMB_DECODE_FAILED
    assert sink.received == {}


@pytest.mark.unit
def test_generate_rejects_invalid_size(generator, sink, sample_png):
    """Test an invalid size spec raises with the offending key."""
    with pytest.raises(ThumbnailError) as exc_info:
        generator.generate(str(sample_png), {"bad": "huge"}, "photo.png", sink)

    assert exc_info.value.code == ErrorCode.THUMB_INVALID_SIZE
    assert exc_info.value.details["size_key"] == "bad"


@pytest.mark.unit
def test_generate_continues_after_invalid_size(generator, sink, sample_png):
    """Test one bad size spec does not stop the remaining sizes."""
    errors = []

    variants = generator.generate(
        str(sample_png),
        {"bad": "nope", "small": "50x50"},
        "photo.png",
        sink,
        on_error=lambda size_key, location, exc: errors.append((size_key, location, exc.code)),
    )

    assert list(variants) == ["small"]
    assert sink.received == {"photo_small.png": ((50, 50), "PNG")}
    assert errors == [("bad", "photo_bad.png", ErrorCode.THUMB_INVALID_SIZE)]


@pytest.mark.unit
def test_generate_continues_after_encode_failure(generator, sink, sample_png, monkeypatch):
    """Test an encode failure for one size still renders the others."""
    real_save = thumbnail_service.save_variant

    def flaky_save(image, path, image_format, quality):
        if image.width == 80:
            raise OSError("encoder exploded")
        real_save(image, path, image_format, quality)

    monkeypatch.setattr(thumbnail_service, "save_variant", flaky_save)
    errors = []

    generator.generate(
        str(sample_png),
        {"broken": 80, "small": 50},
        "photo.png",
        sink,
        on_error=lambda size_key, location, exc: errors.append((size_key, exc.code)),
    )

    assert list(sink.received) == ["photo_small.png"]
    assert errors == [("broken", ErrorCode.THUMB_ENCODE_FAILED)]


@pytest.mark.unit
def test_generate_without_handler_raises_after_all_sizes(generator, sink, sample_png):
    """Test the first per-size failure is raised once every size was tried."""
    with pytest.raises(ThumbnailError) as exc_info:
        generator.generate(str(sample_png), {"bad": "nope", "small": 50}, "photo.png", sink)

    assert exc_info.value.details["size_key"] == "bad"
    assert "photo_small.png" in sink.received


# ============================================================================
# Storage integration tests
# ============================================================================

@pytest.mark.unit
def test_image_storage_uploads_real_thumbnails(image_storage, ftp_server, sample_png):
    """Test the backend uploads the original plus Pillow-rendered thumbnails."""
    result = image_storage.write("2024/photo.png", str(sample_png), {"small": 100, "wide": "200x50"})

    assert result
    assert ftp_server.sessions[0].puts() == [
        "uploads/2024/photo.png",
        "uploads/2024/photo_small.png",
        "uploads/2024/photo_wide.png",
    ]

    thumb = Image.open(io.BytesIO(ftp_server.files["/uploads/2024/photo_small.png"]))
    assert thumb.size == (100, 100)


@pytest.mark.unit
def test_image_storage_non_image_is_partial(image_storage, ftp_server, sample_file):
    """Test an undecodable original is stored while thumbnails are reported failed."""
    result = image_storage.write("docs/upload.bin", str(sample_file), {"small": 100})

    assert result
    assert result.status.value == "partial"
    assert result.failed_steps[0].kind == "thumbnails"
    assert "/uploads/docs/upload.bin" in ftp_server.files


@pytest.mark.unit
def test_image_storage_bad_size_keeps_other_thumbnails(image_storage, ftp_server, sample_png):
    """Test an invalid size key fails alone while the other thumbnails are stored."""
    result = image_storage.write("2024/photo.png", str(sample_png), {"bad": "nope", "small": "50x50"})

    assert result
    assert result.status.value == "partial"
    assert "/uploads/2024/photo_small.png" in ftp_server.files
    assert "/uploads/2024/photo_bad.png" not in ftp_server.files

    failed = result.failed_steps
    assert [(step.kind, step.size_key) for step in failed] == [("thumbnail", "bad")]
    assert failed[0].path == "uploads/2024/photo_bad.png"

"""Thumbnail generation with Pillow."""

import os
import posixpath
import tempfile
import time
from typing import Any, BinaryIO, Callable, Dict, Mapping, Optional, Tuple, Union

from PIL import Image, ImageOps, UnidentifiedImageError
from pydantic import BaseModel

from ftp_storage.core.config import ThumbnailSize
from ftp_storage.core.errors import ErrorCode, ThumbnailError
from ftp_storage.core.logging_config import get_logger


logger = get_logger(__name__)

# sink(temp_file_path, thumbnail_location)
ThumbnailSink = Callable[[str, str], None]

# on_error(size_key, thumbnail_location, error)
ThumbnailErrorHandler = Callable[[str, str, ThumbnailError], None]

# Formats Pillow can write back; anything else is stored as PNG
WRITABLE_FORMATS = {"JPEG", "PNG", "WEBP", "GIF", "BMP", "TIFF"}

FORMAT_SUFFIXES = {
    "JPEG": ".jpg",
    "PNG": ".png",
    "WEBP": ".webp",
    "GIF": ".gif",
    "BMP": ".bmp",
    "TIFF": ".tif",
}


def thumbnail_location(path: str, size_key: str) -> str:
    """Derive the location of a thumbnail variant from its original path.

    The size key goes in front of the extension, so variants sit next to
    their original.

    Example:
        >>> thumbnail_location("2024/01/photo.jpg", "small")
        '2024/01/photo_small.jpg'
    """
    directory, name = posixpath.split(path)
    stem, ext = posixpath.splitext(name)
    return posixpath.join(directory, f"{stem}_{size_key}{ext}")


class ThumbnailVariant(BaseModel):
    """Metadata for a single generated thumbnail."""
    size_key: str
    location: str
    width: int
    height: int
    format: str
    size_bytes: int


def render_variant(image: Image.Image, size: ThumbnailSize) -> Image.Image:
    """Resize ``image`` into the box described by ``size``.

    Cropping thumbnails fill the box exactly (center crop); the others fit
    inside it keeping the aspect ratio. Images are never upscaled.

    Args:
        image: Decoded source image
        size: Target box

    Returns:
        Image: New resized image
    """
    if size.crop:
        box = (min(size.width, image.width), min(size.height, image.height))
        return ImageOps.fit(image, box, Image.Resampling.LANCZOS)

    resized = image.copy()
    resized.thumbnail((size.width, size.height), Image.Resampling.LANCZOS)
    return resized


def save_variant(image: Image.Image, path: str, image_format: str, quality: int) -> None:
    """Encode ``image`` to ``path`` in ``image_format``."""
    params: Dict[str, Any] = {}

    if image_format == "JPEG":
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        params = {"quality": quality, "optimize": True}
    elif image_format == "WEBP":
        params = {"quality": quality, "method": 6}
    elif image_format == "PNG":
        params = {"optimize": True}

    image.save(path, format=image_format, **params)


class ThumbnailGenerator:
    """Produces resized variants of a stored image.

    The generator never talks to storage itself: every variant is written to
    a temporary file and handed to ``sink`` together with its target location.
    The temporary file is removed once ``sink`` returns.
    """

    def __init__(self, quality: int = 85):
        self.quality = quality

    def open_image(self, source: Union[str, "os.PathLike[str]", BinaryIO]) -> Tuple[Image.Image, str]:
        """Decode ``source`` and apply its EXIF orientation.

        Returns:
            tuple: (image, format to write variants in)

        Raises:
            ThumbnailError: If the source is not a decodable image
        """
        if hasattr(source, "seek"):
            source.seek(0)

        try:
            with Image.open(source) as opened:
                opened.load()
                image_format = opened.format if opened.format in WRITABLE_FORMATS else "PNG"
                image = ImageOps.exif_transpose(opened) or opened.copy()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
            logger.error(
                "thumbnail_source_unreadable",
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise ThumbnailError(
                ErrorCode.THUMB_DECODE_FAILED,
                "Source is not a readable image",
                {"error": str(exc)},
            ) from exc

        return image, image_format

    def generate(
        self,
        source: Union[str, "os.PathLike[str]", BinaryIO],
        sizes: Mapping[str, Any],
        base_path: str,
        sink: ThumbnailSink,
        on_error: Optional[ThumbnailErrorHandler] = None,
    ) -> Dict[str, ThumbnailVariant]:
        """Render every requested size and pass each variant to ``sink``.

        A bad size spec or a failed encode only affects its own size key; the
        remaining keys are still rendered.

        Args:
            source: Original image (path or binary file object)
            sizes: Mapping of size key to size spec (see ThumbnailSize.coerce)
            base_path: Path the thumbnail locations are derived from
            sink: Called as ``sink(temp_path, location)`` per variant
            on_error: Called as ``on_error(size_key, location, error)`` for each
                size key that could not be rendered

        Returns:
            Dict[str, ThumbnailVariant]: Metadata per rendered size key

        Raises:
            ThumbnailError: If the source cannot be decoded, or, without
                ``on_error``, the first per-size failure once every key was tried
        """
        if not sizes:
            return {}

        start_time = time.time()
        image, image_format = self.open_image(source)
        variants: Dict[str, ThumbnailVariant] = {}
        first_error: Optional[ThumbnailError] = None

        for size_key, spec in sizes.items():
            location = thumbnail_location(base_path, size_key)
            try:
                variants[size_key] = self._render(image, image_format, size_key, spec, location, sink)
            except ThumbnailError as exc:
                logger.warning(
                    "thumbnail_variant_failed",
                    size_key=size_key,
                    location=location,
                    error_code=exc.code.value,
                    error=exc.message,
                )
                if on_error is not None:
                    on_error(size_key, location, exc)
                elif first_error is None:
                    first_error = exc

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "thumbnails_generated",
            base_path=base_path,
            count=len(variants),
            requested=len(sizes),
            duration_ms=round(duration_ms, 2),
        )

        if first_error is not None:
            raise first_error

        return variants

    def _render(
        self,
        image: Image.Image,
        image_format: str,
        size_key: str,
        spec: Any,
        location: str,
        sink: ThumbnailSink,
    ) -> ThumbnailVariant:
        try:
            size = ThumbnailSize.coerce(spec)
        except ValueError as exc:
            raise ThumbnailError(
                ErrorCode.THUMB_INVALID_SIZE,
                f"Invalid thumbnail size for {size_key!r}",
                {"size_key": size_key, "spec": repr(spec), "error": str(exc)},
            ) from exc

        fd, temp_path = tempfile.mkstemp(suffix=FORMAT_SUFFIXES[image_format])
        os.close(fd)
        try:
            try:
                variant = render_variant(image, size)
                save_variant(variant, temp_path, image_format, self.quality)
            except (OSError, ValueError) as exc:
                raise ThumbnailError(
                    ErrorCode.THUMB_ENCODE_FAILED,
                    f"Could not encode thumbnail {size_key!r}",
                    {"size_key": size_key, "format": image_format, "error": str(exc)},
                ) from exc

            size_bytes = os.path.getsize(temp_path)
            sink(temp_path, location)
        finally:
            os.unlink(temp_path)

        logger.debug(
            "thumbnail_generated",
            size_key=size_key,
            location=location,
            width=variant.width,
            height=variant.height,
            size_bytes=size_bytes,
        )

        return ThumbnailVariant(
            size_key=size_key,
            location=location,
            width=variant.width,
            height=variant.height,
            format=image_format,
            size_bytes=size_bytes,
        )

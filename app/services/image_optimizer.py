"""Resize and recompress picked images so uploads stay within a byte budget."""
import asyncio
import io
import logging
import math
import os
import tempfile

from PIL import Image, ImageOps

from app.config import Settings, settings as default_settings
from app.schemas.photo import OptimizationResult, OptimizedImage
from app.utils.exceptions import ImageProcessingError

logger = logging.getLogger(__name__)

QUALITY_STEP = 0.1
SHRINK_FACTOR = 0.75
MIN_SIDE = 16


def calculate_dimensions(
    original_width: int,
    original_height: int,
    max_width: int,
    max_height: int,
) -> tuple[int, int]:
    """Fit the image into max_width x max_height, keeping the aspect ratio. Never upscales."""
    aspect_ratio = original_width / original_height
    width, height = float(original_width), float(original_height)

    if width > max_width:
        width = max_width
        height = width / aspect_ratio

    if height > max_height:
        height = max_height
        width = height * aspect_ratio

    return max(1, round(width)), max(1, round(height))


def get_recommended_quality(file_size_bytes: int) -> float:
    size_mb = file_size_bytes / (1024 * 1024)
    if size_mb < 1:
        return 0.9
    if size_mb < 2:
        return 0.85
    if size_mb < 4:
        return 0.8
    if size_mb < 6:
        return 0.75
    if size_mb < 10:
        return 0.7
    return 0.6


def estimate_upload_time(file_size_bytes: int, speed_mbps: float = 5) -> int:
    """Seconds needed to push ``file_size_bytes`` over a ``speed_mbps`` link, rounded up."""
    file_size_mb = file_size_bytes / (1024 * 1024)
    return math.ceil((file_size_mb * 8) / speed_mbps)


def _encode_jpeg(image: Image.Image, quality: float) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="JPEG", quality=max(1, round(quality * 100)), optimize=True)
    return buf.getvalue()


def _write_temp(data: bytes, output_dir: str | None, suffix: str) -> str:
    fd, path = tempfile.mkstemp(suffix=suffix, dir=output_dir)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    return path


def _load_rgb(file_path: str) -> Image.Image:
    with Image.open(file_path) as im:
        im = ImageOps.exif_transpose(im)
        if im.mode in ("RGBA", "LA", "P"):
            # JPEG has no alpha, flatten onto white
            im = im.convert("RGBA")
            background = Image.new("RGB", im.size, (255, 255, 255))
            background.paste(im, mask=im.getchannel("A"))
            return background
        return im.convert("RGB")


def _fit_within_budget(
    image: Image.Image,
    max_width: int,
    max_height: int,
    quality: float,
    min_quality: float,
    max_bytes: int,
) -> tuple[bytes, int, int]:
    width, height = calculate_dimensions(image.width, image.height, max_width, max_height)
    resized = image.resize((width, height), Image.LANCZOS) if (width, height) != image.size else image
    data = _encode_jpeg(resized, quality)

    if len(data) > max_bytes:
        logger.info("Image too large (%.2fMB), compressing further", len(data) / 1024 / 1024)

    # Progressive compression first, then shrink the pixels
    while len(data) > max_bytes and quality - QUALITY_STEP >= min_quality - 1e-9:
        quality = round(quality - QUALITY_STEP, 2)
        data = _encode_jpeg(resized, quality)
        logger.debug("Recompressed to %d bytes with quality %.1f", len(data), quality)

    while len(data) > max_bytes:
        if width <= MIN_SIDE and height <= MIN_SIDE:
            raise ImageProcessingError("Image cannot be compressed below the upload limit")
        width = max(MIN_SIDE, int(width * SHRINK_FACTOR))
        height = max(MIN_SIDE, int(height * SHRINK_FACTOR))
        resized = image.resize((width, height), Image.LANCZOS)
        data = _encode_jpeg(resized, quality)
        logger.debug("Downscaled to %dx%d, %d bytes", width, height, len(data))

    return data, width, height


def optimize_image(
    file_path: str,
    generate_thumbnail: bool = False,
    config: Settings | None = None,
    max_bytes: int | None = None,
    output_dir: str | None = None,
) -> OptimizationResult:
    """Produce a JPEG no larger than ``max_bytes`` (default ``max_output_bytes``).

    Writes new temporary files and leaves ``file_path`` untouched; removing
    the source is up to the caller.
    """
    config = config or default_settings
    max_bytes = max_bytes or config.max_output_bytes

    try:
        image = _load_rgb(file_path)
        data, width, height = _fit_within_budget(
            image,
            config.profile_max_width,
            config.profile_max_height,
            config.profile_quality,
            config.min_quality,
            max_bytes,
        )
        optimized = OptimizedImage(
            path=_write_temp(data, output_dir, ".jpg"),
            width=width,
            height=height,
            size=len(data),
        )

        thumbnail = None
        if generate_thumbnail:
            thumb_data, thumb_w, thumb_h = _fit_within_budget(
                image,
                config.thumbnail_max_width,
                config.thumbnail_max_height,
                config.thumbnail_quality,
                config.min_quality,
                max_bytes,
            )
            thumbnail = OptimizedImage(
                path=_write_temp(thumb_data, output_dir, "_thumb.jpg"),
                width=thumb_w,
                height=thumb_h,
                size=len(thumb_data),
            )
    except ImageProcessingError:
        raise
    except Exception as e:
        logger.exception("Error optimizing image %s: %s", file_path, e)
        raise ImageProcessingError("Failed to optimize image") from e

    logger.info(
        "Optimized image: %dKB (%dx%d)", optimized.size // 1024, optimized.width, optimized.height
    )
    return OptimizationResult(optimized=optimized, thumbnail=thumbnail)


async def optimize_image_async(file_path: str, **kwargs) -> OptimizationResult:
    """Run ``optimize_image`` in a worker thread so the event loop stays responsive."""
    return await asyncio.to_thread(optimize_image, file_path, **kwargs)

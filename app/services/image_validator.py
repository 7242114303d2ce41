"""Cheap sanity checks on a picked image before it is optimized."""
import logging
import os

from PIL import Image, UnidentifiedImageError

from app.config import Settings, settings as default_settings
from app.schemas.photo import ValidationResult

logger = logging.getLogger(__name__)


def _mb(size: int) -> str:
    return f"{size / 1024 / 1024:.1f}MB"


def validate_image(file_path: str, config: Settings | None = None) -> ValidationResult:
    """Check that ``file_path`` is a decodable image within the configured bounds.

    Never raises for bad input: every problem is reported through
    ``ValidationResult.error`` so the caller can ask the user to pick again.
    """
    config = config or default_settings

    if not os.path.isfile(file_path):
        return ValidationResult(is_valid=False, error="Image file not found")

    size = os.path.getsize(file_path)
    if size == 0:
        return ValidationResult(is_valid=False, error="Image file is empty")
    if size > config.max_source_bytes:
        return ValidationResult(
            is_valid=False,
            error=(
                f"Image is too large ({_mb(size)}). "
                f"Please select an image under {config.max_source_bytes // (1024 * 1024)}MB."
            ),
        )

    try:
        # verify() leaves the image unusable, so read the header from a second handle
        with Image.open(file_path) as im:
            im.verify()
        with Image.open(file_path) as im:
            image_format = im.format
            width, height = im.size
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        logger.info("Rejected undecodable image %s: %s", file_path, e)
        return ValidationResult(is_valid=False, error="This file is not a supported image")
    except Image.DecompressionBombError:
        return ValidationResult(is_valid=False, error="Image dimensions are too large")

    if image_format not in config.allowed_image_formats:
        return ValidationResult(
            is_valid=False,
            error=f"Unsupported image format ({image_format}). Please use JPEG, PNG or WebP.",
        )

    if min(width, height) < config.min_image_dimension:
        return ValidationResult(
            is_valid=False,
            error=f"Image is too small ({width}x{height}). Please select a higher resolution photo.",
        )
    if max(width, height) > config.max_image_dimension:
        return ValidationResult(
            is_valid=False,
            error=f"Image dimensions are too large ({width}x{height}).",
        )

    return ValidationResult(is_valid=True)

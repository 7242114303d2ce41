import hashlib
import logging

from app.utils.exceptions import ImageProcessingError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def generate_image_hash(file_path: str) -> str:
    """SHA-256 hex digest of the file's bytes, used to spot duplicate uploads."""
    digest = hashlib.sha256()
    try:
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                digest.update(chunk)
    except OSError as e:
        logger.exception("Error generating image hash for %s", file_path)
        raise ImageProcessingError("Failed to generate image hash") from e
    return digest.hexdigest()

"""Validation of uploaded images before vision OCR."""

from typing import List

from digestai.core.config import settings
from digestai.core.exceptions import InvalidInputError
from digestai.services.llm_service import ImageInput

ALLOWED_IMAGE_TYPES = ["image/png", "image/jpeg", "image/webp", "image/gif"]


def validate_images(images: List[ImageInput]) -> float:
    """Check count, MIME type and total size. Returns the total size in MB."""
    if not images:
        raise InvalidInputError("Please provide at least one image.")
    if len(images) > settings.MAX_IMAGES:
        raise InvalidInputError(f"Maximum {settings.MAX_IMAGES} images allowed.")

    for image in images:
        if image.mime_type not in ALLOWED_IMAGE_TYPES:
            raise InvalidInputError(
                f"Invalid image type: {image.mime_type}. Allowed: PNG, JPG, WEBP, GIF"
            )

    total_mb = sum(len(image.data) for image in images) / (1024 * 1024)
    if total_mb > settings.MAX_IMAGE_TOTAL_SIZE_MB:
        raise InvalidInputError(
            f"Total image size ({total_mb:.1f}MB) exceeds limit of "
            f"{settings.MAX_IMAGE_TOTAL_SIZE_MB}MB."
        )
    return total_mb

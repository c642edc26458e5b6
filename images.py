"""Product image storage on Cloudinary."""
import logging
from typing import Optional

import cloudinary
import cloudinary.uploader

import config
from errors import Internal, ValidationError

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 5 * 1024 * 1024
UPLOAD_FOLDER = "products"


def is_configured() -> bool:
    return bool(config.CLOUDINARY_CLOUD_NAME and config.CLOUDINARY_API_KEY and config.CLOUDINARY_API_SECRET)


def configure() -> None:
    if not is_configured():
        logger.warning("Cloudinary credentials not set; image uploads are disabled")
        return
    cloudinary.config(
        cloud_name=config.CLOUDINARY_CLOUD_NAME,
        api_key=config.CLOUDINARY_API_KEY,
        api_secret=config.CLOUDINARY_API_SECRET,
        secure=True,
    )


def check_image(content_type: Optional[str], data: bytes) -> None:
    if not content_type or not content_type.startswith("image/"):
        raise ValidationError("Only image files are allowed!")
    if len(data) > MAX_IMAGE_BYTES:
        raise ValidationError("Image must be 5MB or smaller")


def upload_image(data: bytes, folder: str = UPLOAD_FOLDER) -> str:
    """Upload raw image bytes and return the public https URL."""
    if not is_configured():
        raise Internal("Image uploads are not configured")
    result = cloudinary.uploader.upload(
        data,
        folder=folder,
        resource_type="auto",
        transformation=[
            {"width": 800, "height": 800, "crop": "limit"},
            {"quality": "auto:good"},
        ],
    )
    return result["secure_url"]


def public_id_from_url(image_url: str) -> str:
    # .../upload/v123/products/abc.jpg -> products/abc
    folder_and_file = "/".join(image_url.split("/")[-2:])
    return folder_and_file.rsplit(".", 1)[0]


def delete_image(image_url: str) -> None:
    """Best effort: a failed delete is logged and does not fail the caller."""
    if not image_url or not is_configured():
        return
    try:
        cloudinary.uploader.destroy(public_id_from_url(image_url))
    except Exception:
        logger.warning("Could not delete image %s from Cloudinary", image_url, exc_info=True)

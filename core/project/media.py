import logging
import uuid
from io import BytesIO
from urllib.parse import urlparse

from django.conf import settings
from django.core.files.base import ContentFile
from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)


class InvalidImageError(ValueError):
    """Raised when an upload cannot be decoded as an image."""


def _is_absolute_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def build_media_url(raw_url: str, request=None) -> str | None:
    if not raw_url:
        return None

    if raw_url.startswith("//"):
        return f"https:{raw_url}"

    if _is_absolute_url(raw_url):
        return raw_url

    if request:
        return request.build_absolute_uri(raw_url)

    return f"{settings.BACKEND_URL.rstrip('/')}{raw_url}"


def build_file_url(file_field, request=None) -> str | None:
    if not file_field:
        return None

    try:
        raw_url = file_field.url
    except ValueError:
        # File field without an associated file
        return None

    return build_media_url(raw_url, request=request)


def optimize_image(uploaded_file) -> ContentFile:
    """
    Fit an uploaded image inside POST_IMAGE_MAX_SIZE and re-encode it as JPEG.

    Returns a named ContentFile ready to be assigned to an ImageField.
    Raises InvalidImageError if the upload is not a readable image.
    """
    try:
        image = Image.open(uploaded_file)
        image = ImageOps.exif_transpose(image)
    except (UnidentifiedImageError, OSError) as exc:
        raise InvalidImageError("Uploaded file is not a valid image") from exc

    # JPEG has no alpha channel
    if image.mode != "RGB":
        image = image.convert("RGB")

    image.thumbnail(settings.POST_IMAGE_MAX_SIZE, Image.Resampling.LANCZOS)

    buffer = BytesIO()
    image.save(buffer, format="JPEG", quality=settings.POST_IMAGE_QUALITY, optimize=True)
    logger.debug("Optimized upload to %sx%s JPEG", image.width, image.height)

    return ContentFile(buffer.getvalue(), name=f"{uuid.uuid4().hex}.jpg")

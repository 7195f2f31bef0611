"""
Institution Logo Service using Cloudinary

DESIGN DECISION: The logo printed on every report is hosted on Cloudinary
instead of being embedded in the stored settings:
1. Settings stay small (a URL instead of a data URI)
2. Cloudinary crops and resizes on upload
3. The same URL works for the screen preview and the PDF renderer

This service handles:
1. Checking the image locally with Pillow before any upload
2. Uploading with a square crop
3. Returning the secure URL to store as the institution's logo_url

A picture that cannot make a usable logo is rejected before upload.
"""

import hashlib
from io import BytesIO

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import structlog
from PIL import Image, UnidentifiedImageError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.config import get_settings


logger = structlog.get_logger("pondok_ledger.logo")

MIN_LOGO_SIDE_PX = 64
MAX_LOGO_ASPECT_RATIO = 2.0
LOGO_SIZE_PX = 512


class LogoServiceError(Exception):
    """Base exception for logo handling errors."""
    pass


class LogoRejectedError(LogoServiceError):
    """The image cannot be used as a logo."""
    pass


class LogoUploadError(LogoServiceError):
    """Failed to upload the logo to Cloudinary."""
    pass


def inspect_logo(image_bytes: bytes) -> tuple[int, int]:
    """
    Check that the bytes are a usable logo image.

    Returns:
        (width, height) of the image

    Raises:
        LogoRejectedError: If the image is unreadable, too small or too
            far from square
    """
    try:
        img = Image.open(BytesIO(image_bytes))
        img.verify()
        width, height = img.size
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise LogoRejectedError(f"File is not a readable image: {e}")

    if min(width, height) < MIN_LOGO_SIDE_PX:
        raise LogoRejectedError(
            f"Logo is too small ({width}x{height}); "
            f"minimum {MIN_LOGO_SIDE_PX}px on the smallest side"
        )

    aspect = max(width, height) / min(width, height)
    if aspect > MAX_LOGO_ASPECT_RATIO:
        raise LogoRejectedError(
            f"Logo aspect ratio {aspect:.1f} is too wide; it is printed as a square"
        )

    return width, height


class CloudinaryLogoService:
    """
    Uploads institution logos to Cloudinary.

    Flow:
    1. Receive raw image bytes
    2. Inspect them locally
    3. Upload with a square crop
    4. Return the secure URL
    """

    def __init__(self):
        self._settings = get_settings().cloudinary
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    def _public_id(self, image_bytes: bytes) -> str:
        """Same image, same public id: re-uploading overwrites."""
        digest = hashlib.md5(image_bytes).hexdigest()[:12]
        return f"logo_{digest}"

    @retry(
        retry=retry_if_exception_type(LogoUploadError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def upload_logo(self, image_bytes: bytes) -> str:
        """
        Inspect and upload a logo.

        Args:
            image_bytes: Raw image bytes from the settings form

        Returns:
            The secure URL of the uploaded logo

        Raises:
            LogoRejectedError: If the image is not usable as a logo
            LogoUploadError: If upload fails
        """
        width, height = inspect_logo(image_bytes)
        self._configure()

        try:
            result = cloudinary.uploader.upload(
                image_bytes,
                public_id=self._public_id(image_bytes),
                folder=self._settings.logo_folder,
                resource_type="image",
                overwrite=True,
                transformation=[
                    {
                        "width": LOGO_SIZE_PX,
                        "height": LOGO_SIZE_PX,
                        "crop": "pad",
                        "background": "white",
                    },
                    {"quality": "auto:best"},
                    {"fetch_format": "png"},
                ],
            )
        except cloudinary.exceptions.Error as e:
            logger.warning("logo_upload_failed", error=str(e))
            raise LogoUploadError(f"Cloudinary error: {e}")

        url = result.get("secure_url", result.get("url", ""))
        if not url:
            raise LogoUploadError("No URL returned from Cloudinary")

        logger.info("logo_uploaded", url=url, width=width, height=height)
        return url

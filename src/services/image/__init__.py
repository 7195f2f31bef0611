"""Image services package (institution logo)."""

from src.services.image.logo_service import (
    CloudinaryLogoService,
    LogoRejectedError,
    LogoServiceError,
    LogoUploadError,
    inspect_logo,
)

__all__ = [
    "CloudinaryLogoService",
    "LogoRejectedError",
    "LogoServiceError",
    "LogoUploadError",
    "inspect_logo",
]

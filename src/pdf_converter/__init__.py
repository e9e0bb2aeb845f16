"""Batch image-to-PDF conversion toolkit."""

from .config import AppConfig, PdfConfig, load_config
from .core import ConversionService
from .errors import (
    CancelledByUser,
    ConversionError,
    DecodeError,
    InputError,
    InvalidDimensionsError,
    NoImagesProcessed,
    OversizeError,
    SinkError,
)
from .library import convert_folder, convert_images_to_pdf, convert_public_images_to_pdf
from .models import BatchState, ConversionProgress, ConversionResult
from .sources import ImageSource

__all__ = [
    "AppConfig",
    "PdfConfig",
    "load_config",
    "ConversionService",
    "ConversionProgress",
    "ConversionResult",
    "BatchState",
    "ImageSource",
    "convert_images_to_pdf",
    "convert_public_images_to_pdf",
    "convert_folder",
    "ConversionError",
    "InputError",
    "DecodeError",
    "InvalidDimensionsError",
    "OversizeError",
    "CancelledByUser",
    "SinkError",
    "NoImagesProcessed",
]

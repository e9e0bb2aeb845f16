"""Error taxonomy for image-to-PDF conversion.

Every error carries a stable ``code`` so the CLI, the HTTP layer and the run
log can report failures without parsing messages. ``ItemError`` subclasses are
recovered by the conversion loop (the image is skipped); everything else
aborts the whole batch.
"""

from __future__ import annotations


class ConversionError(RuntimeError):
    code = "ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class InputError(ConversionError):
    code = "INPUT"


class CancelledByUser(ConversionError):
    code = "CANCELED"


class SinkError(ConversionError):
    code = "SINK"


class NoImagesProcessed(ConversionError):
    code = "NO_IMAGES"


class ItemError(ConversionError):
    """Failure confined to a single image of the batch."""


class DecodeError(ItemError):
    code = "DECODE"


class InvalidDimensionsError(ItemError):
    code = "INVALID_DIMENSIONS"


class OversizeError(ItemError):
    code = "SIZE_LIMIT"


__all__ = [
    "ConversionError",
    "InputError",
    "CancelledByUser",
    "SinkError",
    "NoImagesProcessed",
    "ItemError",
    "DecodeError",
    "InvalidDimensionsError",
    "OversizeError",
]

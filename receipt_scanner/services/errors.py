"""
Hard failures of the receipt scan pipeline.

Soft outcomes (no amount, defaulted date, unknown merchant) are not errors;
they are reported through confidence scores on the scan result.
"""


class ScanError(RuntimeError):
    """Base class for failures that abort a scan."""


class ImageDecodeError(ScanError):
    """The uploaded bytes could not be decoded as a raster image."""


class EngineUnavailableError(ScanError):
    """The OCR engine could not be created (missing binary or language data)."""


class RecognitionError(ScanError):
    """The OCR engine aborted while recognizing text."""

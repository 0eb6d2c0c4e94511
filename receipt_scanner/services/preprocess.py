"""
Image normalization applied before OCR.

Receipts are upscaled when narrow, converted to grayscale and binarized with
a fixed global threshold. There is no deskew, denoise or adaptive threshold.
"""

import io
import logging
import warnings
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from receipt_scanner.services.errors import ImageDecodeError

logger = logging.getLogger(__name__)

# Images narrower than this are upscaled before OCR
UPSCALE_BELOW_WIDTH = 2000
UPSCALE_FACTOR = 2

# Luma above this value becomes white, everything else black
BINARIZE_THRESHOLD = 128

# Modes that stay single channel after normalization
_SINGLE_CHANNEL_MODES = ('1', 'L', 'I', 'I;16', 'F')

_LUMA_MARGIN = 0.0005
_LUMA_SCALE = 1e6


@dataclass(frozen=True)
class NormalizedImage:
    """Black/white bitmap encoded as PNG, ready for the OCR engine."""
    data: bytes
    width: int
    height: int
    mode: str

    def to_image(self) -> Image.Image:
        """Decode the PNG payload back into a PIL image."""
        return Image.open(io.BytesIO(self.data))


def decode_image(image_data: bytes) -> Image.Image:
    """
    Decode raw bytes into a fully loaded PIL image.

    Raises:
        ImageDecodeError: If the bytes are not a decodable raster image
    """
    if not image_data:
        raise ImageDecodeError("Empty image payload")

    try:
        with warnings.catch_warnings():
            # Near-limit images are still upscaled 2x, so reject them too
            warnings.simplefilter('error', Image.DecompressionBombWarning)
            image = Image.open(io.BytesIO(image_data))
            # Force pixel decoding so truncated files fail here, not during OCR
            image.load()
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        Image.DecompressionBombWarning,
        OSError,
        SyntaxError,
        ValueError,
    ) as e:
        raise ImageDecodeError(f"Could not decode image: {e}") from e

    return image


def _luma(image: Image.Image) -> Image.Image:
    # RGB -> "F" is Y = 0.299R + 0.587G + 0.114B without 8-bit rounding
    if image.mode in _SINGLE_CHANNEL_MODES:
        if image.mode not in ('L', 'I', 'F'):
            image = image.convert('L')
        return image.convert('F')
    if image.mode != 'RGB':
        image = image.convert('RGB')
    return image.convert('F')


def binarize(gray: Image.Image, threshold: int = BINARIZE_THRESHOLD) -> Image.Image:
    """Map every luma value to 255 if strictly above threshold, else 0."""
    if gray.mode != 'F':
        gray = gray.convert('F')
    # Luma steps are 0.001 apart; the margin absorbs float32 error at the
    # threshold. Scaling pushes both sides past the 0..255 clip on convert.
    offset = -(threshold + _LUMA_MARGIN) * _LUMA_SCALE
    return gray.point(lambda y: y * _LUMA_SCALE + offset).convert('L')


def normalize_image(image: Image.Image) -> Image.Image:
    """
    Normalize a decoded image for OCR.

    The input is never mutated. Single channel inputs come back as "L",
    everything else as "RGB" with identical black/white channels.

    Args:
        image: PIL Image object

    Returns:
        New image containing only 0 and 255 channel values
    """
    source_mode = image.mode
    width, height = image.size

    if width < UPSCALE_BELOW_WIDTH:
        image = image.resize(
            (width * UPSCALE_FACTOR, height * UPSCALE_FACTOR),
            resample=Image.Resampling.BILINEAR,
        )

    bw = binarize(_luma(image))

    if source_mode in _SINGLE_CHANNEL_MODES:
        return bw
    return bw.convert('RGB')


def preprocess(image_data: bytes) -> NormalizedImage:
    """
    Decode, normalize and PNG-encode an uploaded receipt image.

    Args:
        image_data: Raw image bytes (JPEG, PNG, etc.)

    Returns:
        NormalizedImage ready for recognition

    Raises:
        ImageDecodeError: If the source cannot be decoded
    """
    image = decode_image(image_data)
    original_size = image.size

    normalized = normalize_image(image)

    buffer = io.BytesIO()
    normalized.save(buffer, format='PNG')

    logger.debug("Normalized receipt image", extra={
        "source_size": original_size,
        "normalized_size": normalized.size,
        "source_mode": image.mode,
    })

    return NormalizedImage(
        data=buffer.getvalue(),
        width=normalized.width,
        height=normalized.height,
        mode=normalized.mode,
    )

"""
Scan API router: turns an uploaded receipt photo into a reviewable draft.
Nothing is stored; the client confirms and saves the expense separately.
"""

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from typing import List
import logging

from receipt_scanner.config import settings
from receipt_scanner.models.scan import Category, ScanResult
from receipt_scanner.services.categories import CATEGORIES
from receipt_scanner.services.errors import EngineUnavailableError, ImageDecodeError, RecognitionError
from receipt_scanner.services.ocr import get_default_engine, release_default_engine
from receipt_scanner.services.scanner import ReceiptScanner

router = APIRouter(prefix="/scan", tags=["scan"])
logger = logging.getLogger(__name__)

ALLOWED_TYPES = [
    "image/jpeg", "image/jpg", "image/png", "image/webp",
    "image/bmp", "image/tiff", "image/gif",
]


def get_scanner() -> ReceiptScanner:
    """Scanner bound to the process-wide OCR engine."""
    return ReceiptScanner(engine=get_default_engine())


@router.post("", response_model=ScanResult)
async def scan_receipt(
    file: UploadFile = File(...),
    scanner: ReceiptScanner = Depends(get_scanner)
):
    """
    Scan an uploaded receipt image.

    Args:
        file: Uploaded image

    Returns:
        Extracted title, amount, date and category with confidences
    """
    if file.content_type not in ALLOWED_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type: {file.content_type}. Allowed: JPG, PNG, WEBP, BMP, TIFF, GIF"
        )

    file_data = await file.read()
    file_size_mb = len(file_data) / (1024 * 1024)

    if file_size_mb > settings.MAX_UPLOAD_MB:
        raise HTTPException(
            status_code=400,
            detail=f"File too large: {file_size_mb:.2f}MB. Maximum: {settings.MAX_UPLOAD_MB}MB"
        )

    try:
        return await scanner.scan(file_data)

    except ImageDecodeError as e:
        logger.info("Rejected undecodable upload", extra={"upload_name": file.filename})
        raise HTTPException(status_code=422, detail=str(e))

    except EngineUnavailableError as e:
        logger.error("OCR engine unavailable", extra={"error": str(e)})
        raise HTTPException(status_code=503, detail="OCR engine unavailable, please try again later")

    except RecognitionError as e:
        logger.error("OCR recognition failed", extra={"upload_name": file.filename, "error": str(e)})
        raise HTTPException(status_code=502, detail="Could not extract text from the image. Please try again.")


@router.get("/categories", response_model=List[Category])
async def list_categories():
    """Return the category catalogue used for guesses."""
    return CATEGORIES


@router.delete("/engine", status_code=204)
async def release_engine():
    """Release the shared OCR engine. A later scan creates a fresh one."""
    await release_default_engine()

"""
Receipt scan orchestration: preprocess, recognize, extract, categorize.
"""

import asyncio
import logging
from datetime import date as Date
from typing import Optional

from receipt_scanner.models.scan import ScanResult
from receipt_scanner.services.categories import guess_category
from receipt_scanner.services.ocr import OcrEngineHandle, OcrTextBlob, ProgressChannel, get_default_engine
from receipt_scanner.services.parser import extract_amount, extract_date, extract_merchant
from receipt_scanner.services.preprocess import preprocess

logger = logging.getLogger(__name__)


def build_scan_result(text: str, today: Optional[Date] = None) -> ScanResult:
    """
    Turn recognized text into a ScanResult.

    Always succeeds; missing fields come back at low confidence.

    Args:
        text: Raw OCR text
        today: Fallback date for receipts without a readable date

    Returns:
        ScanResult with the raw text attached
    """
    amount = extract_amount(text)
    receipt_date = extract_date(text, today=today)
    merchant = extract_merchant(text)

    category = guess_category(merchant.value)

    return ScanResult.from_fields(
        title=merchant,
        amount=amount,
        date=receipt_date,
        raw_text=text,
        category=category,
    )


class ReceiptScanner:
    """Service sequencing the receipt scan pipeline."""

    def __init__(self, engine: Optional[OcrEngineHandle] = None):
        """
        Args:
            engine: OCR engine handle; the process-wide one if omitted
        """
        self.engine = engine or get_default_engine()

    async def recognize(
        self,
        image_data: bytes,
        progress: Optional[ProgressChannel] = None
    ) -> OcrTextBlob:
        """
        Preprocess an image and run OCR on it.

        Raises:
            ImageDecodeError: If the image cannot be decoded
            EngineUnavailableError: If the OCR engine cannot be created
            RecognitionError: If recognition aborts
        """
        normalized = await asyncio.to_thread(preprocess, image_data)
        return await self.engine.recognize(normalized, progress=progress)

    async def scan(
        self,
        image_data: bytes,
        progress: Optional[ProgressChannel] = None,
        today: Optional[Date] = None
    ) -> ScanResult:
        """
        Scan a receipt image into a reviewable result.

        Hard failures propagate and no partial result is produced. The
        progress channel, if given, is closed when the scan ends.

        Args:
            image_data: Raw image bytes (JPEG, PNG, etc.)
            progress: Optional progress channel for the UI
            today: Fallback date for receipts without a readable date

        Returns:
            ScanResult for human review
        """
        try:
            blob = await self.recognize(image_data, progress=progress)
        finally:
            if progress is not None:
                progress.close()

        result = build_scan_result(blob.text, today=today)

        logger.info("Receipt scanned", extra={
            "title": result.title,
            "amount": result.amount,
            "date": result.date,
            "category": result.category,
            "ocr_ms": blob.duration_ms,
        })

        return result

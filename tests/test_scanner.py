"""
End-to-end tests for the scan pipeline with a stubbed OCR engine.
"""

import asyncio
import io
from datetime import date

import pytest
from PIL import Image

from receipt_scanner.services.errors import EngineUnavailableError, ImageDecodeError, RecognitionError
from receipt_scanner.services.ocr import OcrTextBlob, ProgressChannel
from receipt_scanner.services.scanner import ReceiptScanner, build_scan_result

RECEIPT_TEXT = """Joe's Coffee Shop
12 Main Street
12/01/2024 09:15
Latte 4.50
Subtotal: ₹230.00
GST 20.00
Total: ₹250.00
Thank you!
"""


def _receipt_png() -> bytes:
    buffer = io.BytesIO()
    Image.new('RGB', (120, 200), (240, 240, 240)).save(buffer, format='PNG')
    return buffer.getvalue()


class FakeEngine:
    """Stands in for OcrEngineHandle; records what it was asked to read."""

    def __init__(self, text=RECEIPT_TEXT, error=None):
        self.text = text
        self.error = error
        self.images = []

    async def recognize(self, image, progress=None):
        self.images.append(image)
        if progress is not None:
            progress.publish(0)
        if self.error is not None:
            raise self.error
        if progress is not None:
            progress.publish(100)
        return OcrTextBlob(text=self.text, engine_confidence=90.0, duration_ms=5)


class TestBuildScanResult:

    def test_synthetic_receipt(self):
        result = build_scan_result(RECEIPT_TEXT)

        assert result.title == "Joe's Coffee Shop"
        assert result.amount == "250.00"
        assert result.date == "2024-01-12"
        assert result.category == "food"
        assert result.raw_text == RECEIPT_TEXT
        assert result.confidence.title == 70
        assert result.confidence.amount == 85
        assert result.confidence.date == 80

    def test_blank_text_still_produces_a_result(self):
        result = build_scan_result("", today=date(2024, 5, 4))

        assert result.title == "Unknown Merchant"
        assert result.amount == ""
        assert result.date == "2024-05-04"
        assert result.category == "other"
        assert (result.confidence.title, result.confidence.amount, result.confidence.date) == (20, 0, 30)

    def test_expense_draft(self):
        draft = build_scan_result(RECEIPT_TEXT).to_expense_draft()
        assert draft.title == "Joe's Coffee Shop"
        assert str(draft.amount) == "250.00"
        assert draft.category == "food"
        assert draft.date == "2024-01-12"
        assert draft.is_verified is False

    def test_expense_draft_with_missing_amount(self):
        draft = build_scan_result("nothing useful").to_expense_draft()
        assert draft.amount == 0

    def test_extracted_fields(self):
        fields = build_scan_result(RECEIPT_TEXT).extracted_fields()
        assert fields["amount"].value == "250.00"
        assert fields["date"].confidence == 80


class TestReceiptScanner:

    def test_scan_end_to_end(self):
        engine = FakeEngine()
        scanner = ReceiptScanner(engine=engine)

        result = asyncio.run(scanner.scan(_receipt_png()))

        assert result.title == "Joe's Coffee Shop"
        assert result.amount == "250.00"
        assert result.date == "2024-01-12"
        assert result.category == "food"
        assert min(result.confidence.title, result.confidence.amount, result.confidence.date) > 0

        # The engine received the normalized, upscaled bitmap
        (image,) = engine.images
        assert (image.width, image.height) == (240, 400)

    def test_progress_channel_is_closed(self):
        async def run():
            channel = ProgressChannel()
            await ReceiptScanner(engine=FakeEngine()).scan(_receipt_png(), progress=channel)
            return [value async for value in channel]

        assert asyncio.run(run()) == [0, 100]

    def test_decode_error_skips_ocr(self):
        engine = FakeEngine()
        with pytest.raises(ImageDecodeError):
            asyncio.run(ReceiptScanner(engine=engine).scan(b'not an image'))
        assert engine.images == []

    @pytest.mark.parametrize("error", [
        EngineUnavailableError("no tesseract"),
        RecognitionError("aborted"),
    ])
    def test_engine_failures_abort_the_scan(self, error):
        async def run():
            channel = ProgressChannel()
            with pytest.raises(type(error)):
                await ReceiptScanner(engine=FakeEngine(error=error)).scan(_receipt_png(), progress=channel)
            return channel

        channel = asyncio.run(run())
        assert channel.closed

"""
OCR service for recognizing text on normalized receipt images.

The tesseract engine is owned by an OcrEngineHandle: created lazily on the
first recognition, reused across scans and torn down with release().
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple

import pytesseract
from PIL import Image

from receipt_scanner.config import settings
from receipt_scanner.services.errors import EngineUnavailableError, RecognitionError
from receipt_scanner.services.preprocess import NormalizedImage

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]

# pytesseract reads the binary path from a module global; it is set under
# this lock immediately before every tesseract call.
_TESSERACT_CMD_LOCK = threading.Lock()


@dataclass(frozen=True)
class OcrTextBlob:
    """Full recognized text of one image plus tesseract's mean word confidence."""
    text: str
    engine_confidence: Optional[float] = None
    duration_ms: int = 0


class ProgressChannel:
    """
    Bounded, lossy stream of recognition progress (0-100).

    Values are clamped and never decrease. When the buffer is full the
    oldest tick is dropped; ticks the consumer missed are not re-delivered.
    Must be used from the event loop thread.
    """

    _CLOSED = object()

    def __init__(self, maxsize: Optional[int] = None, callback: Optional[ProgressCallback] = None):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=(maxsize or settings.PROGRESS_BUFFER) + 1)
        self._callback = callback
        self._last = -1
        self._closed = False

    @property
    def last(self) -> Optional[int]:
        """Most recent published value, or None before the first tick."""
        return self._last if self._last >= 0 else None

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, percent: int) -> None:
        """Publish a progress tick; stale or repeated values are ignored."""
        if self._closed:
            return

        percent = max(0, min(100, int(percent)))
        if percent <= self._last:
            return
        self._last = percent

        # Keep one slot free for the close marker
        while self._queue.qsize() >= self._queue.maxsize - 1:
            self._queue.get_nowait()
        self._queue.put_nowait(percent)

        if self._callback is not None:
            self._callback(percent)

    def close(self) -> None:
        """Signal the end of the stream to consumers."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(self._CLOSED)

    def __aiter__(self) -> AsyncIterator[int]:
        return self

    async def __anext__(self) -> int:
        item = await self._queue.get()
        if item is self._CLOSED:
            # Leave the marker for any other consumer
            self._queue.put_nowait(self._CLOSED)
            raise StopAsyncIteration
        return item


def _assemble_text(data: Dict[str, List]) -> Tuple[str, Optional[float]]:
    """
    Rebuild line-oriented text from tesseract word boxes.

    Words are grouped by (page, block, paragraph, line) in reading order.

    Returns:
        Tuple of (text, mean word confidence or None)
    """
    lines: Dict[Tuple[int, int, int, int], List[str]] = {}
    confidences: List[float] = []

    for i, word in enumerate(data.get('text', [])):
        word = (word or '').strip()
        if not word:
            continue

        key = (
            data['page_num'][i],
            data['block_num'][i],
            data['par_num'][i],
            data['line_num'][i],
        )
        lines.setdefault(key, []).append(word)

        try:
            conf = float(data['conf'][i])
        except (TypeError, ValueError, KeyError, IndexError):
            continue
        if conf >= 0:
            confidences.append(conf)

    text = "\n".join(" ".join(words) for words in lines.values())
    mean_conf = round(sum(confidences) / len(confidences), 2) if confidences else None
    return text, mean_conf


class TesseractEngine:
    """A configured tesseract instance. Not thread-safe; owned by OcrEngineHandle."""

    def __init__(
        self,
        tesseract_cmd: str,
        lang: str,
        oem: int,
        psm: int,
        char_whitelist: str,
        timeout: float = 0
    ):
        self.tesseract_cmd = tesseract_cmd
        self.lang = lang
        self.oem = oem
        self.psm = psm
        self.char_whitelist = char_whitelist
        self.timeout = timeout
        self.version = None

    @classmethod
    def create(cls, **kwargs) -> "TesseractEngine":
        """
        Configure tesseract and check that the binary and language data exist.

        Raises:
            EngineUnavailableError: If tesseract or the language model is missing
        """
        engine = cls(**kwargs)

        try:
            with _TESSERACT_CMD_LOCK:
                pytesseract.pytesseract.tesseract_cmd = engine.tesseract_cmd
                engine.version = pytesseract.get_tesseract_version()
                available = set(pytesseract.get_languages(config=''))
        except pytesseract.TesseractNotFoundError as e:
            raise EngineUnavailableError(f"Tesseract not found at {engine.tesseract_cmd!r}") from e
        except (pytesseract.TesseractError, RuntimeError, OSError) as e:
            raise EngineUnavailableError(f"Tesseract failed to start: {e}") from e

        missing = [lang for lang in engine.lang.split('+') if lang not in available]
        if missing:
            raise EngineUnavailableError(
                f"Missing tesseract language data: {', '.join(missing)}"
            )

        return engine

    @property
    def config(self) -> str:
        """Command line options passed to tesseract."""
        cfg = f'--oem {self.oem} --psm {self.psm}'
        if self.char_whitelist:
            cfg += f' -c "tessedit_char_whitelist={self.char_whitelist}"'
        return cfg

    def recognize(self, image: Image.Image) -> Tuple[str, Optional[float]]:
        """
        Run tesseract on a PIL image.

        Raises:
            EngineUnavailableError: If the tesseract binary disappeared
            RecognitionError: If tesseract fails or times out
        """
        try:
            with _TESSERACT_CMD_LOCK:
                pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd
                data = pytesseract.image_to_data(
                    image,
                    lang=self.lang,
                    config=self.config,
                    timeout=self.timeout,
                    output_type=pytesseract.Output.DICT,
                )
        except pytesseract.TesseractNotFoundError as e:
            raise EngineUnavailableError("Tesseract binary is no longer available") from e
        except RuntimeError as e:
            # TesseractError and pytesseract's timeout are both RuntimeErrors
            raise RecognitionError(f"Recognition aborted: {e}") from e

        return _assemble_text(data)


class OcrEngineHandle:
    """
    Owner of a single lazily created TesseractEngine.

    Creation, configuration, recognition and release are serialized on one
    lock, so concurrent scans never interleave on the engine. Blocking
    tesseract calls run in a worker thread.
    """

    def __init__(
        self,
        tesseract_cmd: Optional[str] = None,
        lang: Optional[str] = None,
        oem: Optional[int] = None,
        psm: Optional[int] = None,
        char_whitelist: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self._engine_kwargs = {
            'tesseract_cmd': tesseract_cmd or settings.TESSERACT_CMD,
            'lang': lang or settings.OCR_LANG,
            'oem': settings.OCR_OEM if oem is None else oem,
            'psm': settings.OCR_PSM if psm is None else psm,
            'char_whitelist': settings.OCR_CHAR_WHITELIST if char_whitelist is None else char_whitelist,
            'timeout': settings.OCR_TIMEOUT_SECONDS if timeout is None else timeout,
        }
        self._engine: Optional[TesseractEngine] = None
        self._lock = asyncio.Lock()

    @property
    def is_active(self) -> bool:
        return self._engine is not None

    async def _ensure_engine(self) -> TesseractEngine:
        # Caller holds self._lock
        if self._engine is None:
            logger.info("Creating OCR engine", extra={
                "tesseract_cmd": self._engine_kwargs['tesseract_cmd'],
                "lang": self._engine_kwargs['lang'],
            })
            self._engine = await asyncio.to_thread(TesseractEngine.create, **self._engine_kwargs)
            logger.info("OCR engine ready", extra={"version": str(self._engine.version)})
        return self._engine

    async def recognize(
        self,
        image: NormalizedImage,
        progress: Optional[ProgressChannel] = None
    ) -> OcrTextBlob:
        """
        Recognize the text on a normalized image.

        Args:
            image: Output of the preprocessor
            progress: Optional channel receiving 0 at start and 100 on success

        Returns:
            OcrTextBlob with the recognized text

        Raises:
            EngineUnavailableError: If the engine cannot be created
            RecognitionError: If recognition aborts
        """
        async with self._lock:
            if progress is not None:
                progress.publish(0)

            engine = await self._ensure_engine()

            started = time.monotonic()
            try:
                text, engine_conf = await asyncio.to_thread(engine.recognize, image.to_image())
            except EngineUnavailableError:
                self._engine = None
                raise
            except RecognitionError:
                logger.warning("OCR recognition failed", exc_info=True)
                raise
            duration_ms = int((time.monotonic() - started) * 1000)

            if progress is not None:
                progress.publish(100)

        logger.debug("OCR recognition finished", extra={
            "duration_ms": duration_ms,
            "characters": len(text),
            "engine_confidence": engine_conf,
        })

        return OcrTextBlob(text=text, engine_confidence=engine_conf, duration_ms=duration_ms)

    async def release(self) -> None:
        """Tear down the engine. Safe to call when none exists."""
        async with self._lock:
            if self._engine is None:
                return
            self._engine = None
            logger.info("OCR engine released")

    async def __aenter__(self) -> "OcrEngineHandle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()


_default_engine: Optional[OcrEngineHandle] = None


def get_default_engine() -> OcrEngineHandle:
    """Return the process-wide engine handle used by the HTTP app."""
    global _default_engine
    if _default_engine is None:
        _default_engine = OcrEngineHandle()
    return _default_engine


async def release_default_engine() -> None:
    """Release the process-wide engine if one was ever requested."""
    if _default_engine is not None:
        await _default_engine.release()

"""
Lottery Ticket Processing Module
Decodes uploaded ticket photos and runs them through either the local
Tesseract engine or Gemini, returning a TicketCandidate-shaped response.
"""

import base64
import binascii
import re
from typing import Any, Dict, Optional

from loguru import logger

from xoso import config
from xoso.gemini_service import GeminiService, create_gemini_service
from xoso.image_preprocessor import ImagePreprocessor
from xoso.info_extractor import LotteryInfoExtractor


class OcrError(Exception):
    """User-facing OCR failure."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def decode_image_payload(image: str) -> bytes:
    """
    Base64 string or data URL -> raw bytes.

    Raises:
        OcrError: when the payload is empty or not base64
    """
    if not image or not image.strip():
        raise OcrError("Không có ảnh được gửi lên.", 400)
    data = re.sub(r'^data:image/[\w.+-]+;base64,', '', image.strip())
    try:
        decoded = base64.b64decode(data, validate=False)
    except (binascii.Error, ValueError) as e:
        raise OcrError(f"Ảnh không hợp lệ: {e}", 400) from e
    if not decoded:
        raise OcrError("Không có ảnh được gửi lên.", 400)
    return decoded


class TesseractEngine:
    """Local OCR: Pillow preprocessing + pytesseract (vie+eng)."""

    name = "tesseract"
    LANGUAGES = "vie+eng"
    CONFIG = "--oem 3 --psm 6"

    def __init__(self, preprocessor: Optional[ImagePreprocessor] = None):
        self.preprocessor = preprocessor or ImagePreprocessor()
        tesseract_cmd = config.get_tesseract_cmd()
        if tesseract_cmd:
            import pytesseract
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def recognize(self, image_data: bytes) -> Dict[str, Any]:
        """
        Returns:
            {'text': str, 'confidence': float 0-100}
        """
        import pytesseract

        image = self.preprocessor.prepare_for_ocr(image_data)
        data = pytesseract.image_to_data(
            image, lang=self.LANGUAGES, config=self.CONFIG, output_type=pytesseract.Output.DICT
        )

        words = []
        confidences = []
        line_key = None
        lines = []
        for i, word in enumerate(data.get('text', [])):
            conf = float(data['conf'][i])
            if not word or not word.strip() or conf < 0:
                continue
            key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            if key != line_key:
                if words:
                    lines.append(" ".join(words))
                words = []
                line_key = key
            words.append(word.strip())
            confidences.append(conf)
        if words:
            lines.append(" ".join(words))

        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        return {'text': "\n".join(lines), 'confidence': round(confidence, 1)}


class TicketProcessor:
    """
    Runs OCR in the requested mode and extracts lottery info.

    Modes: "gemini", "tesseract", "auto" (Gemini when configured).
    """

    def __init__(self, gemini_service: Optional[GeminiService] = None,
                 local_engine: Optional[TesseractEngine] = None):
        self.gemini_service = gemini_service
        self.local_engine = local_engine or TesseractEngine()
        self.extractor = LotteryInfoExtractor()

    @property
    def cloud_available(self) -> bool:
        return self.gemini_service is not None

    def resolve_mode(self, mode: Optional[str]) -> str:
        requested = (mode or config.get_ocr_default_mode()).strip().lower()
        if requested not in config.OCR_MODES:
            raise OcrError(f"Chế độ OCR không hợp lệ: {mode}", 400)
        if requested == "auto":
            return "gemini" if self.cloud_available else "tesseract"
        return requested

    def process_ticket_image(self, image_data: bytes, mode: Optional[str] = None) -> Dict[str, Any]:
        """
        Main method to process a ticket image.

        Raises:
            OcrError: with a user-facing message and HTTP status hint
        """
        engine = self.resolve_mode(mode)

        if engine == "gemini":
            if not self.cloud_available:
                raise OcrError(
                    "Gemini API key chưa được cấu hình. Vui lòng dùng chế độ Tesseract.", 503
                )
            upload = self.local_engine.preprocessor.compress_for_upload(image_data, max_width=500, quality=60)
            result = self.gemini_service.process_ticket_image(upload)
            if not result.get('success'):
                raise OcrError(result.get('error') or "Lỗi nhận diện AI", 429 if result.get('rate_limited') else 502)
            return {
                'success': True,
                'numbers': result.get('numbers', []),
                'date': result.get('date'),
                'province': result.get('province'),
                'rawText': result.get('rawText', ""),
                'confidence': 95.0,
                'engine': "gemini",
                'modelUsed': result.get('modelUsed'),
            }

        try:
            recognized = self.local_engine.recognize(image_data)
        except ValueError as e:
            raise OcrError(f"Ảnh không hợp lệ: {e}", 400) from e
        except Exception as e:
            logger.error(f"Local OCR failed: {e}")
            raise OcrError("Lỗi xử lý ảnh với Tesseract. Vui lòng thử lại hoặc dùng chế độ AI.", 500) from e

        candidate = self.extractor.extract(recognized['text'])
        logger.info(f"Tesseract read {len(recognized['text'])} chars, confidence {recognized['confidence']}")
        return {
            'success': True,
            'numbers': candidate.numbers,
            'date': candidate.date,
            'province': candidate.province,
            'rawText': recognized['text'],
            'confidence': recognized['confidence'],
            'engine': "tesseract",
        }


def create_ticket_processor() -> TicketProcessor:
    return TicketProcessor(gemini_service=create_gemini_service())

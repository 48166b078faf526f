"""
Google Gemini AI Service for Lottery Ticket Processing
Cloud OCR: sends the ticket photo to a Gemini vision model and reads back
the ticket number, draw date and province as JSON.
"""

import json
import re
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import google.generativeai as genai
from loguru import logger

from xoso import config
from xoso.info_extractor import LotteryInfoExtractor
from xoso.provinces import get_province


PROMPT = """Bạn là chuyên gia nhận diện vé số Việt Nam. Hãy phân tích ảnh vé số này và trích xuất thông tin:

1. **SỐ VÉ** (QUAN TRỌNG NHẤT): Tìm dãy số 6 chữ số trên vé (thường được in lớn, nổi bật). Đây là số dùng để dò giải.

2. **NGÀY MỞ THƯỞNG**: Tìm ngày xổ số (định dạng DD/MM/YYYY hoặc DD-MM-YYYY).

3. **TỈNH/ĐÀI**: Xác định đài xổ số (ví dụ: Đồng Tháp, TP.HCM, Bình Dương, Cần Thơ, v.v.)

Trả lời theo định dạng JSON sau (KHÔNG thêm markdown code block):
{
    "numbers": ["123456"],
    "date": "DD-MM-YYYY",
    "province": "tên-tỉnh-viết-thường-có-dấu-gạch-ngang",
    "rawText": "toàn bộ text đọc được trên vé"
}

Lưu ý về province slug:
- TP Hồ Chí Minh -> "tphcm"
- Đồng Tháp -> "dong-thap"
- Cần Thơ -> "can-tho"
- Bình Dương -> "binh-duong"
- Đà Lạt/Lâm Đồng -> "da-lat"
- Miền Bắc/Hà Nội -> "mien-bac"
- Các tỉnh khác: tên không dấu, viết thường, nối bằng dấu gạch ngang

Nếu không tìm thấy thông tin nào, để mảng/chuỗi rỗng."""

MSG_UNAVAILABLE = (
    "Không thể kết nối Gemini AI. Vui lòng thử lại sau hoặc dùng chế độ Tesseract."
)
MSG_QUOTA = (
    "API đã hết quota. Vui lòng chờ vài giây và thử lại, hoặc chuyển sang chế độ Tesseract."
)


def _is_rate_limit(error: Exception) -> bool:
    message = str(error).lower()
    return "429" in message or "quota" in message or "resource exhausted" in message or "resourceexhausted" in type(error).__name__.lower()


def _is_model_missing(error: Exception) -> bool:
    message = str(error).lower()
    return "404" in message or "not found" in message


def strip_code_fence(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith('```json'):
        cleaned = cleaned[7:]
    if cleaned.startswith('```'):
        cleaned = cleaned[3:]
    if cleaned.endswith('```'):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def normalize_model_date(raw: Optional[str]) -> Optional[str]:
    """DD-MM-YYYY or DD/MM/YYYY from the model -> YYYY-MM-DD; ISO passes through."""
    if not raw:
        return None
    s = str(raw).strip()
    m = re.fullmatch(r'(\d{1,2})[-/](\d{1,2})[-/](\d{4})', s)
    if m:
        d, mo, y = m.groups()
        return f"{y}-{mo.zfill(2)}-{d.zfill(2)}"
    m = re.fullmatch(r'(\d{4})-(\d{1,2})-(\d{1,2})', s)
    if m:
        y, mo, d = m.groups()
        return f"{y}-{mo.zfill(2)}-{d.zfill(2)}"
    return None


class GeminiService:
    """
    Google Gemini AI service for processing lottery ticket images.
    Tries each model in MODELS_TO_TRY; rate limits are retried on the same
    model after a backoff, other failures move on to the next model.
    """

    MODELS_TO_TRY = ['gemini-2.0-flash', 'gemini-2.0-flash-lite']
    MAX_ATTEMPTS_PER_MODEL = 2
    RATE_LIMIT_BACKOFF_SECONDS = 4.0

    def __init__(self, api_key: Optional[str] = None, sleep: Callable[[float], None] = time.sleep):
        """Initialize the Gemini service with API configuration."""
        self.api_key = api_key or config.get_gemini_api_key()
        if not self.api_key:
            raise ValueError("GEMINI_API_KEY environment variable is required")

        genai.configure(api_key=self.api_key)
        self._sleep = sleep
        self.extractor = LotteryInfoExtractor()
        logger.info("Gemini service initialized successfully")

    def _generate(self, model_name: str, image_data: bytes) -> str:
        model = genai.GenerativeModel(model_name)
        response = model.generate_content([
            {'mime_type': 'image/jpeg', 'data': image_data},
            PROMPT,
        ])
        return response.text or ""

    def _generate_with_fallback(self, image_data: bytes) -> Tuple[str, Optional[str], Optional[Exception]]:
        """Returns (text, model_used, last_error); text is '' when every model failed."""
        last_error: Optional[Exception] = None

        for model_name in self.MODELS_TO_TRY:
            for attempt in range(self.MAX_ATTEMPTS_PER_MODEL):
                try:
                    logger.debug(f"Trying {model_name} (attempt {attempt + 1})")
                    text = self._generate(model_name, image_data)
                    if text:
                        return text, model_name, None
                    logger.warning(f"Empty response from {model_name}")
                    break
                except Exception as e:
                    last_error = e
                    if _is_rate_limit(e):
                        logger.warning(f"Rate limited on {model_name}, waiting {self.RATE_LIMIT_BACKOFF_SECONDS}s")
                        self._sleep(self.RATE_LIMIT_BACKOFF_SECONDS)
                        continue
                    if _is_model_missing(e):
                        logger.warning(f"Model {model_name} not found, trying next")
                    else:
                        logger.error(f"Error with {model_name}: {e}")
                    break

        return "", None, last_error

    def process_ticket_image(self, image_data: bytes) -> Dict[str, Any]:
        """
        Process a lottery ticket image using Gemini.

        Args:
            image_data: JPEG/PNG bytes

        Returns:
            Dictionary with numbers, date (YYYY-MM-DD), province slug, raw text
        """
        text, model_used, last_error = self._generate_with_fallback(image_data)

        if not text:
            rate_limited = last_error is not None and _is_rate_limit(last_error)
            detail = str(last_error) if last_error else "Unknown error"
            return {
                'success': False,
                'numbers': [],
                'error': MSG_QUOTA if rate_limited else f"{MSG_UNAVAILABLE} ({detail})",
                'rate_limited': rate_limited,
                'extraction_method': 'gemini_vision',
            }

        parsed = self.parse_model_reply(text)
        parsed.update({'success': True, 'modelUsed': model_used, 'extraction_method': 'gemini_vision'})
        logger.info(f"Gemini ({model_used}) extracted {len(parsed['numbers'])} number(s)")
        return parsed

    def parse_model_reply(self, text: str) -> Dict[str, Any]:
        """
        Interpret the model's JSON reply; fall back to raw 6-digit runs when
        the reply is not JSON. Missing date/province are filled from the
        raw text by the info extractor.
        """
        try:
            data = json.loads(strip_code_fence(text))
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")
        except ValueError as e:
            logger.warning(f"Gemini reply is not JSON ({e}), extracting numbers from text")
            numbers = list(dict.fromkeys(re.findall(r'(?<!\d)\d{6}(?!\d)', text)))
            candidate = self.extractor.extract(text)
            return {
                'numbers': numbers,
                'date': candidate.date,
                'province': candidate.province,
                'rawText': text,
            }

        numbers = self._clean_numbers(data.get('numbers'))
        raw_text = data.get('rawText') if isinstance(data.get('rawText'), str) else ""
        date = normalize_model_date(data.get('date'))
        province = data.get('province') if isinstance(data.get('province'), str) else None
        if province and get_province(province.strip().lower()) is None:
            logger.warning(f"Gemini returned unknown province '{province}', ignoring it")
            province = None
        elif province:
            province = province.strip().lower()

        if raw_text and (date is None or province is None or not numbers):
            candidate = self.extractor.extract(raw_text)
            date = date or candidate.date
            province = province or candidate.province
            if not numbers:
                numbers = [n for n in candidate.numbers if len(n) == 6]

        return {'numbers': numbers, 'date': date, 'province': province, 'rawText': raw_text}

    @staticmethod
    def _clean_numbers(values: Any) -> List[str]:
        if not isinstance(values, list):
            return []
        cleaned: List[str] = []
        for value in values:
            digits = re.sub(r'\D', '', str(value))
            if 2 <= len(digits) <= 6 and digits not in cleaned:
                cleaned.append(digits)
        return cleaned


def create_gemini_service() -> Optional[GeminiService]:
    """
    Gemini service when GEMINI_API_KEY is configured, otherwise None.
    """
    if not config.get_gemini_api_key():
        logger.info("GEMINI_API_KEY not set - cloud OCR disabled")
        return None
    try:
        return GeminiService()
    except Exception as e:
        logger.error(f"Failed to create Gemini service: {str(e)}")
        return None

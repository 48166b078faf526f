"""
API endpoint for ticket OCR.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from xoso.ticket_processor import OcrError, TicketProcessor, decode_image_payload

ocr_router = APIRouter(prefix="/api/ocr", tags=["ocr"])


class OcrRequest(BaseModel):
    image: str = ""
    mode: Optional[str] = None


def get_ticket_processor(request: Request) -> TicketProcessor:
    return request.app.state.ticket_processor


@ocr_router.post("")
def recognize_ticket(body: OcrRequest, processor: TicketProcessor = Depends(get_ticket_processor)):
    """
    Read a ticket photo (base64 or data URL) and return candidate numbers,
    draw date (YYYY-MM-DD) and province slug for the user to confirm.
    """
    try:
        image_data = decode_image_payload(body.image)
        return processor.process_ticket_image(image_data, body.mode)
    except OcrError as e:
        logger.warning(f"OCR request failed ({e.status_code}): {e.message}")
        return JSONResponse(
            status_code=e.status_code,
            content={"success": False, "numbers": [], "error": e.message},
        )
    except Exception as e:
        logger.error(f"Unexpected OCR error: {e}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "numbers": [], "error": "Lỗi khi xử lý ảnh"},
        )

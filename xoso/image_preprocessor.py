"""
Image preprocessing for lottery ticket OCR.

Local OCR gets a high-contrast black/white rendition; the cloud model gets
a downscaled JPEG (ticket digits are printed large, so small images read
fine and cost fewer tokens).
"""

import io
from typing import Optional

from loguru import logger
from PIL import Image, ImageEnhance, ImageOps


class ImagePreprocessor:
    """Pillow based preprocessing for ticket photos."""

    CONTRAST_FACTOR = 1.5
    BINARY_THRESHOLD = 140
    MIN_OCR_WIDTH = 1000
    TARGET_OCR_WIDTH = 1200

    def load(self, image_data: bytes) -> Image.Image:
        """
        Decode image bytes, honoring EXIF rotation from phone cameras.

        Raises:
            ValueError: if the bytes are not a readable image
        """
        try:
            image = Image.open(io.BytesIO(image_data))
            image.load()
        except Exception as e:
            raise ValueError(f"Unreadable image: {e}") from e
        return ImageOps.exif_transpose(image)

    def prepare_for_ocr(self, image_data: bytes) -> Image.Image:
        """Grayscale, contrast boost, upscale small photos, then binarize."""
        image = self.load(image_data)
        logger.debug(f"Original image size: {image.size}, mode: {image.mode}")

        gray = image.convert('L')
        gray = ImageEnhance.Contrast(gray).enhance(self.CONTRAST_FACTOR)
        gray = self._resize_for_ocr(gray)

        threshold = self.BINARY_THRESHOLD
        return gray.point(lambda p: 255 if p > threshold else 0)

    def compress_for_upload(self, image_data: bytes, max_width: int = 800, quality: int = 70) -> bytes:
        """JPEG re-encode no wider than max_width; returns input unchanged if it cannot be decoded."""
        try:
            image = self.load(image_data)
        except ValueError as e:
            logger.warning(f"Skipping compression: {e}")
            return image_data

        if image.mode != 'RGB':
            image = image.convert('RGB')

        width, height = image.size
        if width > max_width:
            image = image.resize((max_width, int(height * max_width / width)), Image.Resampling.LANCZOS)

        buffer = io.BytesIO()
        image.save(buffer, format='JPEG', quality=quality, optimize=True)
        logger.debug(f"Compressed image {width}x{height} -> {image.size[0]}x{image.size[1]}")
        return buffer.getvalue()

    def _resize_for_ocr(self, image: Image.Image, target_width: Optional[int] = None) -> Image.Image:
        width, height = image.size
        if width >= self.MIN_OCR_WIDTH:
            return image
        target = target_width or self.TARGET_OCR_WIDTH
        return image.resize((target, int(height * target / width)), Image.Resampling.LANCZOS)

"""
Receipt OCR: text extraction with Tesseract and amount detection
"""

import asyncio
import io
import logging
import re
from typing import Optional, Union

import httpx
import pytesseract
from PIL import Image

from ..config import OCR_LANGUAGES

logger = logging.getLogger(__name__)

# Whole digit runs first so "1250000" is not split into "125" + "000" + "0"
AMOUNT_PATTERN = re.compile(
    r"\$?\s?\d{4,}(?:[.,]\d{1,2})?(?!\d)|\$?\s?\d{1,3}(?:[.,]\d{3})*(?:[.,]\d{1,2})?"
)


def _recognize(data: bytes) -> str:
    with Image.open(io.BytesIO(data)) as image:
        return pytesseract.image_to_string(image, lang=OCR_LANGUAGES) or ""


async def extract_text_from_image(source: Union[bytes, str]) -> str:
    """Run OCR on raw image bytes or on an image URL"""
    if isinstance(source, str):
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.get(source)
            response.raise_for_status()
            data = response.content
    else:
        data = source

    # Tesseract is CPU bound; keep it off the event loop
    text = await asyncio.to_thread(_recognize, data)
    logger.info(f"🔎 OCR extracted {len(text)} characters")
    return text


def _to_number(cleaned: str) -> Optional[float]:
    dots = cleaned.count(".")
    commas = cleaned.count(",")

    if dots > 1:
        # 1.250.000 or 1.250.000,50
        candidate = cleaned.replace(".", "").replace(",", ".")
    elif commas > 1:
        # 1,250,000 or 1,250,000.50
        candidate = cleaned.replace(",", "")
    elif dots == 1 and commas == 1:
        if cleaned.index(".") < cleaned.index(","):
            candidate = cleaned.replace(".", "").replace(",", ".")  # 1.250,50
        else:
            candidate = cleaned.replace(",", "")  # 1,250.50
    elif commas == 1 or dots == 1:
        separator = "," if commas else "."
        whole, fraction = cleaned.split(separator)
        # Three trailing digits mean a thousands group (50.000, 1,250)
        candidate = whole + fraction if len(fraction) == 3 else f"{whole}.{fraction}"
    else:
        candidate = cleaned

    try:
        return float(candidate)
    except ValueError:
        return None


def parse_amount_from_text(text: Optional[str]) -> Optional[float]:
    """
    Pick the largest plausible money amount in OCR output.

    Understands $1.250.000, 50.000, 1,250,000, 1250000 and $1.250,50 and
    corrects the usual OCR confusions (O for 0, l/I for 1). Returns None
    when no positive amount is found.
    """
    if not text:
        return None

    normalized = re.sub(r"\s+", " ", text)
    normalized = re.sub(r"[Oo]", "0", normalized)
    normalized = re.sub(r"[lI]", "1", normalized)

    best = None
    for raw in AMOUNT_PATTERN.findall(normalized):
        value = _to_number(re.sub(r"[\s$]", "", raw))
        if value is not None and value > 0 and (best is None or value > best):
            best = value
    return best

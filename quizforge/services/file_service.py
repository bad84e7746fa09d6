import io
import re
import logging
import asyncio
from typing import List, Optional

import fitz  # PyMuPDF
from PIL import Image, UnidentifiedImageError
import google.generativeai as genai

from quizforge.core.config import settings

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp")
TEXT_EXTENSIONS = (".txt", ".md")
MAX_PDF_PAGES = 200


async def extract_text_from_file(file_content: bytes, filename: str) -> dict:
    """
    Turn uploaded study material into plain text for question generation.
    PDF via PyMuPDF, images via Gemini Vision, .txt/.md decoded as UTF-8.
    Returns: {"text": str, "success": bool}
    """
    filename = (filename or "").lower()

    # ── Validate file size ────────────────────────────
    max_bytes = settings.MAX_FILE_SIZE_MB * 1024 * 1024
    if len(file_content) > max_bytes:
        raise ValueError(f"File exceeds {settings.MAX_FILE_SIZE_MB}MB limit.")

    if len(file_content) == 0:
        raise ValueError("File is empty.")

    try:
        if filename.endswith(".pdf"):
            if not file_content.startswith(PDF_MAGIC):
                raise ValueError("File does not appear to be a valid PDF (invalid magic bytes).")
            text = await _extract_from_pdf(file_content)
        elif filename.endswith(IMAGE_EXTENSIONS):
            text = await _extract_from_image(file_content)
        elif filename.endswith(TEXT_EXTENSIONS):
            text = _decode_text(file_content)
        else:
            raise ValueError("Unsupported format. Use PDF, PNG, JPG, JPEG, WEBP, TXT or MD.")

        text = preprocess_text(text)
        if not text:
            raise ValueError("No text found in file.")

        logger.info(f"[MATERIALS] ✓ {filename}: {len(text)} chars extracted")
        return {"text": text, "success": True}

    except ValueError:
        raise
    except Exception as e:
        logger.error(f"[MATERIALS] Processing failed for {filename}: {str(e)}")
        raise ValueError(f"Processing error: {str(e)}")


def _decode_text(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValueError("Text file is not valid UTF-8.")


async def _extract_from_pdf(content: bytes) -> str:
    """Runs in a thread pool to avoid blocking the event loop."""
    def _process_pdf(data: bytes) -> str:
        try:
            with fitz.open(stream=data, filetype="pdf") as doc:
                if doc.page_count == 0:
                    raise ValueError("PDF has no pages.")

                if doc.page_count > MAX_PDF_PAGES:
                    raise ValueError(f"PDF too large (>{MAX_PDF_PAGES} pages).")

                pages = [page.get_text("text") for page in doc]
                text_blocks = [text for text in pages if text.strip()]

                if not text_blocks:
                    raise ValueError("No text content found in PDF.")

                return "\n\n".join(text_blocks)
        except ValueError:
            raise
        except Exception as e:
            raise ValueError(f"PDF extraction failed: {str(e)}")

    return await asyncio.to_thread(_process_pdf, content)


async def _extract_from_image(content: bytes) -> str:
    """OCR through the Gemini vision model."""
    if not settings.GOOGLE_API_KEY:
        raise ValueError("Image extraction requires GOOGLE_API_KEY.")

    try:
        image = Image.open(io.BytesIO(content))
    except UnidentifiedImageError:
        raise ValueError("File is not a readable image.")

    w, h = image.size
    if w < 50 or h < 50:
        raise ValueError("Image too small to contain readable text.")

    try:
        model = genai.GenerativeModel(
            settings.GEMINI_VISION_MODEL,
            generation_config={"temperature": 0},
        )
        prompt = (
            "Extract all legible text from this image accurately. "
            "Maintain the structure where possible."
        )
        response = await asyncio.to_thread(model.generate_content, [prompt, image])
        result = response.text.strip()
    except Exception as e:
        raise ValueError(f"Image OCR failed: {str(e)}")

    if not result or result.lower() in ["no text found", "no_text_found"]:
        raise ValueError("No readable text in image.")

    return result


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# TEXT PREPARATION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def preprocess_text(text: str) -> str:
    """Collapse runs of spaces/tabs and blank lines; keep paragraph breaks."""
    text = re.sub(r"[ \t\u00a0]+", " ", text or "")
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def chunk_text(text: str, chunk_size: Optional[int] = None) -> List[str]:
    """Split text into chunks respecting sentence boundaries."""
    chunk_size = chunk_size or settings.CHUNK_SIZE
    if len(text) <= chunk_size:
        return [text]

    chunks: List[str] = []
    current = ""
    sentences = re.split(r"(?<=[.!?؟。])\s+", text)

    for sentence in sentences:
        if len(current) + len(sentence) + 1 > chunk_size and current:
            chunks.append(current.strip())
            current = sentence
        else:
            current = f"{current} {sentence}" if current else sentence

    if current.strip():
        chunks.append(current.strip())

    return chunks if chunks else [text]

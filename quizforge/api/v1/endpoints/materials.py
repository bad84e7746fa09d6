import logging

from fastapi import APIRouter, File, UploadFile

from quizforge.core.errors import ErrorCode, create_ai_error
from quizforge.schemas.common import MaterialText
from quizforge.services.file_service import chunk_text, extract_text_from_file

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/materials", tags=["Materials"])


@router.post("/upload")
async def upload_material(file: UploadFile = File(...)):
    """Extract study text from a PDF, image or text file, pre-chunked for generation."""
    content = await file.read()
    filename = file.filename or "unknown"

    try:
        result = await extract_text_from_file(content, filename)
    except ValueError as e:
        raise create_ai_error(ErrorCode.INVALID_INPUT, str(e), context={"file_name": filename})

    text = result["text"]
    return MaterialText(
        file_name=filename,
        characters=len(text),
        text=text,
        chunks=chunk_text(text),
    )

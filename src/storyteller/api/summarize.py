"""Book upload endpoint: PDF in, storyteller script out."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, UploadFile

from storyteller.api.dependencies import get_script_generator
from storyteller.api.settings import Settings, get_settings
from storyteller.exceptions import PayloadTooLargeError, ValidationError
from storyteller.models import SummarizeMeta, SummarizeResponse
from storyteller.services.script_generator import ScriptGenerator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Storyteller"])

PDF_MIME_TYPE = "application/pdf"


async def read_pdf_upload(file: UploadFile | None, max_size: int) -> bytes:
    """Validate the uploaded PDF and return its bytes."""
    if file is None or not file.filename:
        raise ValidationError("Please upload a PDF file")
    if file.content_type != PDF_MIME_TYPE:
        raise ValidationError("Only PDF files are supported")

    content = await file.read(max_size + 1)
    if len(content) > max_size:
        raise PayloadTooLargeError(f"File too large, maximum size is {max_size / 1024 / 1024:g}MB")
    if not content:
        raise ValidationError("The uploaded file is empty")
    return content


@router.post("/summarize-book", response_model=SummarizeResponse)
async def summarize_book(
    settings: Annotated[Settings, Depends(get_settings)],
    generator: Annotated[ScriptGenerator, Depends(get_script_generator)],
    file: Annotated[UploadFile | None, File()] = None,
) -> SummarizeResponse:
    """Turn an uploaded PDF into a storyteller script."""
    content = await read_pdf_upload(file, settings.max_file_size)
    logger.info(f"Received file: {file.filename}, size: {len(content)} bytes")

    logger.info("Analyzing PDF content...")
    result = await generator.generate(content, file.filename)
    logger.info("Storyteller script complete")

    return SummarizeResponse(
        data=result.script.model_dump(mode="json"),
        meta=SummarizeMeta(
            model=result.model,
            filename=file.filename,
            fileSize=len(content),
            tokensUsed=result.tokens_used,
        ),
    )

from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, UploadFile

from upsc_digest.adapters.llm.base import LLM
from upsc_digest.api.dependencies import get_governor, get_llm
from upsc_digest.core.models import AnalysisResponse
from upsc_digest.services.extract_service import detect_file_type, validate_upload_size
from upsc_digest.services.governor_service import RequestGovernor
from upsc_digest.services.pipeline_service import analyze_upload
from upsc_digest.services.title_service import source_file_name


router = APIRouter(tags=["analyze"])


def type_source_name(field_name: str | None, upload_name: str | None) -> str:
    """Name whose extension decides the file type: the ``fileName`` field first.

    Browsers posting a Blob send a multipart filename like ``blob``.
    """
    if field_name and Path(field_name.strip()).suffix:
        return field_name.strip()
    return upload_name or field_name or ""


@router.post("/analyze", response_model=AnalysisResponse, response_model_exclude_none=True)
async def analyze(
    file: UploadFile = File(...),
    fileName: str | None = Form(None),
    llm: LLM = Depends(get_llm),
    governor: RequestGovernor = Depends(get_governor),
):
    """Analyze one uploaded newspaper (PDF or DOCX) into categorized news items.

    Failures are raised as AnalysisError and rendered by the app's exception
    handler, so this only ever returns the success shape.
    """
    type_name = type_source_name(fileName, file.filename)
    source_file = source_file_name(fileName, file.filename)
    # the body is read only after admission and the cheap checks
    with governor.admit():
        detect_file_type(type_name)
        if file.size is not None:
            validate_upload_size(file.size)
        content = await file.read()
        doc = await analyze_upload(
            content,
            type_name,
            llm=llm,
            governor=None,
            source_file=source_file,
        )
    return AnalysisResponse(success=True, data=doc)

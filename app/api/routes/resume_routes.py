"""
Resume Routes

POST /resumes/parse - Upload a resume and get parsedResumeData back

The file is validated like any resume upload but not stored; text extraction
and parsing are delegated to the configured ResumeParser.
"""

import structlog
from fastapi import APIRouter, Depends, File, UploadFile
from starlette.concurrency import run_in_threadpool

from app.core.auth import get_current_user
from app.core.config import Settings, get_settings
from app.services.mongo_service import serialize_doc
from app.services.resume_service import ResumeParser, get_resume_parser
from app.utils.file_upload import extract_text, read_resume

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/resumes", tags=["Resumes"])


def resume_parser(settings: Settings = Depends(get_settings)) -> ResumeParser:
    return get_resume_parser(settings)


@router.post("/parse")
async def parse_resume(
    resume: UploadFile = File(...),
    user: dict = Depends(get_current_user),
    parser: ResumeParser = Depends(resume_parser),
    settings: Settings = Depends(get_settings),
):
    content = await read_resume(resume, settings)
    text = await run_in_threadpool(extract_text, content, resume.filename)
    parsed = await run_in_threadpool(parser.parse, text, resume.filename)
    logger.info("resume_parsed", user_id=user["id"], parser=parser.name, skills=len(parsed.get("skills", [])))
    return {
        "success": True,
        "message": "Resume parsed successfully",
        "data": {
            "fileInfo": {
                "originalName": resume.filename,
                "size": len(content),
                "mimetype": resume.content_type,
            },
            "parsedData": serialize_doc(parsed),
        },
    }

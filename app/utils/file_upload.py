"""
File Upload Utility - validate, store and read resume files.

Supported formats:
- PDF (.pdf) using PyPDF2
- Word (.docx) using python-docx
- Legacy Word (.doc) is stored but not read; a placeholder text is returned

Max file size: 5MB (configurable through `max_resume_size_mb`)
"""

import io
import random
import time
import zipfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import structlog
from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from fastapi import UploadFile
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError
from starlette.concurrency import run_in_threadpool

from app.core.config import Settings
from app.core.errors import ValidationError

logger = structlog.get_logger(__name__)

ALLOWED_EXTENSIONS = {".pdf", ".doc", ".docx"}
ALLOWED_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
INVALID_TYPE_MESSAGE = "Invalid file type. Only PDF, DOC, and DOCX files are allowed."
RESUME_SUBDIR = "resumes"


def get_file_extension(filename: str) -> str:
    """Get lowercase file extension."""
    if "." not in filename:
        return ""
    return "." + filename.rsplit(".", 1)[1].lower()


def resume_dir(settings: Settings) -> Path:
    return Path(settings.upload_dir) / RESUME_SUBDIR


def generate_resume_filename(original_name: str) -> str:
    suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"resume-{suffix}{get_file_extension(original_name)}"


async def read_resume(file: UploadFile, settings: Settings) -> bytes:
    """
    Read an uploaded resume and check its type and size.

    Raises:
        ValidationError on a missing name, wrong type or oversized file
    """
    if not file.filename:
        raise ValidationError("No file uploaded")

    ext = get_file_extension(file.filename)
    if ext not in ALLOWED_EXTENSIONS or file.content_type not in ALLOWED_MIME_TYPES:
        raise ValidationError(INVALID_TYPE_MESSAGE)

    content = await file.read()
    if len(content) > settings.max_resume_size_bytes:
        raise ValidationError(f"File too large. Maximum size is {settings.max_resume_size_mb}MB.")
    return content


async def save_resume(file: UploadFile, settings: Settings) -> dict:
    """
    Validate and write an uploaded resume under `<upload_dir>/resumes`.
    Returns the attachment record stored on applications and profiles.
    """
    content = await read_resume(file, settings)
    directory = resume_dir(settings)
    filename = generate_resume_filename(file.filename)
    path = directory / filename

    def write():
        directory.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

    await run_in_threadpool(write)
    logger.info("resume_saved", filename=filename, size=len(content))
    return {
        "filename": filename,
        "originalName": file.filename,
        "path": str(path),
        "size": len(content),
        "mimetype": file.content_type,
        "uploadedAt": datetime.utcnow(),
    }


def delete_file(path: str) -> bool:
    target = Path(path)
    if not target.is_file():
        return False
    target.unlink()
    return True


def resolve_stored_path(attachment: dict, settings: Settings) -> Optional[Path]:
    """
    Find a stored resume on disk.
    Tries the recorded path first, then the resume directory by stored and
    original filename (records written before a move of the upload dir).
    """
    candidates: List[Path] = []
    if attachment.get("path"):
        candidates.append(Path(attachment["path"]))
    base = resume_dir(settings)
    for name in (attachment.get("filename"), attachment.get("originalName")):
        if name:
            candidates.append(base / name)
            candidates.append(Path.cwd() / settings.upload_dir / RESUME_SUBDIR / name)

    for candidate in candidates:
        if candidate.is_file():
            return candidate
    logger.warning(
        "resume_file_missing",
        path=attachment.get("path"),
        filename=attachment.get("filename"),
    )
    return None


# ============================================================
# TEXT EXTRACTION
# ============================================================

def extract_text(content: bytes, filename: str) -> str:
    """Extract plain text from resume bytes, by extension."""
    ext = get_file_extension(filename)
    if ext == ".pdf":
        return extract_from_pdf(content)
    if ext == ".docx":
        return extract_from_docx(content)
    return f"File: {filename}"


def extract_from_pdf(content: bytes) -> str:
    """Extract text from PDF bytes."""
    try:
        reader = PdfReader(io.BytesIO(content))
    except PdfReadError as e:
        raise ValidationError(f"Error reading PDF: {e}")
    text_parts = []
    for page in reader.pages:
        page_text = page.extract_text()
        if page_text:
            text_parts.append(page_text)
    return "\n".join(text_parts)


def extract_from_docx(content: bytes) -> str:
    """Extract text from DOCX bytes."""
    try:
        doc = Document(io.BytesIO(content))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError) as e:
        raise ValidationError(f"Error reading DOCX: {e}")
    text_parts = []

    # Extract paragraphs
    for para in doc.paragraphs:
        if para.text.strip():
            text_parts.append(para.text)

    # Extract tables
    for table in doc.tables:
        for row in table.rows:
            row_text = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if row_text:
                text_parts.append(" | ".join(row_text))

    return "\n".join(text_parts)

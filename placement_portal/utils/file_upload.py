"""
File Upload Utility - job description attachments for drives.

Supported formats:
- PDF (.pdf) using PyPDF2
- Word (.docx) using python-docx

Files are stored under <uploads_dir>/job-descriptions as
"<timestamp>-<sanitized name>" and served from /uploads.

Max file size: settings.max_upload_mb (10MB)
"""

import io
import logging
import os
import re
import time
from typing import Tuple
from zipfile import BadZipFile

from docx import Document
from fastapi import UploadFile, HTTPException
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from placement_portal.core.config import get_settings

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {'.pdf', '.docx'}
JD_SUBDIR = "job-descriptions"


def get_file_extension(filename: str) -> str:
    """Get lowercase file extension."""
    if '.' not in filename:
        return ''
    return '.' + filename.rsplit('.', 1)[1].lower()


def safe_filename(filename: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]", "_", os.path.basename(filename))


async def save_job_description(file: UploadFile) -> Tuple[str, str]:
    """
    Validate and store a JD upload.

    Returns:
        Tuple of (public path "/uploads/job-descriptions/<name>", extracted text)
        The text is empty when nothing could be extracted.

    Raises:
        HTTPException on validation errors
    """
    settings = get_settings()
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    ext = get_file_extension(file.filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(status_code=400, detail=f"Unsupported file type '{ext}'. Allowed: PDF, DOCX")

    content = await file.read()
    if len(content) > settings.max_upload_mb * 1024 * 1024:
        raise HTTPException(status_code=413, detail=f"File too large. Maximum size: {settings.max_upload_mb}MB")

    target_dir = os.path.join(settings.uploads_dir, JD_SUBDIR)
    os.makedirs(target_dir, exist_ok=True)
    stored_name = f"{int(time.time() * 1000)}-{safe_filename(file.filename)}"
    with open(os.path.join(target_dir, stored_name), "wb") as f:
        f.write(content)

    text = extract_from_pdf(content) if ext == '.pdf' else extract_from_docx(content)
    return f"/uploads/{JD_SUBDIR}/{stored_name}", text


def extract_from_pdf(content: bytes) -> str:
    """Extract text from PDF bytes; empty string if unreadable."""
    try:
        reader = PdfReader(io.BytesIO(content))
        text_parts = []
        for page in reader.pages:
            page_text = page.extract_text()
            if page_text:
                text_parts.append(page_text)
        return '\n'.join(text_parts)
    except (PdfReadError, ValueError) as e:
        logger.warning("Could not read PDF job description: %s", e)
        return ""


def extract_from_docx(content: bytes) -> str:
    """Extract paragraphs and table rows from DOCX bytes; empty string if unreadable."""
    try:
        doc = Document(io.BytesIO(content))
    except (BadZipFile, KeyError, ValueError) as e:
        logger.warning("Could not read DOCX job description: %s", e)
        return ""

    text_parts = [para.text for para in doc.paragraphs if para.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            row_text = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if row_text:
                text_parts.append(' | '.join(row_text))
    return '\n'.join(text_parts)

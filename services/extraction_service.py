# FILE: services/extraction_service.py
import re

from flask import current_app

from models import AtsSettings, Resume, ResumeAnalysis, db
from services.ats_service import analyze
from services.errors import BackendError, NotFound, ValidationError
from services.storage_service import RESUME_BUCKET, download
from services.target_service import commit_or_raise, get_singleton


PDF_STRING_PATTERN = re.compile(r"\(([^)]+)\)")
PDF_ESCAPE_PATTERN = re.compile(r"\\[nrt]")
EXTRACTION_PROMPT = (
    "Extract all text content from this resume image. "
    "Return only the extracted text, no formatting or commentary."
)


def extract_pdf_text(file_bytes: bytes) -> str:
    # Best-effort: string literals inside the PDF content streams.
    raw = file_bytes.decode("utf-8", errors="replace")
    matches = PDF_STRING_PATTERN.findall(raw)
    if not matches:
        return ""
    text = " ".join(matches)
    text = PDF_ESCAPE_PATTERN.sub(" ", text)
    return re.sub(r"\s+", " ", text)


def _extract_response_text(response) -> str:
    text = (getattr(response, "text", "") or "").strip()
    if text:
        return text
    candidates = getattr(response, "candidates", None) or []
    parts = []
    for candidate in candidates:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            value = getattr(part, "text", "") or ""
            if value:
                parts.append(value.strip())
    return "\n".join(parts).strip()


def extract_image_text(file_bytes: bytes, mime_type: str) -> str:
    api_key = current_app.config.get("GEMINI_API_KEY", "").strip()
    model = current_app.config.get("GEMINI_MODEL", "gemini-2.5-flash")
    if not api_key:
        current_app.logger.warning("GEMINI_API_KEY is empty. Cannot read image resumes.")
        raise BackendError("Image text extraction is not configured.")

    try:
        # Lazy import so the app runs without the Gemini package configured.
        from google import genai
        from google.genai import types

        client = genai.Client(api_key=api_key)
        response = client.models.generate_content(
            model=model,
            contents=[types.Part.from_bytes(data=file_bytes, mime_type=mime_type), EXTRACTION_PROMPT],
        )
    except Exception as exc:
        current_app.logger.exception("Gemini text extraction failed: %s", exc)
        raise BackendError("Text extraction failed. Please try again.") from exc
    return _extract_response_text(response)


def extract_text(file_bytes: bytes, mime_type: str) -> str:
    if mime_type == "application/pdf":
        return extract_pdf_text(file_bytes)
    return extract_image_text(file_bytes, mime_type)


def analyze_resume(resume_id: str) -> dict:
    """Extracts the stored resume's text, scores it and saves the analysis row."""
    if not get_singleton(AtsSettings).ats_enabled:
        raise ValidationError("Resume analysis features have been turned off.")
    resume = db.session.get(Resume, resume_id)
    if resume is None:
        raise NotFound("Resume not found.")

    current_app.logger.info("Analyzing resume: %s", resume.file_path)
    file_bytes = download(RESUME_BUCKET, resume.file_path)
    text = extract_text(file_bytes, resume.file_type)
    current_app.logger.info("Extracted text length: %d", len(text))

    analysis = analyze(text)
    record = ResumeAnalysis(
        resume_id=resume.id,
        ats_score=analysis["score"],
        formatting_score=analysis["formattingScore"],
        skills_extracted=analysis["skillsFound"],
        keywords_found=analysis["keywordsFound"],
        suggestions=analysis["suggestions"],
        analysis_data=analysis["metadata"],
    )
    db.session.add(record)
    commit_or_raise("save analysis")
    return {"analysis_id": record.id, "resume_id": resume.id, **analysis}

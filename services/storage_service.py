# FILE: services/storage_service.py
import os
from pathlib import Path

from flask import current_app
from werkzeug.utils import secure_filename

from services.errors import BackendError, NotFound, ValidationError


RESUME_BUCKET = "resumes"
EXTENSIONS = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/png": ".png",
}


def _bucket_dir(bucket: str) -> Path:
    root = Path(current_app.config["STORAGE_ROOT"])
    if not root.is_absolute():
        root = Path(current_app.instance_path) / root
    return root / secure_filename(bucket)


def _object_path(bucket: str, key: str) -> Path:
    parts = [secure_filename(part) for part in key.split("/") if part]
    if not parts or not all(parts):
        raise ValidationError("Invalid storage key.")
    return _bucket_dir(bucket).joinpath(*parts)


def validate_upload(file_bytes: bytes, mime_type: str):
    max_size = current_app.config.get("MAX_CONTENT_LENGTH") or 10 * 1024 * 1024
    allowed = current_app.config.get("ALLOWED_UPLOAD_TYPES") or set(EXTENSIONS)
    if mime_type not in allowed:
        raise ValidationError("Only PDF, JPEG and PNG files are supported.")
    if not file_bytes:
        raise ValidationError("The uploaded file is empty.")
    if len(file_bytes) > max_size:
        raise ValidationError(f"File is too large. Maximum size is {max_size // (1024 * 1024)}MB.")


def upload(bucket: str, key: str, file_bytes: bytes) -> str:
    path = _object_path(bucket, key)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as file_obj:
            file_obj.write(file_bytes)
    except OSError as exc:
        current_app.logger.exception("Upload to %s/%s failed: %s", bucket, key, exc)
        raise BackendError("Failed to store the file. Please try again.") from exc
    return str(path.relative_to(_bucket_dir(bucket)).as_posix())


def download(bucket: str, key: str) -> bytes:
    path = _object_path(bucket, key)
    if not path.is_file():
        raise NotFound("File not found.")
    try:
        with open(path, "rb") as file_obj:
            return file_obj.read()
    except OSError as exc:
        current_app.logger.exception("Download of %s/%s failed: %s", bucket, key, exc)
        raise BackendError("Failed to read the file.") from exc


def remove(bucket: str, key: str):
    path = _object_path(bucket, key)
    if path.is_file():
        os.remove(path)


def get_public_url(bucket: str, key: str) -> str:
    base = current_app.config.get("PUBLIC_STORAGE_URL", "/storage").rstrip("/")
    return f"{base}/{bucket}/{key}"


def local_path(bucket: str, key: str) -> Path:
    return _object_path(bucket, key)

"""Validation and staging of progress photos received over HTTP before they go to the media store."""
import io
import os
import uuid
from typing import Iterable, List, Tuple

from PIL import Image, UnidentifiedImageError
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

ALLOWED_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "webp"}
PIL_FORMATS = {"JPEG": "jpg", "PNG": "png", "WEBP": "webp"}
DEFAULT_MAX_IMAGE_BYTES = 8 * 1024 * 1024  # 8 MB


def _fail_if(condition: bool, message: str) -> None:
    if condition:
        raise ValueError(message)


def validate_image_file(file: FileStorage, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> Tuple[bytes, str]:
    _fail_if(not file, "No file provided")
    filename = secure_filename(file.filename or "")
    _fail_if(not filename or "." not in filename, "Unsupported file name")
    ext = filename.rsplit(".", 1)[1].lower()
    _fail_if(ext not in ALLOWED_IMAGE_EXTENSIONS, "File type not allowed")

    content = file.read()
    _fail_if(len(content) == 0, "Empty file")
    _fail_if(len(content) > max_bytes, "File exceeds size limits")

    try:
        with Image.open(io.BytesIO(content)) as img:
            detected = PIL_FORMATS.get(img.format or "")
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ValueError("Image validation failed") from exc
    _fail_if(detected is None, "Invalid image data")

    file.stream.seek(0)
    return content, detected


def save_image_bytes(image_bytes: bytes, upload_dir: str, extension: str) -> str:
    os.makedirs(upload_dir, exist_ok=True)
    safe_name = secure_filename(f"{uuid.uuid4().hex}.{extension}")
    path = os.path.join(upload_dir, safe_name)
    with open(path, "wb") as f:
        f.write(image_bytes)
    return path


def stage_uploads(files: Iterable[FileStorage], staging_dir: str, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> List[str]:
    """Validate each upload and write it to the staging folder; returns local paths in order."""
    staged: List[str] = []
    try:
        for file in files:
            if not file or not file.filename:
                continue
            content, ext = validate_image_file(file, max_bytes=max_bytes)
            staged.append(save_image_bytes(content, staging_dir, ext))
    except ValueError:
        discard_staged(staged)
        raise
    return staged


def discard_staged(paths: Iterable[str]) -> None:
    for path in paths:
        try:
            os.remove(path)
        except FileNotFoundError:
            continue

"""Media hosting collaborator for progress photos.

A store turns one local media location into a public URL. ``upload_many`` fans
uploads out over a thread pool and reports per-item success or failure; callers
consume only the successful subset.
"""
from __future__ import annotations

import os
import shutil
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Sequence

import requests
from werkzeug.utils import secure_filename


class MediaUploadError(Exception):
    """Raised by a store when a single item cannot be uploaded."""


class MediaStore:
    backend_name = "base"

    def upload(self, source: str) -> str:
        raise NotImplementedError


class LocalMediaStore(MediaStore):
    """Copy files under a served directory; used for development and tests."""

    backend_name = "local"

    def __init__(self, root: str, public_base_url: str = "/media") -> None:
        self.root = root
        self.public_base_url = public_base_url.rstrip("/")
        os.makedirs(self.root, exist_ok=True)

    def upload(self, source: str) -> str:
        if not source or not os.path.isfile(source):
            raise MediaUploadError(f"Media not found: {source}")
        _, ext = os.path.splitext(source)
        name = secure_filename(f"{uuid.uuid4().hex}{ext.lower()}")
        shutil.copyfile(source, os.path.join(self.root, name))
        return f"{self.public_base_url}/{name}"


class HttpMediaStore(MediaStore):
    """Unsigned multipart upload to a hosted media service (Cloudinary-style API)."""

    backend_name = "http"

    def __init__(self, upload_url: str, upload_preset: str = "", folder: str = "", timeout: float = 30.0) -> None:
        if not upload_url:
            raise MediaUploadError("MEDIA_UPLOAD_URL is not configured")
        self.upload_url = upload_url
        self.upload_preset = upload_preset
        self.folder = folder
        self.timeout = timeout

    def upload(self, source: str) -> str:
        if not source or not os.path.isfile(source):
            raise MediaUploadError(f"Media not found: {source}")
        data = {}
        if self.upload_preset:
            data["upload_preset"] = self.upload_preset
        if self.folder:
            data["folder"] = self.folder
        with open(source, "rb") as handle:
            resp = requests.post(
                self.upload_url,
                files={"file": (os.path.basename(source), handle)},
                data=data,
                timeout=self.timeout,
            )
        if resp.status_code >= 400:
            raise MediaUploadError(f"Upload rejected with HTTP {resp.status_code}")
        try:
            payload = resp.json()
        except ValueError as exc:
            raise MediaUploadError("Upload service returned a non-JSON response") from exc
        url = payload.get("secure_url") or payload.get("url")
        if not url:
            raise MediaUploadError("Upload service response did not include a URL")
        return url


def build_media_store(config) -> MediaStore:
    backend = (config.get("MEDIA_STORE_BACKEND") or "local").lower()
    if backend == "http":
        return HttpMediaStore(
            config.get("MEDIA_UPLOAD_URL", ""),
            upload_preset=config.get("MEDIA_UPLOAD_PRESET", ""),
            folder=config.get("MEDIA_UPLOAD_FOLDER", ""),
            timeout=float(config.get("MEDIA_UPLOAD_TIMEOUT", 30)),
        )
    if backend == "local":
        return LocalMediaStore(
            config.get("MEDIA_LOCAL_ROOT") or os.path.join(os.getcwd(), "instance", "media"),
            public_base_url=config.get("MEDIA_PUBLIC_BASE_URL", "/media"),
        )
    raise ValueError(f"Unknown MEDIA_STORE_BACKEND: {backend}")


def _upload_one(store: MediaStore, source: str) -> Dict:
    try:
        return {"source": source, "url": store.upload(source), "ok": True}
    except (MediaUploadError, requests.RequestException) as exc:
        return {"source": source, "error": str(exc), "ok": False}
    except OSError as exc:
        # str() of an OSError carries server paths; keep the reason only.
        return {"source": source, "error": exc.strerror or exc.__class__.__name__, "ok": False}


def upload_many(store: MediaStore, sources: Sequence[str], max_workers: int = 4) -> Dict[str, List[Dict]]:
    """Upload every source concurrently. Result order follows ``sources``."""
    successful: List[Dict] = []
    failed: List[Dict] = []
    if not sources:
        return {"successful": successful, "failed": failed}

    workers = max(1, min(int(max_workers or 1), len(sources)))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(lambda source: _upload_one(store, source), sources))

    for result in results:
        if result.pop("ok"):
            successful.append(result)
        else:
            failed.append(result)
    return {"successful": successful, "failed": failed}

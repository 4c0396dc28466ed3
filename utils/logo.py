# =============================================================================
# 🖼️ utils/logo.py
# Logo-Upload prüfen (PNG/JPG/SVG, max. 2 MB) und unter UPLOAD_DIR/logos ablegen
# =============================================================================

from __future__ import annotations

import secrets
import time
from pathlib import Path

from fastapi import UploadFile

from utils.qr_generator import logo_dir

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".svg"}
ALLOWED_MIME_TYPES = {"image/png", "image/jpeg", "image/jpg", "image/svg+xml"}
MAX_LOGO_BYTES = 2 * 1024 * 1024


def save_logo_upload(upload: UploadFile) -> str:
    """Speichert ein hochgeladenes Logo und gibt den öffentlichen Pfad zurück."""
    if not upload or not upload.filename:
        raise ValueError("Keine Logo-Datei hochgeladen")

    ext = Path(upload.filename).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS or (upload.content_type or "").lower() not in ALLOWED_MIME_TYPES:
        raise ValueError("Nur JPEG-, PNG- und SVG-Dateien sind erlaubt")

    content = upload.file.read(MAX_LOGO_BYTES + 1)
    if len(content) > MAX_LOGO_BYTES:
        raise ValueError("Logo ist größer als 2 MB")

    target_dir = logo_dir()
    target_dir.mkdir(parents=True, exist_ok=True)
    filename = f"logo-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext}"
    with open(target_dir / filename, "wb") as f:
        f.write(content)

    return f"/uploads/logos/{filename}"

# =============================================================================
# 🧠 QR-Code Generator – QR Tracker
# -----------------------------------------------------------------------------
# Erstellt QR-Codes mit Farben, Rand und optionalem Logo in der Mitte.
# Ergebnis ist eine PNG-Data-URI, die direkt am Datensatz gespeichert wird.
# =============================================================================

from __future__ import annotations
from typing import Optional
from io import BytesIO
from pathlib import Path
import base64
import binascii
import logging
import os

import qrcode
from qrcode.constants import ERROR_CORRECT_H
from PIL import Image, ImageColor, UnidentifiedImageError

# ---------------------------------------------------------------------------
# ⚙️ Logging konfigurieren
# ---------------------------------------------------------------------------
logger = logging.getLogger(__name__)


class QRRenderError(ValueError):
    """Ungültige Farben oder nicht lesbares Logo."""


def logo_dir() -> Path:
    return Path(os.getenv("UPLOAD_DIR", "uploads")) / "logos"


def _load_logo(logo: str) -> Image.Image:
    """
    Logo als Data-URI (data:image/png;base64,...) oder als Pfad
    (/uploads/logos/<datei>) – bei Pfaden zählt nur der Dateiname.
    """
    try:
        if logo.startswith("data:image") and ";base64," in logo:
            raw = base64.b64decode(logo.split(";base64,", 1)[1], validate=True)
            return Image.open(BytesIO(raw)).convert("RGBA")

        logo_path = logo_dir() / Path(logo).name
        if not logo_path.exists():
            raise QRRenderError(f"Logo-Datei nicht gefunden: {logo_path}")
        return Image.open(logo_path).convert("RGBA")
    except (binascii.Error, UnidentifiedImageError, OSError) as e:
        raise QRRenderError(f"Logo konnte nicht gelesen werden: {e}") from e


# ---------------------------------------------------------------------------
# 🧩 Hauptfunktion: generate_qr_png
# ---------------------------------------------------------------------------
def generate_qr_png(
    payload: str,
    fg: str = "#000000",
    bg: str = "#ffffff",
    margin: int = 4,
    logo: Optional[str] = None,
    size: int = 1024,
) -> bytes:
    """Generiert einen QR-Code als PNG und gibt die Bytes zurück."""
    try:
        fg_rgb = ImageColor.getrgb(fg or "#000000")
        bg_rgb = ImageColor.getrgb(bg or "#ffffff")
    except ValueError as e:
        raise QRRenderError(f"Ungültige Farbe: {e}") from e

    # === 1️⃣ QR-Code Basis (hohe Fehlerkorrektur wegen Logo) ===
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_H,
        box_size=10,
        border=max(0, int(margin)),
    )
    qr.add_data(payload)
    qr.make(fit=True)

    # === 2️⃣ Bild erzeugen & skalieren ===
    img = qr.make_image(fill_color=fg_rgb, back_color=bg_rgb).get_image().convert("RGBA")
    img = img.resize((size, size), Image.Resampling.NEAREST)

    # === 3️⃣ Logo einfügen (25 % der Breite, Seitenverhältnis bleibt) ===
    if logo and logo.strip():
        logo_img = _load_logo(logo.strip())
        logo_w = int(img.width * 0.25)
        logo_h = max(1, int(logo_img.height * logo_w / max(1, logo_img.width)))
        logo_img = logo_img.resize((logo_w, logo_h), Image.Resampling.LANCZOS)
        pos = ((img.width - logo_w) // 2, (img.height - logo_h) // 2)
        img.alpha_composite(logo_img, dest=pos)

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def generate_qr_data_uri(payload: str, **kwargs) -> str:
    png = generate_qr_png(payload, **kwargs)
    logger.debug("QR-Code gerendert (%d Bytes)", len(png))
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")

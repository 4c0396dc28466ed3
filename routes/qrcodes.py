# routes/qrcodes.py
# =============================================================================
# 🚀 QR-Code-Verwaltung (QR Tracker)
# - Liste / Detail / Erstellen / Bulk-Erstellen
# - Inhalt formatieren (vCard, WLAN, ...)
# - Logo-Upload
# - Bearbeiten / Löschen / Bulk-Löschen
# Alle Routen nur für eingeloggte Benutzer und nur für eigene Codes.
# =============================================================================

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from pydantic import BaseModel, Field

from models.qrcode import QRCode, QR_TYPES, new_qr_id
from models.user import User
from routes.auth import get_current_user
from utils.analytics import analytics_block
from utils.content_formatter import format_content
from utils.expiration import parse_timestamp, to_utc
from utils.logo import save_logo_upload
from utils.qr_generator import QRRenderError, generate_qr_data_uri
from utils.qr_store import QRStore, get_store
from utils.tracking import create_tracking_url, resolve_base_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/qrcodes", tags=["QR-Codes"])


# =============================================================================
# 🧾 Eingabe-Schemas
# =============================================================================
class CustomizationIn(BaseModel):
    color: str = "#000000"
    background_color: str = "#ffffff"
    logo: Optional[str] = None
    margin: int = Field(default=4, ge=0, le=40)


class SecurityIn(BaseModel):
    is_password_protected: bool = False
    password: Optional[str] = None
    expires_at: Optional[Any] = None
    max_scans: Optional[Any] = 0


class CreateQRIn(BaseModel):
    text: Optional[str] = None
    qr_type: str = "url"
    data: Dict[str, Any] = Field(default_factory=dict)
    customization: CustomizationIn = Field(default_factory=CustomizationIn)
    security: SecurityIn = Field(default_factory=SecurityIn)
    tags: List[str] = Field(default_factory=list)
    enable_tracking: bool = True


class BulkCreateIn(BaseModel):
    qr_codes: List[CreateQRIn]
    enable_tracking: bool = True


class UpdateQRIn(BaseModel):
    text: Optional[str] = None
    qr_type: Optional[str] = None
    customization: Optional[CustomizationIn] = None
    security: Optional[SecurityIn] = None
    tags: Optional[List[str]] = None


class FormatContentIn(BaseModel):
    qr_type: str
    data: Dict[str, Any] = Field(default_factory=dict)


class BulkDeleteIn(BaseModel):
    qr_code_ids: List[str] = Field(default_factory=list)


# =============================================================================
# 🔧 Hilfsfunktionen
# =============================================================================
def parse_max_scans(value: Any) -> int:
    """Ungültig → 0, negativ → 0."""
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def _check_type(qr_type: str) -> str:
    t = (qr_type or "url").lower()
    if t not in QR_TYPES:
        raise HTTPException(400, f"Unbekannter QR-Typ: {qr_type}")
    return t


def _apply_security(qr: QRCode, security: SecurityIn) -> None:
    if security.is_password_protected:
        password = (security.password or "").strip()
        if not password:
            password = (qr.password or "").strip()
        if not password:
            raise HTTPException(
                400, "Passwort ist erforderlich, wenn der Passwortschutz aktiviert ist."
            )
        qr.password = password
    else:
        qr.password = ""
    qr.is_password_protected = security.is_password_protected
    qr.expires_at = parse_timestamp(security.expires_at)
    qr.max_scans = parse_max_scans(security.max_scans)


def _apply_customization(qr: QRCode, customization: CustomizationIn) -> None:
    qr.color_fg = customization.color
    qr.color_bg = customization.background_color
    qr.logo_path = customization.logo or None
    qr.margin = customization.margin


def _render(qr: QRCode) -> None:
    """Rendert das Bild: Tracking-URL, falls aktiv, sonst der Inhalt selbst."""
    payload = qr.tracking_url if qr.tracking_enabled and qr.tracking_url else qr.text
    try:
        qr.qr_image = generate_qr_data_uri(
            payload,
            fg=qr.color_fg,
            bg=qr.color_bg,
            margin=qr.margin,
            logo=qr.logo_path,
        )
    except QRRenderError as e:
        raise HTTPException(400, str(e)) from e


def build_qr(payload: CreateQRIn, user_id: int, base_url: str, enable_tracking: bool) -> QRCode:
    qr_type = _check_type(payload.qr_type)

    text = (payload.text or "").strip()
    if not text and payload.data:
        try:
            text = format_content(qr_type, payload.data)
        except ValueError as e:
            raise HTTPException(400, f"Inhalt konnte nicht formatiert werden: {e}") from e
    if not text:
        raise HTTPException(400, "Inhalt (text) ist erforderlich.")

    # ID vorab vergeben – die Tracking-URL enthält sie
    qr_id = new_qr_id()
    qr = QRCode(
        id=qr_id,
        user_id=user_id,
        text=text,
        qr_type=qr_type,
        tags=list(payload.tags),
        tracking_enabled=enable_tracking,
        tracking_url=create_tracking_url(base_url, qr_id) if enable_tracking else None,
    )
    _apply_customization(qr, payload.customization)
    _apply_security(qr, payload.security)
    _render(qr)
    return qr


def _iso(ts) -> Optional[str]:
    ts = to_utc(ts)
    return ts.isoformat() if ts else None


def serialize_qr(qr: QRCode) -> Dict[str, Any]:
    return {
        "id": qr.id,
        "user_id": qr.user_id,
        "text": qr.text,
        "qr_type": qr.qr_type,
        "qr_image": qr.qr_image,
        "tags": list(qr.tags or []),
        "customization": {
            "color": qr.color_fg,
            "background_color": qr.color_bg,
            "logo": qr.logo_path,
            "margin": qr.margin,
        },
        "security": {
            "is_password_protected": qr.is_password_protected,
            "expires_at": _iso(qr.expires_at),
            "max_scans": qr.max_scans,
        },
        "analytics": analytics_block(qr),
        "status": qr.status,
        "is_expired": qr.is_expired,
        "tracking_enabled": qr.tracking_enabled,
        "tracking_url": qr.tracking_url,
        "created_at": _iso(qr.created_at),
        "updated_at": _iso(qr.updated_at),
    }


def _get_owned_or_404(store: QRStore, qr_id: str, user: User) -> QRCode:
    qr = store.find_owned(qr_id, user.id)
    if not qr:
        raise HTTPException(404, "QR-Code nicht gefunden oder keine Berechtigung")
    return qr


# =============================================================================
# ✅ LISTE & DETAIL
# =============================================================================
@router.get("")
def list_qrcodes(store: QRStore = Depends(get_store), user: User = Depends(get_current_user)):
    return [serialize_qr(qr) for qr in store.find_by_user(user.id, newest_first=True)]


@router.get("/{qr_id}")
def get_qrcode(qr_id: str, store: QRStore = Depends(get_store), user: User = Depends(get_current_user)):
    return serialize_qr(_get_owned_or_404(store, qr_id, user))


# =============================================================================
# ✅ CREATE
# =============================================================================
@router.post("", status_code=201)
def create_qrcode(
    payload: CreateQRIn,
    request: Request,
    store: QRStore = Depends(get_store),
    user: User = Depends(get_current_user),
):
    qr = build_qr(payload, user.id, resolve_base_url(request), payload.enable_tracking)
    store.add(qr)
    logger.info("QR %s erstellt (typ=%s, tracking=%s)", qr.id, qr.qr_type, qr.tracking_enabled)
    return serialize_qr(qr)


@router.post("/bulk", status_code=201)
def create_qrcodes_bulk(
    payload: BulkCreateIn,
    request: Request,
    store: QRStore = Depends(get_store),
    user: User = Depends(get_current_user),
):
    """Erstellt mehrere Codes; fehlerhafte Einträge werden übersprungen."""
    if not payload.qr_codes:
        raise HTTPException(400, "Keine QR-Codes übergeben")

    base_url = resolve_base_url(request)
    created: List[QRCode] = []
    for item in payload.qr_codes:
        try:
            qr = build_qr(item, user.id, base_url, payload.enable_tracking)
        except HTTPException as e:
            logger.warning("Bulk-Eintrag übersprungen: %s", e.detail)
            continue
        store.db.add(qr)
        created.append(qr)

    store.commit()
    return [serialize_qr(qr) for qr in created]


# =============================================================================
# ✅ FORMATIEREN & LOGO
# =============================================================================
@router.post("/format-content")
def format_qr_content(payload: FormatContentIn, user: User = Depends(get_current_user)):
    try:
        formatted = format_content(payload.qr_type, payload.data)
    except ValueError as e:
        raise HTTPException(400, f"Inhalt konnte nicht formatiert werden: {e}") from e
    return {"formatted_content": formatted}


@router.post("/upload-logo")
def upload_logo(logo: UploadFile = File(...), user: User = Depends(get_current_user)):
    try:
        logo_path = save_logo_upload(logo)
    except ValueError as e:
        raise HTTPException(400, str(e)) from e
    return {"logo_path": logo_path}


# =============================================================================
# ✅ BULK-DELETE
# =============================================================================
@router.post("/delete-bulk")
def delete_qrcodes_bulk(
    payload: BulkDeleteIn,
    store: QRStore = Depends(get_store),
    user: User = Depends(get_current_user),
):
    if not payload.qr_code_ids:
        raise HTTPException(400, "Keine QR-Codes zum Löschen angegeben")
    deleted = store.delete_many(payload.qr_code_ids, user.id)
    return {"message": f"{deleted} QR-Codes gelöscht", "deleted_count": deleted}


# =============================================================================
# ✅ UPDATE
# =============================================================================
@router.put("/{qr_id}")
def update_qrcode(
    qr_id: str,
    payload: UpdateQRIn,
    store: QRStore = Depends(get_store),
    user: User = Depends(get_current_user),
):
    """Ändert Inhalt, Design, Sicherheit oder Tags. Statistik und Tracking bleiben unverändert."""
    qr = _get_owned_or_404(store, qr_id, user)
    rerender = False

    if payload.qr_type is not None:
        qr.qr_type = _check_type(payload.qr_type)
    if payload.text is not None:
        text = payload.text.strip()
        if not text:
            raise HTTPException(400, "Inhalt (text) darf nicht leer sein.")
        rerender = rerender or (text != qr.text and not qr.tracking_enabled)
        qr.text = text
    if payload.customization is not None:
        _apply_customization(qr, payload.customization)
        rerender = True
    if payload.security is not None:
        _apply_security(qr, payload.security)
    if payload.tags is not None:
        qr.tags = list(payload.tags)

    if rerender:
        _render(qr)

    store.save(qr)
    return serialize_qr(qr)


# =============================================================================
# ✅ DELETE
# =============================================================================
@router.delete("/{qr_id}")
def delete_qrcode(qr_id: str, store: QRStore = Depends(get_store), user: User = Depends(get_current_user)):
    qr = _get_owned_or_404(store, qr_id, user)
    store.delete(qr)
    return {"message": "QR-Code gelöscht"}

# =============================================================================
# 📊 routes/analytics.py
# -----------------------------------------------------------------------------
# JSON-Routen rund um Scans:
#   • Scan zählen (JSON-Variante der Tracking-Route)
#   • Passwort prüfen & Scan zählen
#   • Auswertung für alle eigenen Codes oder einen einzelnen Code
# =============================================================================

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from models.qrcode import QRCode
from models.user import User
from routes.auth import get_current_user
from routes.track import build_scan_data
from utils.analytics import (
    ScanOutcome,
    enforce_expiration,
    get_analytics,
    record_scan,
    verify_password_and_record,
)
from utils.qr_store import QRStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])

EXPIRED_MESSAGE = "Dieser QR-Code ist abgelaufen oder hat die maximale Anzahl an Scans erreicht."


def _qr_summary(qr: QRCode) -> Dict[str, Any]:
    return {
        "text": qr.text,
        "type": qr.qr_type,
        "analytics": {
            "scan_count": qr.scan_count or 0,
            "max_scans": qr.max_scans or 0,
        },
    }


def _raise_for_outcome(outcome: ScanOutcome) -> None:
    if outcome is ScanOutcome.NOT_FOUND:
        raise HTTPException(404, "QR-Code nicht gefunden")
    if outcome is ScanOutcome.NOT_PROTECTED:
        raise HTTPException(400, "Dieser QR-Code ist nicht passwortgeschützt")
    if outcome is ScanOutcome.AUTH_FAILED:
        raise HTTPException(401, "Ungültiges Passwort")
    if outcome is ScanOutcome.INTERNAL:
        raise HTTPException(500, "Interner Serverfehler")


# -------------------------------------------------------------------------
# 📈 Scan zählen (ohne Login)
# -------------------------------------------------------------------------
@router.get("/track/{qr_id}/{tracking_id}")
def track_scan_json(qr_id: str, tracking_id: str, request: Request, store: QRStore = Depends(get_store)):
    try:
        qr = store.find_by_id(qr_id)
        if qr is None:
            raise HTTPException(404, "QR-Code nicht gefunden")

        if enforce_expiration(store, qr):
            return JSONResponse({"expired": True, "message": EXPIRED_MESSAGE}, status_code=410)

        # Passwortschutz: erst nach erfolgreicher Prüfung wird gezählt
        if qr.is_password_protected:
            return {"requires_password": True, "qr_code_id": qr_id, "tracking_id": tracking_id}
    except SQLAlchemyError:
        logger.exception("JSON-Tracking fehlgeschlagen für QR %s", qr_id)
        store.rollback()
        raise HTTPException(500, "Interner Serverfehler")

    result = record_scan(store, qr_id, build_scan_data(request, tracking_id))
    if result.outcome is ScanOutcome.EXPIRED:
        return JSONResponse({"expired": True, "message": EXPIRED_MESSAGE}, status_code=410)
    _raise_for_outcome(result.outcome)

    return {"success": True, "qr_code": _qr_summary(result.qr)}


# -------------------------------------------------------------------------
# 🔐 Passwort prüfen (ohne Login)
# -------------------------------------------------------------------------
@router.post("/verify-password/{qr_id}")
async def verify_password(qr_id: str, request: Request, store: QRStore = Depends(get_store)):
    """Akzeptiert JSON oder Formulardaten mit 'password'."""
    password: Optional[str] = None
    tracking_id = ""
    if (request.headers.get("content-type") or "").startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            raise HTTPException(400, "Ungültiger JSON-Body")
        if isinstance(body, dict):
            password = body.get("password")
            tracking_id = str(body.get("tracking_id") or "")
    else:
        form = await request.form()
        password = form.get("password")  # type: ignore[assignment]
        tracking_id = str(form.get("tracking_id") or "")

    if password is not None and not isinstance(password, str):
        raise HTTPException(400, "Passwort muss ein Text sein")

    # GeoIP-Abfrage und Datenbank sind blockierend → Threadpool statt Event-Loop
    def _verify():
        return verify_password_and_record(
            store, qr_id, password, build_scan_data(request, tracking_id)
        )

    result = await run_in_threadpool(_verify)
    if result.outcome is ScanOutcome.EXPIRED:
        return JSONResponse({"expired": True, "message": EXPIRED_MESSAGE}, status_code=410)
    _raise_for_outcome(result.outcome)

    return {
        "success": True,
        "redirect_url": result.qr.text,
        "message": "Passwort bestätigt",
        "qr_code": _qr_summary(result.qr),
    }


# -------------------------------------------------------------------------
# 📊 Auswertung (mit Login)
# -------------------------------------------------------------------------
@router.get("")
def user_analytics(store: QRStore = Depends(get_store), user: User = Depends(get_current_user)):
    analytics = get_analytics(store, user_id=user.id)
    if analytics is None:
        raise HTTPException(404, "Keine Analytics gefunden")
    return analytics


@router.get("/{qr_id}")
def qr_analytics(qr_id: str, store: QRStore = Depends(get_store), user: User = Depends(get_current_user)):
    if not store.find_owned(qr_id, user.id):
        raise HTTPException(404, "QR-Code nicht gefunden oder keine Berechtigung")

    analytics = get_analytics(store, qr_id=qr_id)
    if analytics is None:
        raise HTTPException(404, "Keine Analytics für diesen QR-Code")
    return analytics

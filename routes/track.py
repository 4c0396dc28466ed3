# =============================================================================
# 🔄 Scan-Tracking (QR Tracker)
# -----------------------------------------------------------------------------
# Eine einzige öffentliche Route:
#       GET /track/{qr_id}/{tracking_id}
#
# Reihenfolge:
#   1. QR-Code finden                → sonst 404-Seite
#   2. Ablauf / Scan-Limit prüfen    → 410-Seite (Flag wird gespeichert)
#   3. Passwortschutz                → Passwort-Formular
#   4. Scan zählen & weiterleiten    → 302 auf das Ziel
# =============================================================================

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import SQLAlchemyError

from utils.analytics import ScanData, ScanOutcome, enforce_expiration, record_scan
from utils.geo import UNKNOWN, client_ip, resolve_location
from utils.qr_store import QRStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tracking"])

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))


def build_scan_data(request: Request, tracking_id: str = "") -> ScanData:
    """Scan-Metadaten der Anfrage; Standort fällt bei jedem Fehler auf 'Unknown' zurück."""
    try:
        country, city = resolve_location(request)
    except Exception:
        logger.exception("Standort konnte nicht bestimmt werden")
        country, city = UNKNOWN, UNKNOWN
    return ScanData(
        user_agent=request.headers.get("user-agent", ""),
        ip=client_ip(request),
        referer=request.headers.get("referer", ""),
        tracking_id=tracking_id,
        country=country,
        city=city,
    )


def _message_page(request: Request, title: str, message: str, status_code: int) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "track_message.html",
        {"title": title, "message": message},
        status_code=status_code,
    )


def _expired_page(request: Request) -> HTMLResponse:
    return _message_page(
        request,
        "QR-Code abgelaufen",
        "Dieser QR-Code ist abgelaufen oder hat die maximale Anzahl an Scans erreicht.",
        410,
    )


@router.get("/track/{qr_id}/{tracking_id}", response_model=None)
def track_scan(
    qr_id: str,
    tracking_id: str,
    request: Request,
    store: QRStore = Depends(get_store),
) -> Response:
    """Öffentlicher Einstieg für jeden Scan einer Tracking-URL."""
    try:
        qr = store.find_by_id(qr_id)
        if qr is None:
            return _message_page(
                request,
                "QR-Code nicht gefunden",
                "Dieser QR-Code existiert nicht oder wurde gelöscht.",
                404,
            )

        if enforce_expiration(store, qr):
            return _expired_page(request)

        if qr.is_password_protected:
            return templates.TemplateResponse(
                request,
                "track_password.html",
                {"qr_id": qr.id, "tracking_id": tracking_id},
            )

        destination = qr.text
    except SQLAlchemyError:
        logger.exception("Scan-Route fehlgeschlagen für QR %s", qr_id)
        store.rollback()
        return _message_page(
            request,
            "Fehler",
            "Beim Verarbeiten dieses QR-Codes ist ein Fehler aufgetreten. Bitte später erneut versuchen.",
            500,
        )

    result = record_scan(store, qr_id, build_scan_data(request, tracking_id))
    if result.outcome is ScanOutcome.EXPIRED:
        return _expired_page(request)
    if not result.ok:
        # Weiterleitung trotzdem – ein fehlender Zählerstand blockiert den Besucher nicht
        logger.warning("Scan für QR %s nicht gezählt: %s", qr_id, result.outcome.value)

    return RedirectResponse(destination, status_code=302)

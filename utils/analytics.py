# =============================================================================
# 📊 utils/analytics.py
# -----------------------------------------------------------------------------
# Scan-Lebenszyklus:
#   • Ablauf prüfen (und Ablauf-Flag speichern)
#   • Scan zählen (Zähler, Zeitstempel, Standort, Gerät)
#   • Passwort-Prüfung vor dem Zählen
#   • Auswertung pro QR-Code oder pro Benutzer
# Alle Funktionen bekommen den Store explizit übergeben.
# =============================================================================

from __future__ import annotations

import enum
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from models.qrcode import QRCode
from utils.device import classify_device
from utils.expiration import is_qr_expired, to_utc
from utils.qr_store import QRStore

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


class ScanOutcome(str, enum.Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    AUTH_FAILED = "auth_failed"
    NOT_PROTECTED = "not_protected"
    INTERNAL = "internal"


@dataclass(frozen=True)
class ScanResult:
    outcome: ScanOutcome
    qr: Optional[QRCode] = None

    @property
    def ok(self) -> bool:
        return self.outcome is ScanOutcome.OK


@dataclass
class ScanData:
    """Metadaten einer Scan-Anfrage."""
    user_agent: str = ""
    ip: str = ""
    referer: str = ""
    tracking_id: str = ""
    country: str = UNKNOWN
    city: str = UNKNOWN


# =============================================================================
# ⏳ Ablauf durchsetzen
# =============================================================================
def enforce_expiration(store: QRStore, qr: QRCode) -> bool:
    """
    Prüft den Ablauf und speichert das Flag, falls nötig.
    Gibt True zurück, wenn der Code nicht mehr benutzt werden darf.
    """
    if not is_qr_expired(qr):
        return False
    if not qr.is_expired:
        logger.info("QR %s ist abgelaufen – markiere als 'expired'", qr.id)
        store.mark_expired(qr.id)
    return True


# =============================================================================
# 📈 Scan zählen
# =============================================================================
def record_scan(store: QRStore, qr_id: str, scan: Optional[ScanData] = None) -> ScanResult:
    """
    Zählt einen Scan für den QR-Code.
    Abgelaufene Codes werden markiert und nicht gezählt.
    Erreicht der neue Zählerstand das Limit, wird der Code im selben
    Update als abgelaufen markiert.
    """
    scan = scan or ScanData()
    try:
        qr = store.find_by_id(qr_id)
        if qr is None:
            return ScanResult(ScanOutcome.NOT_FOUND)

        if enforce_expiration(store, qr):
            return ScanResult(ScanOutcome.EXPIRED, qr)

        device_type = classify_device(scan.user_agent)
        now = datetime.now(timezone.utc)

        applied = store.apply_scan(
            qr_id,
            country=scan.country or UNKNOWN,
            city=scan.city or UNKNOWN,
            now=now,
        )
        if not applied:
            # Zwischenzeitlich gelöscht, abgelaufen oder Limit durch parallelen Scan erreicht
            store.rollback()
            current = store.find_by_id(qr_id)
            if current is None:
                return ScanResult(ScanOutcome.NOT_FOUND)
            store.mark_expired(qr_id)
            return ScanResult(ScanOutcome.EXPIRED, store.find_by_id(qr_id))

        store.increment_device(qr_id, device_type)
        store.commit()

        updated = store.find_by_id(qr_id)
        logger.info(
            "Scan gezählt: qr=%s count=%s device=%s country=%s",
            qr_id, updated.scan_count if updated else "?", device_type, scan.country,
        )
        return ScanResult(ScanOutcome.OK, updated)
    except SQLAlchemyError:
        logger.exception("Scan für QR %s konnte nicht gespeichert werden", qr_id)
        store.rollback()
        return ScanResult(ScanOutcome.INTERNAL)


# =============================================================================
# 🔐 Passwort-Prüfung
# =============================================================================
def check_qr_password(qr: QRCode, submitted: Optional[str]) -> bool:
    """Vergleicht nach strip() exakt (Groß-/Kleinschreibung zählt)."""
    candidate = (submitted or "").strip()
    stored = (qr.password or "").strip()
    if not candidate or not stored:
        return False
    return hmac.compare_digest(stored.encode("utf-8"), candidate.encode("utf-8"))


def verify_password_and_record(
    store: QRStore,
    qr_id: str,
    password: Optional[str],
    scan: Optional[ScanData] = None,
) -> ScanResult:
    """
    Gibt einen passwortgeschützten Code frei und zählt dann den Scan.
    Ablauf und Scan-Limit werden vor dem Passwort geprüft.
    """
    try:
        qr = store.find_by_id(qr_id)
        if qr is None:
            return ScanResult(ScanOutcome.NOT_FOUND)
        if not qr.is_password_protected:
            return ScanResult(ScanOutcome.NOT_PROTECTED, qr)
        if enforce_expiration(store, qr):
            return ScanResult(ScanOutcome.EXPIRED, qr)
        if not check_qr_password(qr, password):
            logger.info("Falsches Passwort für QR %s", qr_id)
            return ScanResult(ScanOutcome.AUTH_FAILED, qr)
    except SQLAlchemyError:
        logger.exception("Passwort-Prüfung für QR %s fehlgeschlagen", qr_id)
        store.rollback()
        return ScanResult(ScanOutcome.INTERNAL)

    return record_scan(store, qr_id, scan)


# =============================================================================
# 📊 Auswertung
# =============================================================================
def _iso(ts: Optional[datetime]) -> Optional[str]:
    ts = to_utc(ts)
    return ts.isoformat() if ts else None


def analytics_block(qr: QRCode) -> Dict[str, Any]:
    return {
        "scan_count": qr.scan_count or 0,
        "last_scanned": _iso(qr.last_scanned),
        "scan_locations": [
            {"country": s.country, "city": s.city, "timestamp": _iso(s.timestamp)}
            for s in qr.scans
        ],
        "devices": [{"type": d.device_type, "count": d.count} for d in qr.devices],
    }


def summarize_user(qrcodes: list[QRCode]) -> Dict[str, Any]:
    summary: Dict[str, Any] = {
        "total_qr_codes": len(qrcodes),
        "total_scans": 0,
        "most_scanned": None,
        "scans_by_device": {},
        "scans_by_location": {},
        "scans_by_date": {},
    }
    top_count = 0

    for qr in qrcodes:
        count = qr.scan_count or 0
        summary["total_scans"] += count

        # Bei Gleichstand bleibt der zuerst gefundene Code vorne
        if count > top_count:
            top_count = count
            summary["most_scanned"] = {"id": qr.id, "text": qr.text, "scan_count": count}

        for device in qr.devices:
            by_device = summary["scans_by_device"]
            by_device[device.device_type] = by_device.get(device.device_type, 0) + (device.count or 0)

        for scan in qr.scans:
            country = scan.country or UNKNOWN
            by_location = summary["scans_by_location"]
            by_location[country] = by_location.get(country, 0) + 1

            ts = to_utc(scan.timestamp)
            if ts is not None:
                day = ts.date().isoformat()
                summary["scans_by_date"][day] = summary["scans_by_date"].get(day, 0) + 1

    return summary


def get_analytics(
    store: QRStore,
    qr_id: Optional[str] = None,
    user_id: Optional[int] = None,
) -> Optional[Dict[str, Any]]:
    """
    qr_id → Analytics-Block dieses Codes.
    user_id → Zusammenfassung über alle Codes des Benutzers.
    Ohne beides → None.
    """
    try:
        if qr_id:
            qr = store.find_by_id(qr_id)
            return analytics_block(qr) if qr else None
        if user_id is not None:
            return summarize_user(store.find_by_user(user_id))
        return None
    except SQLAlchemyError:
        logger.exception("Analytics konnten nicht geladen werden (qr=%s, user=%s)", qr_id, user_id)
        store.rollback()
        return None

# =============================================================================
# ⏳ utils/expiration.py
# -----------------------------------------------------------------------------
# Entscheidet, ob ein QR-Code noch benutzbar ist.
# Einzige Stelle für diese Regel – Scan-Route, JSON-Track und Passwort-Prüfung
# rufen alle is_qr_expired() auf.
# =============================================================================

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from models.qrcode import QRCode

logger = logging.getLogger(__name__)


def to_utc(ts: datetime | None) -> datetime | None:
    """SQLite liefert naive Zeitstempel zurück; diese gelten als UTC."""
    if ts is None:
        return None
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Wandelt datetime/ISO-String in einen UTC-Zeitstempel.
    Leere oder ungültige Werte ergeben None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    raw = str(value).strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return to_utc(datetime.fromisoformat(raw))
    except ValueError:
        return None


def is_qr_expired(qr: Optional["QRCode"], now: Optional[datetime] = None) -> bool:
    """
    True, wenn der QR-Code nicht (mehr) benutzt werden darf:
      • kein Datensatz (fail-closed)
      • bereits als abgelaufen markiert
      • Ablaufdatum liegt echt in der Vergangenheit
      • Scan-Limit (> 0) erreicht
    Keine Seiteneffekte – das Speichern übernimmt der Aufrufer.
    """
    if qr is None:
        return True

    if qr.is_expired:
        return True

    expiry = parse_timestamp(qr.expires_at)
    if expiry is not None:
        current = to_utc(now) or datetime.now(timezone.utc)
        if current > expiry:
            logger.debug("QR %s: Ablaufdatum %s überschritten", qr.id, expiry.isoformat())
            return True

    max_scans = qr.max_scans or 0
    if max_scans > 0 and (qr.scan_count or 0) >= max_scans:
        logger.debug("QR %s: Scan-Limit %s erreicht", qr.id, max_scans)
        return True

    return False

# =============================================================================
# 📦 QRCode Model – zentrales QR-Datenmodell mit Sicherheit & Analytics
# =============================================================================

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, TYPE_CHECKING, List

from sqlalchemy import (
    String, Text, Boolean, Integer, DateTime, JSON,
    ForeignKey, event
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from database import Base

if TYPE_CHECKING:
    from models.qr_scan import QRScan
    from models.qr_device import QRDeviceCount
    from models.user import User


QR_TYPES = ("url", "text", "vcard", "wifi", "email", "sms", "geo", "event", "phone")


class QRStatus(str, enum.Enum):
    """Lebenszyklus eines QR-Codes. 'expired' ist ein Endzustand."""
    ACTIVE = "active"
    EXPIRED = "expired"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_qr_id() -> str:
    return uuid.uuid4().hex


# =============================================================================
# 🧩 QRCode-Datenmodell
# =============================================================================
class QRCode(Base):
    """
    Ein generierter QR-Code.
    Inhalt, Design, Sicherheitsregeln (Passwort, Ablaufdatum, Scan-Limit),
    Scan-Statistik und Tracking-URL liegen in einem Datensatz.
    Standorte und Geräte-Zähler hängen als eigene Tabellen daran.
    """
    __tablename__ = "qr_codes"

    # ---------------------------------------------------------------------
    # 🧾 Basisattribute
    # ---------------------------------------------------------------------
    # Die ID wird schon vor dem Rendern vergeben, weil die Tracking-URL sie enthält.
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_qr_id)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    user: Mapped["User"] = relationship("User", back_populates="qrcodes")

    # ---------------------------------------------------------------------
    # 📄 Inhalt
    # ---------------------------------------------------------------------
    text: Mapped[str] = mapped_column(Text, nullable=False)               # Ziel bzw. Nutzlast
    qr_type: Mapped[str] = mapped_column(String(20), default="url")       # url, vcard, wifi, ...
    qr_image: Mapped[str] = mapped_column(Text, default="")               # data:image/png;base64,...
    tags: Mapped[List[str]] = mapped_column(JSON, default=list)

    # ---------------------------------------------------------------------
    # 🎨 Design
    # ---------------------------------------------------------------------
    color_fg: Mapped[str] = mapped_column(String(10), default="#000000")
    color_bg: Mapped[str] = mapped_column(String(10), default="#ffffff")
    logo_path: Mapped[Optional[str]] = mapped_column(Text)
    margin: Mapped[int] = mapped_column(Integer, default=4)

    # ---------------------------------------------------------------------
    # 🔐 Sicherheit
    # ---------------------------------------------------------------------
    is_password_protected: Mapped[bool] = mapped_column(Boolean, default=False)
    password: Mapped[str] = mapped_column(String(255), default="")
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    max_scans: Mapped[int] = mapped_column(Integer, default=0)            # 0 = unbegrenzt

    # ---------------------------------------------------------------------
    # 📊 Analytics
    # ---------------------------------------------------------------------
    scan_count: Mapped[int] = mapped_column(Integer, default=0)
    last_scanned: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    scans: Mapped[list["QRScan"]] = relationship(
        "QRScan",
        back_populates="qr",
        cascade="all, delete-orphan",
        order_by="QRScan.id",
        lazy="selectin",
    )
    devices: Mapped[list["QRDeviceCount"]] = relationship(
        "QRDeviceCount",
        back_populates="qr",
        cascade="all, delete-orphan",
        order_by="QRDeviceCount.id",
        lazy="selectin",
    )

    # ---------------------------------------------------------------------
    # ⏳ Lebenszyklus
    # ---------------------------------------------------------------------
    status: Mapped[str] = mapped_column(String(20), default=QRStatus.ACTIVE.value, nullable=False)

    # ---------------------------------------------------------------------
    # 🔗 Tracking
    # ---------------------------------------------------------------------
    tracking_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    tracking_url: Mapped[Optional[str]] = mapped_column(String(255))

    # ---------------------------------------------------------------------
    # 🕒 Zeitstempel
    # ---------------------------------------------------------------------
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=utc_now)

    # ---------------------------------------------------------------------
    # 🔒 Zustandsübergänge
    # ---------------------------------------------------------------------
    @validates("status")
    def _validate_status(self, key: str, value: Any) -> str:
        new_status = QRStatus(value).value
        if self.status == QRStatus.EXPIRED.value and new_status != QRStatus.EXPIRED.value:
            raise ValueError("Abgelaufene QR-Codes können nicht reaktiviert werden")
        return new_status

    @validates("tracking_url")
    def _validate_tracking_url(self, key: str, value: Optional[str]) -> Optional[str]:
        if self.tracking_url is not None and value != self.tracking_url:
            raise ValueError("Die Tracking-URL ist nach dem Erstellen unveränderlich")
        return value

    @property
    def is_expired(self) -> bool:
        return self.status == QRStatus.EXPIRED.value

    def mark_expired(self) -> None:
        self.status = QRStatus.EXPIRED.value

    # ---------------------------------------------------------------------
    # 📌 Repräsentation
    # ---------------------------------------------------------------------
    def __repr__(self) -> str:
        return (
            f"<QRCode(id='{self.id}', type='{self.qr_type}', status='{self.status}', "
            f"scans={self.scan_count}/{self.max_scans})>"
        )


# =============================================================================
# ⚙️ Event: Sicherheitsregeln bei jedem Speichern erzwingen
# =============================================================================

from sqlalchemy.orm import Mapper
from sqlalchemy.engine import Connection


@event.listens_for(QRCode, "before_insert")  # type: ignore[misc]
@event.listens_for(QRCode, "before_update")  # type: ignore[misc]
def normalize_security(mapper: Mapper, connection: Connection, target: QRCode) -> None:
    """
    Passwort nur bei aktivem Passwortschutz, Scan-Limit nie negativ.
    """
    if not target.is_password_protected:
        target.password = ""
    if not isinstance(target.max_scans, int) or target.max_scans < 0:
        target.max_scans = 0

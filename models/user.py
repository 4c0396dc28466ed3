# =============================================================================
# 👤 models/user.py
# Konto eines QR-Tracker-Nutzers. Besitzt beliebig viele QR-Codes.
# =============================================================================

from __future__ import annotations
from typing import Optional, List, TYPE_CHECKING
from datetime import datetime

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base
from models.qrcode import utc_now

if TYPE_CHECKING:
    from models.qrcode import QRCode


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    # wird beim Registrieren/Login kleingeschrieben gespeichert
    email: Mapped[str] = mapped_column(String(200), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))   # pbkdf2_sha256

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Löschen des Kontos entfernt auch alle Codes samt Scans
    qrcodes: Mapped[List["QRCode"]] = relationship(
        "QRCode",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"

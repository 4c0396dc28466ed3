# =============================================================================
# 📍 models/qr_scan.py
# -----------------------------------------------------------------------------
# Standort-Historie: ein Eintrag pro gezähltem Scan (Land, Stadt, Zeit).
# Einträge werden nur angehängt, nie geändert.
# =============================================================================

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from database import Base
from models.qrcode import utc_now


class QRScan(Base):
    __tablename__ = "qr_scans"
    __table_args__ = {"mysql_engine": "InnoDB", "mysql_charset": "utf8mb4"}

    id = Column(Integer, primary_key=True)
    qr_id = Column(String(32), ForeignKey("qr_codes.id", ondelete="CASCADE"), nullable=False, index=True)

    country = Column(String(100), nullable=False, default="Unknown")
    city = Column(String(100), nullable=False, default="Unknown")
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    qr = relationship("QRCode", back_populates="scans")

    def __repr__(self):
        return f"<QRScan qr={self.qr_id} {self.country}/{self.city} @ {self.timestamp}>"

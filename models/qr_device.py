# =============================================================================
# 📱 models/qr_device.py
# Geräte-Zähler pro QR-Code (ein Eintrag je Gerätetyp)
# =============================================================================

from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base


class QRDeviceCount(Base):
    __tablename__ = "qr_device_counts"
    __table_args__ = (
        UniqueConstraint("qr_id", "device_type", name="uq_qr_device_type"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    qr_id = Column(String(32), ForeignKey("qr_codes.id", ondelete="CASCADE"), nullable=False, index=True)
    device_type = Column(String(50), nullable=False)   # ios, android, mac, windows, ...
    count = Column(Integer, nullable=False, default=0)

    qr = relationship("QRCode", back_populates="devices")

    def __repr__(self):
        return f"<QRDeviceCount(qr_id='{self.qr_id}', type='{self.device_type}', count={self.count})>"

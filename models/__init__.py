# =============================================================================
# 📦 models/__init__.py
# =============================================================================

from .user import User
from .qrcode import QRCode, QRStatus, QR_TYPES
from .qr_scan import QRScan
from .qr_device import QRDeviceCount

__all__ = [
    "User",
    "QRCode",
    "QRStatus",
    "QR_TYPES",
    "QRScan",
    "QRDeviceCount",
]

# =============================================================================
# 📱 utils/device.py
# Grobe Geräte-Erkennung aus dem User-Agent (für die Geräte-Zähler)
# =============================================================================

from __future__ import annotations


def classify_device(user_agent: str | None) -> str:
    """
    Ordnet einen User-Agent grob einem Gerätetyp zu.
    Reihenfolge ist wichtig – der erste Treffer gewinnt.
    """
    ua = (user_agent or "").lower()

    if "iphone" in ua or "ipad" in ua:
        return "ios"
    if "android" in ua:
        return "android"
    if "windows phone" in ua:
        return "windows phone"
    if "macintosh" in ua or "mac os" in ua:
        return "mac"
    if "windows" in ua:
        return "windows"
    if "linux" in ua:
        return "linux"

    if "mobile" in ua or "tablet" in ua:
        return "mobile"
    return "unknown"
